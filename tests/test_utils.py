from __future__ import annotations

from seerr_router.utils import expand_env, load_yaml_file, normalize_to_array, to_text


def test_normalize_to_array_wraps_and_lowercases_scalars() -> None:
    assert normalize_to_array("Hello") == ["hello"]
    assert normalize_to_array(42) == ["42"]
    assert normalize_to_array(True) == ["true"]


def test_normalize_to_array_maps_lists_in_order() -> None:
    assert normalize_to_array(["Foo", "BAR", "baz"]) == ["foo", "bar", "baz"]
    assert normalize_to_array([1, 2, 3]) == ["1", "2", "3"]
    assert normalize_to_array([]) == []


def test_normalize_to_array_is_idempotent() -> None:
    once = normalize_to_array(["Action", 16, False, "TV-14"])
    assert normalize_to_array(once) == once


def test_to_text_uses_json_style_scalars() -> None:
    assert to_text(None) == "null"
    assert to_text(False) == "false"
    assert to_text(16.0) == "16"
    assert to_text(7.5) == "7.5"


def test_load_yaml_file_expands_environment_variables(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SEERR_TEST_KEY", "secret")
    path = tmp_path / "config.yaml"
    path.write_text("settings:\n  overseerr:\n    api_key: ${SEERR_TEST_KEY}\n", encoding="utf-8")

    data = load_yaml_file(path)
    assert data["settings"]["overseerr"]["api_key"] == "secret"


def test_expand_env_leaves_non_strings_untouched() -> None:
    assert expand_env({"port": 8481, "tags": [1, 2]}) == {"port": 8481, "tags": [1, 2]}
