from __future__ import annotations

import json
import logging
import textwrap
from pathlib import Path

import pytest

from seerr_router import cli

CONFIG = """
settings:
  dry_run: true
  overseerr:
    url: http://overseerr:5055

instances:
  radarr:
    type: radarr
    url: http://radarr:7878
    api_key: abc
    root_folder: /movies
    quality_profile_id: 1

filters:
  - media_type: movie
    conditions:
      genres: action
    apply: radarr
"""


@pytest.fixture
def config_path(tmp_path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(CONFIG), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def plain_console(monkeypatch) -> None:
    monkeypatch.setenv("PLAIN_CONSOLE_LOGS", "1")
    for name in (
        "DRY_RUN",
        "OVERSEERR_URL",
        "OVERSEERR_API_KEY",
        "PORT",
        "VERBOSE",
        "LOG_LEVEL",
        "CONSOLE_LEVEL",
        "RICH_CONSOLE_LOGS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def test_parse_args_defaults_to_serve(tmp_path) -> None:
    args = cli.parse_args(("--config", str(tmp_path / "c.yaml"), "--port", "9000"))
    assert args.command == "serve"
    assert args.port == 9000
    assert args.config == tmp_path / "c.yaml"


def test_parse_args_route_command(tmp_path) -> None:
    args = cli.parse_args(("route", "--webhook", "hook.json", "--dispatch"))
    assert args.command == "route"
    assert args.webhook == Path("hook.json")
    assert args.data is None
    assert args.dispatch is True


def test_apply_runtime_overrides_reads_environment(monkeypatch, config_path) -> None:
    config = cli.load_config(config_path)
    monkeypatch.setenv("DRY_RUN", "false")
    monkeypatch.setenv("OVERSEERR_URL", "http://other:5055/")
    monkeypatch.setenv("PORT", "9100")

    args = cli.parse_args(("--config", str(config_path), "--host", "127.0.0.1"))
    cli.apply_runtime_overrides(config, args)

    assert config.settings.dry_run is False
    assert config.settings.overseerr.url == "http://other:5055"
    assert config.settings.port == 9100
    assert config.settings.host == "127.0.0.1"


def test_validate_config_command(config_path, tmp_path) -> None:
    assert cli.main(("validate-config", "--config", str(config_path))) == 0
    assert cli.main(("validate-config", "--config", str(tmp_path / "missing.yaml"))) == 1

    broken = tmp_path / "broken.yaml"
    broken.write_text("filters:\n  - media_type: movie\n    apply: nowhere\n", encoding="utf-8")
    assert cli.main(("validate-config", "--config", str(broken))) == 1


def test_route_command_with_local_metadata(tmp_path, config_path, movie_payload, movie_data) -> None:
    webhook_path = tmp_path / "webhook.json"
    webhook_path.write_text(json.dumps(movie_payload), encoding="utf-8")
    data_path = tmp_path / "data.json"
    data_path.write_text(json.dumps(movie_data), encoding="utf-8")

    argv = (
        "route",
        "--config",
        str(config_path),
        "--log-dir",
        str(tmp_path / "logs"),
        "--webhook",
        str(webhook_path),
        "--data",
        str(data_path),
    )
    assert cli.main(argv) == 0
    assert (tmp_path / "logs" / cli.LOG_FILENAME).exists()


def test_route_command_dispatches_in_dry_run(monkeypatch, tmp_path, config_path, movie_payload, movie_data) -> None:
    def fail_post(*args, **kwargs):
        raise AssertionError("dry run must not post")

    monkeypatch.setattr("seerr_router.dispatch.requests.post", fail_post)

    webhook_path = tmp_path / "webhook.json"
    webhook_path.write_text(json.dumps(movie_payload), encoding="utf-8")
    data_path = tmp_path / "data.json"
    data_path.write_text(json.dumps(movie_data), encoding="utf-8")

    argv = (
        "route",
        "--config",
        str(config_path),
        "--log-dir",
        str(tmp_path / "logs"),
        "--webhook",
        str(webhook_path),
        "--data",
        str(data_path),
        "--dispatch",
    )
    assert cli.main(argv) == 0


def test_route_command_rejects_invalid_webhook(tmp_path, config_path) -> None:
    webhook_path = tmp_path / "webhook.json"
    webhook_path.write_text(json.dumps({"media": {}}), encoding="utf-8")

    argv = ("route", "--config", str(config_path), "--log-dir", str(tmp_path / "logs"), "--webhook", str(webhook_path))
    assert cli.main(argv) == 1


def test_configure_logging_rotates_previous_log(tmp_path) -> None:
    log_file = tmp_path / "logs" / cli.LOG_FILENAME
    log_file.parent.mkdir(parents=True)
    log_file.write_text("old run\n", encoding="utf-8")

    cli.configure_logging(cli.LogSettings(log_file=log_file, rich_console=False))

    previous = log_file.with_name(f"{cli.LOG_FILENAME}.previous")
    assert previous.read_text(encoding="utf-8") == "old run\n"
    assert log_file.exists()


def test_log_settings_follow_flags_and_environment(monkeypatch, tmp_path) -> None:
    args = cli.parse_args(("--log-dir", str(tmp_path), "--verbose"))
    settings = cli.LogSettings.from_args(args)
    assert settings.log_file == tmp_path / cli.LOG_FILENAME
    assert settings.file_level == "DEBUG"
    assert settings.console_level == "DEBUG"
    assert settings.rich_console is False

    monkeypatch.setenv("LOG_LEVEL", "warning")
    monkeypatch.delenv("PLAIN_CONSOLE_LOGS")
    settings = cli.LogSettings.from_args(cli.parse_args(("--log-dir", str(tmp_path))))
    assert settings.file_level == "WARNING"
    assert settings.console_level is None
    assert settings.rich_console is None
