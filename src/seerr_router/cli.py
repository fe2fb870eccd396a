from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import AppConfig, load_config
from .dispatch import DispatchOutcome
from .metadata import MetadataFetchError
from .router import RouteResult, WebhookRouter
from .utils import load_json_file, load_yaml_file
from .validation import ValidationIssue, ValidationReport, validate_config_data
from .webhook import Webhook, is_webhook

LOGGER = logging.getLogger(__name__)
CONSOLE = Console()

COMMANDS = ("serve", "route", "validate-config")
LEVEL_NAMES = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]
LOG_FILENAME = "seerr-router.log"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_CONFIG_PATH = "/config/config.yaml"
DEFAULT_LOG_DIR = "/logs"

_BOOL_WORDS = {"1": True, "true": True, "yes": True, "on": True, "0": False, "false": False, "no": False, "off": False}


def env_flag(name: str) -> Optional[bool]:
    """Read a boolean environment variable; unknown words count as unset."""
    raw = os.getenv(name)
    if raw is None:
        return None
    return _BOOL_WORDS.get(raw.strip().lower())


def env_int(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring %s=%r: not an integer", name, raw)
        return None


def _config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)),
        help=f"YAML configuration file (default {DEFAULT_CONFIG_PATH} or $CONFIG_PATH)",
    )


def _runtime_arguments(parser: argparse.ArgumentParser) -> None:
    _config_argument(parser)
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=Path(os.getenv("LOG_DIR", DEFAULT_LOG_DIR)),
        help=f"Where {LOG_FILENAME} is written (default {DEFAULT_LOG_DIR} or $LOG_DIR)",
    )
    parser.add_argument("--verbose", action="store_true", help="Shortcut for DEBUG file and console logging")
    parser.add_argument("--log-level", choices=LEVEL_NAMES, help="File log level (default INFO)")
    parser.add_argument("--console-level", choices=LEVEL_NAMES, help="Console log level (default: file level)")
    parser.add_argument("--dry-run", action="store_true", help="Pick instances but never add media to them")


def _build_parser(command: str) -> argparse.ArgumentParser:
    if command == "validate-config":
        parser = argparse.ArgumentParser(prog="seerr-router validate-config", description="Check a configuration file")
        _config_argument(parser)
        parser.add_argument("--show-trace", action="store_true", help="Include tracebacks for load failures")
        return parser

    if command == "route":
        parser = argparse.ArgumentParser(prog="seerr-router route", description="Route one saved webhook payload")
        _runtime_arguments(parser)
        parser.add_argument("--webhook", type=Path, required=True, help="Webhook payload (JSON file)")
        parser.add_argument("--data", type=Path, help="Media metadata (JSON file); fetched from Overseerr if omitted")
        parser.add_argument("--dispatch", action="store_true", help="Also add the media to the selected instances")
        return parser

    parser = argparse.ArgumentParser(prog="seerr-router", description="Overseerr webhook router")
    _runtime_arguments(parser)
    parser.add_argument("--host", help="Bind address (overrides settings.host)")
    parser.add_argument("--port", type=int, help="Bind port (overrides settings.port)")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse ``[serve|route|validate-config] [options]``; ``serve`` is the default command."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    command = arguments.pop(0) if arguments and arguments[0] in COMMANDS else "serve"
    namespace = _build_parser(command).parse_args(arguments)
    namespace.command = command
    return namespace


@dataclass(slots=True)
class LogSettings:
    log_file: Path
    file_level: str = "INFO"
    console_level: Optional[str] = None
    rich_console: Optional[bool] = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "LogSettings":
        """Combine CLI flags with LOG_LEVEL, CONSOLE_LEVEL and VERBOSE."""
        verbose = args.verbose or bool(env_flag("VERBOSE"))
        file_level = args.log_level or os.getenv("LOG_LEVEL") or ("DEBUG" if verbose else "INFO")
        console_level = args.console_level or os.getenv("CONSOLE_LEVEL") or ("DEBUG" if verbose else None)

        if env_flag("PLAIN_CONSOLE_LOGS"):
            rich_console: Optional[bool] = False
        elif env_flag("RICH_CONSOLE_LOGS"):
            rich_console = True
        else:
            rich_console = None

        return cls(
            log_file=args.log_dir / LOG_FILENAME,
            file_level=file_level.upper(),
            console_level=console_level.upper() if console_level else None,
            rich_console=rich_console,
        )


def _level(name: Optional[str], fallback: int = logging.INFO) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


def rotate_log(log_file: Path) -> Optional[Path]:
    """Keep exactly one previous run next to ``log_file`` as ``<name>.previous``."""
    previous = log_file.with_name(f"{log_file.name}.previous")
    previous.unlink(missing_ok=True)
    if not log_file.exists():
        return None
    log_file.replace(previous)
    return previous


def _console_handler(rich_console: bool) -> logging.Handler:
    if rich_console:
        return RichHandler(console=CONSOLE, rich_tracebacks=True, markup=False, show_path=False)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
    return handler


def configure_logging(settings: LogSettings) -> None:
    log_file = settings.log_file.resolve()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    previous = rotate_log(log_file)

    file_level = _level(settings.file_level)
    console_level = _level(settings.console_level, file_level)
    rich_console = CONSOLE.is_terminal if settings.rich_console is None else settings.rich_console

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
    file_handler.setLevel(file_level)
    console_handler = _console_handler(rich_console)
    console_handler.setLevel(console_level)

    root.addHandler(file_handler)
    root.addHandler(console_handler)
    root.setLevel(min(file_level, console_level))
    logging.captureWarnings(True)

    if previous is not None:
        LOGGER.debug("Previous log kept at %s", previous)
    LOGGER.info(
        "Writing %s log to %s; console shows %s and up (%s)",
        logging.getLevelName(file_level),
        log_file,
        logging.getLevelName(console_level),
        "rich" if rich_console else "plain",
    )


def apply_runtime_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    settings = config.settings

    env_dry_run = env_flag("DRY_RUN")
    settings.dry_run = env_dry_run if env_dry_run is not None else bool(args.dry_run or settings.dry_run)

    url = os.getenv("OVERSEERR_URL")
    if url:
        settings.overseerr.url = url.strip().rstrip("/")
    api_key = os.getenv("OVERSEERR_API_KEY")
    if api_key is not None:
        settings.overseerr.api_key = api_key.strip() or None

    port = getattr(args, "port", None) or env_int("PORT")
    if port is not None:
        settings.port = port
    host = getattr(args, "host", None)
    if host:
        settings.host = host


def _load_runtime_config(args: argparse.Namespace) -> Optional[AppConfig]:
    path: Path = args.config
    if not path.exists():
        LOGGER.error("Configuration file %s does not exist", path)
        return None
    try:
        config = load_config(path)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Could not load %s: %s", path, exc)
        return None

    apply_runtime_overrides(config, args)
    LOGGER.info("Loaded %d filter(s) for %d instance(s) from %s", len(config.filters), len(config.instances), path)
    return config


def _execute_serve(args: argparse.Namespace) -> int:
    configure_logging(LogSettings.from_args(args))
    config = _load_runtime_config(args)
    if config is None:
        return 1

    import uvicorn

    from .server import create_app

    settings = config.settings
    LOGGER.info("Listening on %s:%s%s", settings.host, settings.port, " (dry-run)" if settings.dry_run else "")
    uvicorn.run(create_app(WebhookRouter(config)), host=settings.host, port=settings.port, log_config=None)
    return 0


def _outcome_label(outcome: DispatchOutcome) -> str:
    if outcome.dry_run:
        return "dry-run"
    if outcome.already_exists:
        return "exists"
    return "added" if outcome.success else "failed"


def _print_route_result(result: RouteResult) -> None:
    if not result.ok:
        colour = "red"
    else:
        colour = "green" if result.status == "routed" else "yellow"
    CONSOLE.print(f"[bold {colour}]{result.status}[/bold {colour}] {result.message}", highlight=False)
    if result.instances is not None:
        CONSOLE.print(f"Instances: {json.dumps(result.instances)}", highlight=False)
    if result.outcomes:
        table = Table("Instance", "Result", "Message")
        for outcome in result.outcomes:
            table.add_row(outcome.instance, _outcome_label(outcome), outcome.message or "")
        CONSOLE.print(table)


def _read_json(path: Path, label: str) -> Tuple[bool, Any]:
    try:
        return True, load_json_file(path)
    except (OSError, ValueError) as exc:
        LOGGER.error("Unable to read %s %s: %s", label, path, exc)
        return False, None


def _execute_route(args: argparse.Namespace) -> int:
    configure_logging(LogSettings.from_args(args))
    config = _load_runtime_config(args)
    if config is None:
        return 1

    ok, payload = _read_json(args.webhook, "webhook payload")
    if not ok:
        return 1
    if not is_webhook(payload):
        LOGGER.error("%s is not an Overseerr webhook payload", args.webhook)
        return 1

    router = WebhookRouter(config)
    if args.data is None and args.dispatch:
        result = router.handle(payload)
    else:
        webhook = Webhook.from_payload(payload)
        if args.data is not None:
            ok, data = _read_json(args.data, "metadata")
            if not ok:
                return 1
        else:
            try:
                data = router.metadata_client.fetch_media_details(webhook.media.media_type, webhook.media.tmdb_id)
            except MetadataFetchError as exc:
                LOGGER.error("Metadata lookup failed: %s", exc)
                return 1
        result = router.route(webhook, data, dispatch=args.dispatch)

    _print_route_result(result)
    return 0 if result.ok else 1


def _print_issues(issues: Sequence[ValidationIssue], heading: str, colour: str) -> None:
    CONSOLE.print(f"[{colour}]{heading} ({len(issues)})[/{colour}]")
    for issue in issues:
        CONSOLE.print(f"  {issue.path}: {issue.message} [dim]\\[{issue.code}][/dim]", highlight=False)


def _validation_report(path: Path, show_trace: bool) -> Optional[ValidationReport]:
    try:
        data = load_yaml_file(path)
    except Exception as exc:  # noqa: BLE001
        CONSOLE.print(f"[bold red]Could not parse {path}: {exc}[/bold red]")
        if show_trace:
            CONSOLE.print(traceback.format_exc(), style="dim")
        return None

    report = validate_config_data(data)
    if not report.is_valid:
        return report

    # Builders can still reject data the schema accepts.
    try:
        load_config(path)
    except Exception as exc:  # noqa: BLE001
        report.errors.append(
            ValidationIssue(severity="error", path="<load_config>", message=str(exc), code="load-config")
        )
        if show_trace:
            CONSOLE.print(traceback.format_exc(), style="dim")
    return report


def run_validate_config(args: argparse.Namespace) -> int:
    path: Path = args.config
    if not path.exists():
        CONSOLE.print(f"[bold red]Configuration file not found: {path}[/bold red]")
        return 1

    report = _validation_report(path, bool(getattr(args, "show_trace", False)))
    if report is None:
        return 1

    if report.errors:
        _print_issues(report.errors, "Errors", "bold red")
    else:
        CONSOLE.print(f"[bold green]{path} is valid.[/bold green]")
    if report.warnings:
        _print_issues(report.warnings, "Warnings", "yellow")
    return 0 if report.is_valid else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "validate-config":
        return run_validate_config(args)
    if args.command == "route":
        return _execute_route(args)
    return _execute_serve(args)


if __name__ == "__main__":
    sys.exit(main())
