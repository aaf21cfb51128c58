"""Command-line entry point: convert charts, validate sources, serve tiles."""

from __future__ import annotations

import argparse
import json
import sys
from typing import TYPE_CHECKING, Any

import uvicorn

from charttiles import main as app_main
from charttiles.core import config
from charttiles.core import errors
from charttiles.core import logging_setup
from charttiles.services import conversion
from charttiles.services import validation

if TYPE_CHECKING:
    from collections.abc import Sequence

LOGGER = logging_setup.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="charttiles",
        description="S-57 chart to MBTiles conversion and vector tile server",
    )
    parser.add_argument("--log-level", help="Logging level (default: from settings)")
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Emit logs in JSON format",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    convert = subcommands.add_parser("convert", help="Convert S-57 cells into MBTiles archives")
    convert.add_argument("--input", dest="source_dir", help="Directory of S-57 cells")
    convert.add_argument("--output", dest="output_dir", help="Directory for .mbtiles archives")
    convert.add_argument("--work-dir", dest="work_dir", help="Scratch directory for GeoJSON")
    convert.add_argument(
        "--recursive",
        dest="recursive_sources",
        action="store_true",
        default=None,
        help="Search sub-directories for cells",
    )
    convert.add_argument("--workers", dest="conversion_workers", type=int, help="Charts converted in parallel")
    convert.add_argument("--min-zoom", dest="min_zoom", type=int, help="Lowest zoom to package")
    convert.add_argument("--max-zoom", dest="max_zoom", type=int, help="Highest zoom to package (default: guessed)")

    serve = subcommands.add_parser("serve", help="Serve chart tiles over HTTP")
    serve.add_argument("--host", dest="host", help="Interface to bind")
    serve.add_argument("--port", dest="port", type=int, help="Port to listen on")
    serve.add_argument("--archive-dir", dest="archive_dir", help="Directory of .mbtiles archives")

    check = subcommands.add_parser("validate", help="Sanity-check S-57 source cells")
    check.add_argument("--input", dest="source_dir", help="Directory of S-57 cells")
    check.add_argument(
        "--recursive",
        dest="recursive_sources",
        action="store_true",
        default=None,
        help="Search sub-directories for cells",
    )
    check.add_argument("--format", dest="output_format", choices=("text", "json"), default="text")
    return parser


_SETTING_OPTIONS = (
    "source_dir",
    "output_dir",
    "work_dir",
    "recursive_sources",
    "conversion_workers",
    "min_zoom",
    "max_zoom",
    "host",
    "port",
    "archive_dir",
    "log_level",
    "log_json",
)


def settings_from_args(
    args: argparse.Namespace,
    base: config.Settings | None = None,
) -> config.Settings:
    """Overlay command-line options that were given onto the settings."""
    settings = base or config.get_settings()
    update: dict[str, Any] = {
        name: getattr(args, name)
        for name in _SETTING_OPTIONS
        if getattr(args, name, None) is not None
    }
    if not update:
        return settings
    return config.Settings.model_validate({**settings.model_dump(), **update})


def _run_convert(settings: config.Settings) -> int:
    orchestrator = conversion.ConversionOrchestrator.from_settings(settings)
    try:
        report = orchestrator.convert(settings.source_dir)
    except errors.SourceDirectoryMissing as exc:
        LOGGER.error("%s", exc)
        return 1

    for chart in report.succeeded:
        LOGGER.info(
            "Created %s (%d layers, %d features)",
            chart.archive,
            len(chart.layers),
            chart.feature_count,
        )
    for item in report.skipped:
        target = f"{item.source.name}:{item.layer}" if item.layer else item.source.name
        LOGGER.warning("Skipped %s: %s", target, item.reason)

    attempted = {item.source for item in report.skipped} | {
        chart.source for chart in report.succeeded
    }
    if attempted and not report.succeeded:
        return 1
    return 0


def _run_serve(settings: config.Settings) -> int:
    try:
        app = app_main.create_app(settings)
    except errors.SourceDirectoryMissing as exc:
        LOGGER.error("%s", exc)
        return 1

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


def _format_check(check: validation.SourceCheck) -> str:
    lines = [
        f"{check.path}",
        f"  status: {'valid' if check.valid else 'INVALID'}",
        f"  size: {check.size / 1024:.2f} KB",
    ]
    lines.extend(f"  error: {message}" for message in check.errors)
    lines.extend(f"  warning: {message}" for message in check.warnings)
    return "\n".join(lines)


def _run_validate(settings: config.Settings, output_format: str) -> int:
    try:
        sources = conversion.discover_sources(
            settings.source_dir,
            recursive=settings.recursive_sources,
        )
    except errors.SourceDirectoryMissing as exc:
        LOGGER.error("%s", exc)
        return 1

    checks = validation.validate_sources(sources)
    if output_format == "json":
        print(json.dumps([check.to_dict() for check in checks], indent=2))
    else:
        valid = sum(1 for check in checks if check.valid)
        print(f"Files: {len(checks)}  valid: {valid}  invalid: {len(checks) - valid}")
        for check in checks:
            print(_format_check(check))
    return 0 if all(check.valid for check in checks) else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    logging_setup.configure_logging(level=settings.log_level, json_logs=settings.log_json)

    if args.command == "convert":
        return _run_convert(settings)
    if args.command == "serve":
        return _run_serve(settings)
    return _run_validate(settings, args.output_format)


if __name__ == "__main__":
    sys.exit(main())
