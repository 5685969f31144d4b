from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence

import yaml

from .app import PACKAGE_LOGGER, ReleaseOrganizerApp
from .config import LogSettings, Settings, find_config
from .models import ReleaseOrganizerError

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
C_WARN = "\033[33m"
# Only problems are highlighted; progress output stays plain.
LEVEL_COLORS = {logging.WARNING: C_WARN, logging.ERROR: "\033[31m", logging.CRITICAL: "\033[31m"}
VERBOSITY_LEVELS = {1: "INFO", 2: "DEBUG"}


class RunFormatter(logging.Formatter):
    """Writes paths relative to the source and destination roots.

    With ``color`` set, warnings and errors are wrapped in ANSI colours.
    """

    def __init__(self, roots: Iterable[Path], color: bool = False) -> None:
        super().__init__(LOG_FORMAT)
        # Longest first so a nested root is stripped before its parent.
        self.prefixes = sorted({f"{root}{os.sep}" for root in roots}, key=len, reverse=True)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for prefix in self.prefixes:
            message = message.replace(prefix, "")
        color = LEVEL_COLORS.get(record.levelno) if self.color else None
        return f"{color}{message}{C_RESET}" if color else message


class WarningSummary(logging.Handler):
    """Keeps the run's warnings and errors for the closing summary."""

    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))

    def report(self, warning_log: Optional[Path] = None) -> str:
        if not self.lines:
            return ""
        out = [f"\n{C_WARN}Warnings/Errors summary:{C_RESET}"]
        out.extend(f" - {line}" for line in self.lines)
        if warning_log:
            out.append(f"\nFull warning log: {warning_log}")
        return "\n".join(out)


def configure_logging(
    settings: LogSettings, roots: Sequence[Path]
) -> tuple[logging.Logger, WarningSummary]:
    """Attach console, warning-summary and optional file handlers to the package logger."""
    log = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.setLevel(settings.levelno)
    log.propagate = False

    console = logging.StreamHandler()
    console.setFormatter(RunFormatter(roots, color=sys.stderr.isatty()))
    log.addHandler(console)

    summary = WarningSummary()
    summary.setFormatter(RunFormatter(roots))
    log.addHandler(summary)

    if settings.warning_log:
        file_handler = logging.FileHandler(settings.warning_log, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(RunFormatter(roots))
        log.addHandler(file_handler)
    return log, summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-organizer",
        description="Move audio files into per-release folders named from their tags",
    )
    parser.add_argument("--config", type=Path, help="Path to release-organizer.yaml")
    parser.add_argument(
        "--source",
        type=Path,
        help="Directory, zip or tar archive holding the downloaded files (default: .)",
    )
    parser.add_argument(
        "--dest",
        type=Path,
        help="Directory where the release folders are created (default: .)",
    )
    parser.add_argument(
        "--format",
        help="Folder name format, e.g. '{{release_name}} ({{release_year}})'. "
        "Placeholders: {{release_name}}, {{release_year}}, {{release_date}}, {{release_artists}}",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        default=None,
        help="Do not ask for confirmation before moving files",
    )
    parser.add_argument(
        "--collision-policy",
        choices=["abort", "skip"],
        help="What to do when a destination file is already taken (default: abort)",
    )
    parser.add_argument(
        "--preview-style",
        choices=["arrows", "files"],
        help="Layout of the planned-moves preview (default: arrows)",
    )
    parser.add_argument(
        "--include-ext",
        action="append",
        metavar="EXT",
        help="Only consider entries with this extension (repeatable)",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="PATTERN",
        help="Skip entries matching this glob pattern (repeatable)",
    )
    parser.add_argument("--log-level", help="Python logging level (default: WARNING)")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Show info logs (-v) or debug logs (-vv)",
    )
    parser.add_argument(
        "--warning-log", type=Path, help="Also write warnings and errors to this file"
    )
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    config_path = find_config(args.config)
    settings = Settings.load(config_path) if config_path else Settings()
    log_level = args.log_level
    if args.verbose:
        log_level = VERBOSITY_LEVELS[min(args.verbose, 2)]
    return settings.with_overrides(
        **{
            "source": args.source,
            "dest": args.dest,
            "organizer.format": args.format,
            "organizer.auto_confirm": args.yes,
            "organizer.collision_policy": args.collision_policy,
            "organizer.preview_style": args.preview_style,
            "scan.include_extensions": args.include_ext,
            "scan.exclude_patterns": args.exclude,
            "log.level": log_level,
            "log.warning_log": args.warning_log,
        }
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = load_settings(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        parser.error(str(exc))

    log, summary = configure_logging(settings.log, [settings.source, settings.dest])
    app = ReleaseOrganizerApp.create(settings, log=log)
    exit_code = 0
    try:
        report = app.run()
        if report is None:
            log.info("Declined, no files were changed")
    except ReleaseOrganizerError as exc:
        log.error("%s", exc)
        exit_code = 1
    finally:
        text = summary.report(settings.log.warning_log)
        if text:
            print(text)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
