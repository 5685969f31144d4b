from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .template import DEFAULT_FORMAT

CONFIG_NAMES = ("release-organizer.yaml", "release-organizer.yml")


class ScanSettings(BaseModel):
    include_extensions: List[str] = Field(default_factory=list)
    exclude_patterns: List[str] = Field(default_factory=list)

    @field_validator("include_extensions", mode="before")
    @classmethod
    def _normalize_exts(cls, values: Optional[List[str]]) -> List[str]:
        if not values:
            return []
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in values]


class OrganizerSettings(BaseModel):
    format: str = DEFAULT_FORMAT
    auto_confirm: bool = False
    collision_policy: Literal["abort", "skip"] = "abort"
    preview_style: Literal["arrows", "files"] = "arrows"


class LogSettings(BaseModel):
    level: str = "WARNING"
    warning_log: Optional[Path] = None

    @field_validator("level", mode="before")
    @classmethod
    def _check_level(cls, value: str | int) -> str:
        if isinstance(value, int):
            return logging.getLevelName(value)
        name = str(value).upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"unknown log level {value!r}")
        return name

    @field_validator("warning_log", mode="before")
    @classmethod
    def _expand_log(cls, value: Optional[str | Path]) -> Optional[Path]:
        if value is None:
            return None
        return Path(value).expanduser()

    @property
    def levelno(self) -> int:
        return logging.getLevelName(self.level)


class Settings(BaseModel):
    source: Path = Field(default=Path("."), validate_default=True)
    dest: Path = Field(default=Path("."), validate_default=True)
    scan: ScanSettings = ScanSettings()
    organizer: OrganizerSettings = OrganizerSettings()
    log: LogSettings = LogSettings()

    @field_validator("source", "dest", mode="before")
    @classmethod
    def _expand_roots(cls, value: str | Path) -> Path:
        # Both roots absolute, so planned source and destination paths never mix.
        return Path(value).expanduser().absolute()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        return cls.model_validate(raw)

    def with_overrides(self, **overrides: object) -> "Settings":
        """Return a copy with dotted-path overrides applied, ignoring None values."""
        data = self.model_dump()
        for dotted, value in overrides.items():
            if value is None:
                continue
            target = data
            *parents, leaf = dotted.split(".")
            for part in parents:
                target = target[part]
            target[leaf] = value
        return Settings.model_validate(data)


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        return explicit_path
    cwd = Path.cwd()
    for name in CONFIG_NAMES:
        candidate = cwd / name
        if candidate.exists():
            return candidate
    return None
