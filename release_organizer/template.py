from __future__ import annotations

import enum
from typing import Callable, Tuple, Union

from .models import MetadataRecord, TemplateError

DEFAULT_FORMAT = "{{release_name}} ({{release_year}})"


class Placeholder(enum.Enum):
    """Recognized format tokens, listed in match priority order."""

    RELEASE_NAME = ("{{release_name}}", str)
    RELEASE_YEAR = ("{{release_year}}", int)
    RELEASE_DATE = ("{{release_date}}", str)
    RELEASE_ARTISTS = ("{{release_artists}}", str)

    def __init__(self, token: str, kind: type) -> None:
        self.token = token
        self.kind = kind

    def value_for(self, meta: MetadataRecord) -> Union[str, int]:
        if self is Placeholder.RELEASE_NAME:
            return meta.album()
        if self is Placeholder.RELEASE_YEAR:
            return meta.year()
        if self is Placeholder.RELEASE_DATE:
            return meta.release_date()
        return ", ".join(meta.artists())

    def render(self, meta: MetadataRecord) -> str:
        value = self.value_for(meta)
        if self.kind is int:
            # Missing years are zero; they render empty like missing strings.
            return str(value) if value else ""
        return value


Part = Union[str, Placeholder]


class Formatter:
    """A compiled folder-name format. Immutable and reusable for a whole run."""

    __slots__ = ("_source", "_parts")

    def __init__(self, source: str, parts: Tuple[Part, ...]) -> None:
        self._source = source
        self._parts = parts

    @property
    def source(self) -> str:
        return self._source

    @property
    def placeholders(self) -> Tuple[Placeholder, ...]:
        return tuple(part for part in self._parts if isinstance(part, Placeholder))

    def __call__(self, meta: MetadataRecord) -> str:
        return "".join(
            part if isinstance(part, str) else part.render(meta) for part in self._parts
        )

    def __repr__(self) -> str:
        return f"Formatter({self._source!r})"


def _match_at(fmt: str, index: int) -> Placeholder | None:
    best: Placeholder | None = None
    for placeholder in Placeholder:
        if not fmt.startswith(placeholder.token, index):
            continue
        if best is None or len(placeholder.token) > len(best.token):
            best = placeholder
    return best


def compile_format(fmt: str) -> Formatter:
    if not isinstance(fmt, str):
        raise TemplateError(f"folder format must be a string, got {type(fmt).__name__}")
    parts: list[Part] = []
    literal: list[str] = []
    i = 0
    while i < len(fmt):
        placeholder = _match_at(fmt, i)
        if placeholder is None:
            literal.append(fmt[i])
            i += 1
            continue
        if literal:
            parts.append("".join(literal))
            literal = []
        parts.append(placeholder)
        i += len(placeholder.token)
    if literal:
        parts.append("".join(literal))
    return Formatter(fmt, tuple(parts))


FormatFunc = Callable[[MetadataRecord], str]
