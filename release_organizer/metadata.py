from __future__ import annotations

import logging
import re
from typing import BinaryIO, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import mutagen
from mutagen import MutagenError
from mutagen.flac import FLAC

from .models import CorruptMetadata, MetadataRecord, UnsupportedFormat

logger = logging.getLogger(__name__)

FLAC_MAGIC = b"fLaC"
YEAR_RE = re.compile(r"\d{4}")
# mutagen keeps comments that lack "=" under a synthetic "unknown<index>" key.
MANGLED_COMMENT_KEY = re.compile(r"unknown\d+")

ALBUM_KEYS = ("album",)
YEAR_KEYS = ("date", "year")
RELEASE_DATE_KEYS = ("releasedate", "release_date", "release_time", "originaldate", "date")
VORBIS_ARTIST_KEYS = ("artists", "artist", "albumartist")
EASY_ARTIST_KEYS = ("artist", "albumartist")


def _first(tags: Mapping[str, List[str]], keys: Sequence[str]) -> str:
    for key in keys:
        for value in tags.get(key, ()):
            value = value.strip()
            if value:
                return value
    return ""


def _all(tags: Mapping[str, List[str]], keys: Sequence[str]) -> List[str]:
    for key in keys:
        values = [value.strip() for value in tags.get(key, ()) if value.strip()]
        if values:
            return values
    return []


def parse_year(value: object) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    match = YEAR_RE.search(str(value))
    return int(match.group(0)) if match else 0


def parse_comments(lines: Iterable[str], name: str = "") -> Dict[str, List[str]]:
    """Split ``key=value`` comment lines on the first ``=``.

    Keys are case-insensitive and stored lower-cased; repeated keys keep every
    value in order. Lines without ``=`` are dropped with a warning.
    """
    tags: Dict[str, List[str]] = {}
    for line in lines:
        key, sep, value = line.partition("=")
        if not sep:
            logger.warning("Dropping malformed tag in %s: %r has no '='", name or "<stream>", line)
            continue
        tags.setdefault(key.lower(), []).append(value)
    return tags


class VorbisCommentRecord:
    """MetadataRecord backed by a FLAC Vorbis comment block."""

    __slots__ = ("_tags",)

    def __init__(self, tags: Dict[str, List[str]]) -> None:
        self._tags = tags

    @classmethod
    def from_lines(cls, lines: Iterable[str], name: str = "") -> "VorbisCommentRecord":
        return cls(parse_comments(lines, name))

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]], name: str = "") -> "VorbisCommentRecord":
        return cls.from_lines(_comment_lines(pairs), name)

    def album(self) -> str:
        return _first(self._tags, ALBUM_KEYS)

    def year(self) -> int:
        for key in YEAR_KEYS:
            year = parse_year(_first(self._tags, (key,)))
            if year:
                return year
        return parse_year(self.release_date())

    def release_date(self) -> str:
        return _first(self._tags, RELEASE_DATE_KEYS)

    def artists(self) -> List[str]:
        return _all(self._tags, VORBIS_ARTIST_KEYS)

    def raw(self) -> Dict[str, List[str]]:
        return {key: list(values) for key, values in self._tags.items()}


class EasyTagRecord:
    """MetadataRecord backed by mutagen's format-independent "easy" tag interface."""

    __slots__ = ("_tags",)

    def __init__(self, tags: Dict[str, List[str]]) -> None:
        self._tags = tags

    @classmethod
    def from_tags(cls, tags: Optional[Mapping[str, object]]) -> "EasyTagRecord":
        snapshot: Dict[str, List[str]] = {}
        if tags:
            for key in tags.keys():
                values = tags[key]
                if not isinstance(values, list):
                    values = [values]
                snapshot[str(key).lower()] = [_text(value) for value in values]
        return cls(snapshot)

    def album(self) -> str:
        return _first(self._tags, ALBUM_KEYS)

    def year(self) -> int:
        year = parse_year(_first(self._tags, YEAR_KEYS))
        return year or parse_year(self.release_date())

    def release_date(self) -> str:
        return _first(self._tags, RELEASE_DATE_KEYS)

    def artists(self) -> List[str]:
        return _all(self._tags, EASY_ARTIST_KEYS)

    def raw(self) -> Dict[str, List[str]]:
        return {key: list(values) for key, values in self._tags.items()}


def _text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _comment_lines(pairs: Iterable[Tuple[str, str]]) -> Iterator[str]:
    for key, value in pairs:
        if MANGLED_COMMENT_KEY.fullmatch(key) and "=" not in value:
            yield value
        else:
            yield f"{key}={value}"


def is_flac(stream: BinaryIO, name: str) -> bool:
    head = stream.read(len(FLAC_MAGIC))
    stream.seek(0)
    return head == FLAC_MAGIC or name.lower().endswith(".flac")


def read_metadata(stream: BinaryIO, name: str) -> MetadataRecord:
    """Read the tags of one entry from a seekable binary stream.

    FLAC streams are read through their Vorbis comment block, everything else
    through mutagen's generic loader.

    Raises:
        UnsupportedFormat: mutagen does not recognise the stream.
        CorruptMetadata: the stream looks like a known format but fails to parse.
    """
    if is_flac(stream, name):
        try:
            audio = FLAC(stream)
        except (MutagenError, ValueError, EOFError) as exc:
            raise CorruptMetadata(f"{name}: {exc}") from exc
        return VorbisCommentRecord.from_pairs(audio.tags or [], name)

    try:
        audio = mutagen.File(stream, easy=True)
    except (MutagenError, ValueError, EOFError) as exc:
        raise CorruptMetadata(f"{name}: {exc}") from exc
    if audio is None:
        raise UnsupportedFormat(f"{name}: unrecognized audio format")
    return EasyTagRecord.from_tags(audio.tags)
