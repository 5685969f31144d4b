from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Tuple


class MetadataRecord(Protocol):
    """Read-only view over the tags embedded in one media entry."""

    def album(self) -> str: ...

    def year(self) -> int: ...

    def release_date(self) -> str: ...

    def artists(self) -> List[str]: ...

    def raw(self) -> Dict[str, List[str]]: ...


@dataclass(slots=True)
class ScannedEntry:
    name: str
    metadata: MetadataRecord


@dataclass(frozen=True, slots=True)
class MoveRecord:
    source_path: Path
    dest_path: Path
    entry: str

    @property
    def sort_key(self) -> str:
        return str(self.source_path)


@dataclass(slots=True)
class MovePlan:
    records: List[MoveRecord] = field(default_factory=list)
    directories: FrozenSet[Path] = frozenset()
    collisions: Dict[Path, List[MoveRecord]] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[MoveRecord]) -> "MovePlan":
        ordered = sorted(records, key=lambda record: record.sort_key)
        claims: Dict[Path, List[MoveRecord]] = {}
        for record in ordered:
            claims.setdefault(record.dest_path, []).append(record)
        return cls(
            records=ordered,
            directories=frozenset(record.dest_path.parent for record in ordered),
            collisions={dest: group for dest, group in claims.items() if len(group) > 1},
        )

    def without(self, dropped: Iterable[MoveRecord]) -> "MovePlan":
        excluded = set(dropped)
        return MovePlan.from_records(r for r in self.records if r not in excluded)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


@dataclass(slots=True)
class ExecutionReport:
    created_directories: List[Path] = field(default_factory=list)
    moved: List[MoveRecord] = field(default_factory=list)
    failed: List[Tuple[MoveRecord, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return f"Done: {len(self.moved)} moved, {len(self.failed)} failed"


class ReleaseOrganizerError(Exception):
    """Base class for every error raised by the organizer."""


class TemplateError(ReleaseOrganizerError):
    """Raised when a folder-name format cannot be compiled."""


class MetadataError(ReleaseOrganizerError):
    """Raised when an entry's tags cannot be read; the entry is skipped, the run continues."""


class UnsupportedFormat(MetadataError):
    pass


class CorruptMetadata(MetadataError):
    pass


class SourceError(ReleaseOrganizerError):
    """Raised when the source directory or archive cannot be listed at all."""


class DirectoryCreationError(ReleaseOrganizerError):
    def __init__(self, directory: Path, reason: object) -> None:
        super().__init__(f"Error creating directory {directory}: {reason}")
        self.directory = directory


class CollisionError(ReleaseOrganizerError):
    def __init__(
        self,
        duplicates: Dict[Path, List[MoveRecord]],
        existing: Optional[List[MoveRecord]] = None,
    ) -> None:
        self.duplicates = duplicates
        self.existing = list(existing or [])
        super().__init__(self.report())

    def report(self) -> str:
        lines = ["Destination collisions detected:"]
        for dest, group in sorted(self.duplicates.items(), key=lambda item: str(item[0])):
            sources = ", ".join(str(record.source_path) for record in group)
            lines.append(f"  {dest} <- {sources}")
        for record in self.existing:
            lines.append(f"  {record.dest_path} already exists (from {record.source_path})")
        return "\n".join(lines)
