from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Tuple

from .models import MovePlan, MoveRecord, ScannedEntry
from .template import FormatFunc

logger = logging.getLogger(__name__)

# Path components a rendered folder name may not use to leave dest_root.
_UNSAFE_PARTS = ("", ".", "..")


def destination_directory(formatter: FormatFunc, entry: ScannedEntry, dest_root: Path) -> Path:
    """Render the entry's folder below ``dest_root``.

    Separators inside tag values still create sub-folders, but leading
    separators and ``.``/``..`` components are dropped, so the result never
    leaves ``dest_root``.
    """
    name = formatter(entry.metadata)
    parts = [part for part in name.split("/") if part not in _UNSAFE_PARTS]
    return dest_root.joinpath(*parts)


def build_plan(
    entries: Iterable[ScannedEntry],
    formatter: FormatFunc,
    source_root: Path,
    dest_root: Path,
) -> MovePlan:
    """Compute where every scanned entry goes.

    Entries keep their base name inside ``dest_root / formatter(metadata)``.
    Records come back sorted by source path so previews and execution order do
    not depend on listing order. Entries already at their destination are left
    out of the plan. Entries whose destination cannot exist on disk (a NUL
    character, or a ``..`` base name) are skipped with a warning.
    """
    if source_root.is_absolute() != dest_root.is_absolute():
        source_root, dest_root = source_root.absolute(), dest_root.absolute()
    records: List[MoveRecord] = []
    for entry in entries:
        new_dir = destination_directory(formatter, entry, dest_root)
        source_path = source_root / PurePosixPath(entry.name)
        base = PurePosixPath(entry.name).name
        dest_path = new_dir / base
        if base in _UNSAFE_PARTS or "\0" in str(dest_path):
            logger.warning("Skipping %s: unusable destination %r", source_path, str(dest_path))
            continue
        if source_path == dest_path:
            logger.debug("%s is already in place", source_path)
            continue
        records.append(MoveRecord(source_path=source_path, dest_path=dest_path, entry=entry.name))
    return MovePlan.from_records(records)


def resolve_collisions(
    plan: MovePlan, existing: Optional[Iterable[MoveRecord]] = None
) -> Tuple[MovePlan, List[MoveRecord]]:
    """Drop records whose destination is already taken.

    For destinations claimed by several records the first one in plan order is
    kept. Returns the reduced plan and the dropped records.
    """
    dropped: List[MoveRecord] = list(existing or [])
    for group in plan.collisions.values():
        dropped.extend(record for record in group[1:] if record not in dropped)
    return plan.without(dropped), dropped
