from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

from .models import MoveRecord


def path_exists(path: Path) -> Optional[bool]:
    """Like ``Path.exists`` but tolerant of over-long names.

    Returns None when the parent directory itself is missing and the answer
    had to come from a directory listing.
    """
    try:
        path.stat()
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        if exc.errno != errno.ENAMETOOLONG:
            raise
        try:
            with os.scandir(path.parent) as it:
                return any(entry.name == path.name for entry in it)
        except FileNotFoundError:
            return None


def existing_destinations(records: Iterable[MoveRecord]) -> List[MoveRecord]:
    return [record for record in records if path_exists(record.dest_path)]


def move_file(src: Path, dst: Path) -> None:
    """Rename ``src`` to ``dst``, copying across filesystems when rename cannot."""
    try:
        src.rename(dst)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        shutil.move(str(src), str(dst))


def write_stream(stream: BinaryIO, dst: Path) -> None:
    """Copy ``stream`` into ``dst``; a failed copy leaves nothing at ``dst``."""
    partial = dst.with_name(f".{dst.name}.part")
    try:
        with partial.open("wb") as fh:
            shutil.copyfileobj(stream, fh)
        os.replace(partial, dst)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
