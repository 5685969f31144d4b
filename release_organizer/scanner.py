from __future__ import annotations

import fnmatch
import io
import logging
import os
import tarfile
import zipfile
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from collections.abc import Iterator
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable, Optional, Protocol

from .config import ScanSettings
from .fs_utils import move_file, write_stream
from .metadata import read_metadata
from .models import MetadataError, MetadataRecord, MoveRecord, ScannedEntry, SourceError

logger = logging.getLogger(__name__)

MetadataReader = Callable[[BinaryIO, str], MetadataRecord]


@dataclass(frozen=True, slots=True)
class SourceEntry:
    name: str
    is_file: bool


class EntrySource(Protocol):
    """A directory or archive whose entries can be listed, read and relocated."""

    root: Path
    action: str

    def entries(self) -> Iterator[SourceEntry]: ...

    def open(self, name: str) -> BinaryIO: ...

    def path_for(self, name: str) -> Path: ...

    def transfer(self, record: MoveRecord) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> "EntrySource": ...

    def __exit__(self, *exc_info: object) -> None: ...


class DirectorySource:
    action = "move"

    def __init__(self, root: Path) -> None:
        self.root = root

    def entries(self) -> Iterator[SourceEntry]:
        try:
            with os.scandir(self.root) as it:
                listing = [SourceEntry(entry.name, not entry.is_dir()) for entry in it]
        except OSError as exc:
            raise SourceError(f"Cannot list source directory {self.root}: {exc}") from exc
        yield from listing

    def open(self, name: str) -> BinaryIO:
        return (self.root / name).open("rb")

    def path_for(self, name: str) -> Path:
        return self.root / name

    def transfer(self, record: MoveRecord) -> None:
        move_file(record.source_path, record.dest_path)

    def close(self) -> None:
        pass

    def __enter__(self) -> "DirectorySource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _ArchiveSource(ABC):
    action = "extract"
    # Archive-specific read failures, reported as OSError like any other I/O error.
    member_errors: tuple[type[BaseException], ...] = (KeyError, EOFError)

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, name: str) -> Path:
        return self.root / PurePosixPath(name)

    def open(self, name: str) -> BinaryIO:
        # Members are buffered so the tag reader can seek freely.
        try:
            with self._open_member(name) as member:
                stream = io.BytesIO(member.read())
        except self.member_errors as exc:
            raise OSError(f"cannot read {name} from {self.root}: {exc}") from exc
        stream.name = name
        return stream

    def transfer(self, record: MoveRecord) -> None:
        try:
            with self._open_member(record.entry) as member:
                write_stream(member, record.dest_path)
        except self.member_errors as exc:
            raise OSError(f"cannot extract {record.entry} from {self.root}: {exc}") from exc

    @abstractmethod
    def entries(self) -> Iterator[SourceEntry]: ...

    @abstractmethod
    def _open_member(self, name: str) -> BinaryIO: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ZipArchiveSource(_ArchiveSource):
    # RuntimeError: encrypted member; NotImplementedError: unsupported compression.
    member_errors = (
        KeyError,
        EOFError,
        zipfile.BadZipFile,
        zlib.error,
        RuntimeError,
        NotImplementedError,
    )

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        try:
            self._zip = zipfile.ZipFile(root)
        except (OSError, zipfile.BadZipFile) as exc:
            raise SourceError(f"Cannot open zip archive {root}: {exc}") from exc

    def entries(self) -> Iterator[SourceEntry]:
        for info in self._zip.infolist():
            yield SourceEntry(info.filename, not info.is_dir())

    def _open_member(self, name: str) -> BinaryIO:
        return self._zip.open(name)

    def close(self) -> None:
        self._zip.close()


class TarArchiveSource(_ArchiveSource):
    member_errors = (KeyError, EOFError, tarfile.TarError, zlib.error)

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        try:
            self._tar = tarfile.open(root, "r:*")
        except (OSError, tarfile.TarError) as exc:
            raise SourceError(f"Cannot open tar archive {root}: {exc}") from exc

    def entries(self) -> Iterator[SourceEntry]:
        try:
            members = self._tar.getmembers()
        except (OSError, tarfile.TarError) as exc:
            raise SourceError(f"Cannot list tar archive {self.root}: {exc}") from exc
        for member in members:
            # Links and devices are not extractable media, treat them like directories.
            yield SourceEntry(member.name, member.isfile())

    def _open_member(self, name: str) -> BinaryIO:
        member = self._tar.extractfile(name)
        if member is None:
            raise IsADirectoryError(f"{name} is not a regular file in {self.root}")
        return member

    def close(self) -> None:
        self._tar.close()


def open_source(path: Path) -> EntrySource:
    """Pick the source implementation for a directory, zip or tar path."""
    if path.is_dir():
        return DirectorySource(path)
    if not path.exists():
        raise SourceError(f"Source not found: {path}")
    try:
        if zipfile.is_zipfile(path):
            return ZipArchiveSource(path)
        if tarfile.is_tarfile(path):
            return TarArchiveSource(path)
    except OSError as exc:
        raise SourceError(f"Cannot read source {path}: {exc}") from exc
    raise SourceError(f"Unsupported source {path}: expected a directory, zip or tar archive")


class Scanner:
    """Reads the tags of every candidate entry of a source.

    Entry-level failures are logged and skipped; only a source that cannot be
    listed at all stops the scan.
    """

    def __init__(
        self,
        settings: Optional[ScanSettings] = None,
        *,
        log: Optional[logging.Logger] = None,
        reader: MetadataReader = read_metadata,
    ) -> None:
        self.settings = settings or ScanSettings()
        self.log = log or logger
        self.reader = reader
        self._exts = set(self.settings.include_extensions)

    def scan(self, source: EntrySource) -> Iterator[ScannedEntry]:
        for entry in source.entries():
            self.log.debug("Checking entry %s (file=%s)", entry.name, entry.is_file)
            if not entry.is_file:
                self.log.debug("Skipping directory %s", entry.name)
                continue
            if not self._should_include(entry.name):
                self.log.debug("Skipping excluded entry %s", entry.name)
                continue
            path = source.path_for(entry.name)
            try:
                with source.open(entry.name) as stream:
                    metadata = self.reader(stream, entry.name)
            except OSError as exc:
                self.log.warning("Error opening %s: %s", path, exc)
                continue
            except MetadataError as exc:
                self.log.warning("Error reading tags from %s: %s", path, exc)
                continue
            if self.log.isEnabledFor(logging.DEBUG):
                self.log.debug("Tags for %s:", path)
                for key, values in sorted(metadata.raw().items()):
                    self.log.debug("  %s: %s", key, "; ".join(values))
            yield ScannedEntry(name=entry.name, metadata=metadata)

    def _should_include(self, name: str) -> bool:
        basename = PurePosixPath(name).name
        if self._exts and PurePosixPath(basename).suffix.lower() not in self._exts:
            return False
        for pattern in self.settings.exclude_patterns:
            if fnmatch.fnmatch(basename, pattern) or fnmatch.fnmatch(name, pattern):
                return False
        return True
