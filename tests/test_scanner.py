import io
import tarfile
import tempfile
import unittest
import zipfile
from pathlib import Path

from audio_fixtures import StubReader, StubRecord, write_zip_with_encrypted_first_member

from release_organizer.config import ScanSettings
from release_organizer.models import SourceError
from release_organizer.scanner import (
    DirectorySource,
    _ArchiveSource,
    Scanner,
    SourceEntry,
    TarArchiveSource,
    ZipArchiveSource,
    open_source,
)


class FlakySource:
    """In-memory source whose listed entries can fail to open."""

    action = "move"

    def __init__(self, names, failing=()) -> None:
        self.root = Path("/incoming")
        self.names = list(names)
        self.failing = set(failing)

    def entries(self):
        for name in self.names:
            yield SourceEntry(name, True)

    def open(self, name):
        if name in self.failing:
            raise PermissionError(f"permission denied: {name}")
        return io.BytesIO(b"")

    def path_for(self, name):
        return self.root / name


class TestScanner(unittest.TestCase):
    def test_directory_scan_skips_subdirectories(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "a.flac").write_bytes(b"a")
            (root / "b.flac").write_bytes(b"b")
            (root / "Old Release (2001)").mkdir()
            reader = StubReader({}, default=StubRecord(album="X", year=2020))
            scanned = list(Scanner(reader=reader).scan(DirectorySource(root)))
            self.assertEqual(sorted(entry.name for entry in scanned), ["a.flac", "b.flac"])
            self.assertNotIn("Old Release (2001)", reader.calls)

    def test_unreadable_entry_is_skipped_and_scan_continues(self) -> None:
        names = [f"{i}.flac" for i in range(1, 6)]
        source = FlakySource(names, failing={"3.flac"})
        reader = StubReader({}, default=StubRecord(album="X"))
        with self.assertLogs("release_organizer.scanner", level="WARNING") as captured:
            scanned = list(Scanner(reader=reader).scan(source))
        self.assertEqual([entry.name for entry in scanned], ["1.flac", "2.flac", "4.flac", "5.flac"])
        self.assertEqual(len(captured.output), 1)
        self.assertIn("3.flac", captured.output[0])

    def test_metadata_errors_are_logged_and_skipped(self) -> None:
        source = FlakySource(["good.flac", "cover.jpg"])
        reader = StubReader({"good.flac": StubRecord(album="X")})
        with self.assertLogs("release_organizer.scanner", level="WARNING") as captured:
            scanned = list(Scanner(reader=reader).scan(source))
        self.assertEqual([entry.name for entry in scanned], ["good.flac"])
        self.assertIn("Error reading tags from", captured.output[0])

    def test_include_and_exclude_filters(self) -> None:
        source = FlakySource(["a.flac", "b.MP3", "cover.jpg", "sample.flac"])
        settings = ScanSettings(include_extensions=["flac", ".mp3"], exclude_patterns=["sample*"])
        reader = StubReader({}, default=StubRecord())
        scanned = list(Scanner(settings, reader=reader).scan(source))
        self.assertEqual([entry.name for entry in scanned], ["a.flac", "b.MP3"])
        self.assertEqual(reader.calls, ["a.flac", "b.MP3"])

    def test_zip_source_reads_members_and_skips_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            archive = Path(tmpdir) / "release.zip"
            with zipfile.ZipFile(archive, "w") as zf:
                zf.writestr("disc1/", b"")
                zf.writestr("disc1/01.flac", b"one")
                zf.writestr("02.flac", b"two")
            reader = StubReader({}, default=StubRecord(album="Z"))
            with open_source(archive) as source:
                self.assertIsInstance(source, ZipArchiveSource)
                self.assertEqual(source.action, "extract")
                scanned = list(Scanner(reader=reader).scan(source))
            self.assertEqual([entry.name for entry in scanned], ["disc1/01.flac", "02.flac"])

    def test_encrypted_zip_member_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            archive = Path(tmpdir) / "release.zip"
            write_zip_with_encrypted_first_member(archive, {"01.flac": b"one", "02.flac": b"two"})
            reader = StubReader({}, default=StubRecord(album="Z"))
            with open_source(archive) as source:
                with self.assertLogs("release_organizer.scanner", level="WARNING") as captured:
                    scanned = list(Scanner(reader=reader).scan(source))
            self.assertEqual([entry.name for entry in scanned], ["02.flac"])
            self.assertIn("01.flac", captured.output[0])
            self.assertIn("encrypted", captured.output[0])

    def test_archive_base_class_is_abstract(self) -> None:
        with self.assertRaises(TypeError):
            _ArchiveSource(Path("release.zip"))  # type: ignore[abstract]

    def test_tar_source_lists_regular_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            archive = Path(tmpdir) / "release.tar.gz"
            with tarfile.open(archive, "w:gz") as tf:
                info = tarfile.TarInfo("01.flac")
                info.size = 3
                tf.addfile(info, io.BytesIO(b"one"))
                folder = tarfile.TarInfo("extras")
                folder.type = tarfile.DIRTYPE
                tf.addfile(folder)
            with open_source(archive) as source:
                self.assertIsInstance(source, TarArchiveSource)
                entries = list(source.entries())
                with source.open("01.flac") as stream:
                    self.assertEqual(stream.read(), b"one")
            self.assertEqual(entries, [SourceEntry("01.flac", True), SourceEntry("extras", False)])

    def test_missing_source_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(SourceError):
                open_source(Path(tmpdir) / "nope")

    def test_unsupported_source_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            blob = Path(tmpdir) / "notes.txt"
            blob.write_text("hello", encoding="utf-8")
            with self.assertRaises(SourceError):
                open_source(blob)

    def test_unlistable_directory_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            source = DirectorySource(Path(tmpdir) / "gone")
            with self.assertRaises(SourceError):
                list(Scanner(reader=StubReader({})).scan(source))


if __name__ == "__main__":
    unittest.main()
