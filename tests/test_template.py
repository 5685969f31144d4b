import unittest

from audio_fixtures import StubRecord

from release_organizer.models import TemplateError
from release_organizer.template import DEFAULT_FORMAT, Placeholder, compile_format


class TestCompileFormat(unittest.TestCase):
    def test_default_format_renders_name_and_year(self) -> None:
        formatter = compile_format(DEFAULT_FORMAT)
        self.assertEqual(formatter(StubRecord(album="Night Drive", year=2024)), "Night Drive (2024)")

    def test_missing_tags_render_empty(self) -> None:
        formatter = compile_format(DEFAULT_FORMAT)
        self.assertEqual(formatter(StubRecord()), " ()")

    def test_literal_only_format_is_returned_unchanged(self) -> None:
        formatter = compile_format("Unsorted/Incoming")
        self.assertEqual(formatter(StubRecord(album="X", year=1999)), "Unsorted/Incoming")
        self.assertEqual(formatter.placeholders, ())

    def test_unknown_placeholder_stays_literal(self) -> None:
        formatter = compile_format("{{foo}} {{release_name}}")
        self.assertEqual(formatter(StubRecord(album="Blue")), "{{foo}} Blue")

    def test_every_placeholder(self) -> None:
        formatter = compile_format(
            "{{release_artists}} - {{release_name}} [{{release_date}}] {{release_year}}"
        )
        meta = StubRecord(
            album="Split", year=2003, release_date="2003-05-01", artists=["A", "B"]
        )
        self.assertEqual(formatter(meta), "A, B - Split [2003-05-01] 2003")
        self.assertEqual(
            formatter.placeholders,
            (
                Placeholder.RELEASE_ARTISTS,
                Placeholder.RELEASE_NAME,
                Placeholder.RELEASE_DATE,
                Placeholder.RELEASE_YEAR,
            ),
        )

    def test_repeated_placeholder(self) -> None:
        formatter = compile_format("{{release_year}}/{{release_year}}")
        self.assertEqual(formatter(StubRecord(year=1987)), "1987/1987")

    def test_unterminated_token_is_literal(self) -> None:
        formatter = compile_format("{{release_name")
        self.assertEqual(formatter(StubRecord(album="A")), "{{release_name")

    def test_formatter_is_reusable(self) -> None:
        formatter = compile_format(DEFAULT_FORMAT)
        first = formatter(StubRecord(album="One", year=2001))
        second = formatter(StubRecord(album="Two", year=2002))
        self.assertEqual((first, second), ("One (2001)", "Two (2002)"))
        self.assertEqual(formatter.source, DEFAULT_FORMAT)

    def test_non_string_format_is_rejected(self) -> None:
        with self.assertRaises(TemplateError):
            compile_format(None)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
