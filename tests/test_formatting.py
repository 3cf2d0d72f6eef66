import unittest
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from relaybot.formatting.bounded_text import bound_text
from relaybot.formatting.digest_format import (
    digest_header,
    format_message,
    render_record_lines,
)
from relaybot.ingestion.record_types import NormalizedRecord


class TestBoundText(unittest.TestCase):
    def test_short_text_is_untouched(self):
        self.assertEqual(bound_text("hello", 10), "hello")

    def test_cut_is_exact_and_ignores_word_boundaries(self):
        self.assertEqual(bound_text("hello world", 7), "hello w")

    def test_negative_limit_rejected(self):
        with self.assertRaises(ValueError):
            bound_text("x", -1)


class TestFormatMessage(unittest.TestCase):
    def test_header_blank_line_body(self):
        self.assertEqual(format_message("Head", ["a", "b"], 100), "Head\n\na\nb")

    def test_empty_body_is_header_only(self):
        self.assertEqual(format_message("Head", [], 100), "Head")

    def test_never_exceeds_limit(self):
        for body_len in (0, 10, 1899, 1900, 5000, 100000):
            out = format_message("Header", ["x" * body_len], 1900)
            self.assertLessEqual(len(out), 1900)

    def test_oversized_digest_is_cut_to_exactly_the_limit(self):
        records = [
            NormalizedRecord(title="T" * 280, link=f"https://example.com/{i}", timestamp=None)
            for i in range(10)
        ]
        lines = render_record_lines(records)
        full = "Top Stories\n\n" + "\n".join(lines)
        self.assertGreater(len(full), 3000)
        out = format_message("Top Stories", lines, 1900)
        self.assertEqual(len(out), 1900)
        self.assertEqual(out, full[:1900])


class TestRenderRecordLines(unittest.TestCase):
    def test_item_layout(self):
        records = [
            NormalizedRecord(title="First", link="https://a", timestamp=datetime(2026, 10, 14, 9, 30, tzinfo=timezone.utc)),
            NormalizedRecord(title="Second", link="https://b"),
        ]
        lines = render_record_lines(records)
        self.assertEqual(lines, ["1. First (Oct 14, 09:30)", "https://a", "", "2. Second", "https://b"])

    def test_timestamp_rendered_in_timezone(self):
        rec = NormalizedRecord(title="T", link="L", timestamp=datetime(2026, 10, 14, 13, 0, tzinfo=timezone.utc))
        lines = render_record_lines([rec], ZoneInfo("America/New_York"))
        self.assertEqual(lines[0], "1. T (Oct 14, 09:00)")

    def test_header_uses_local_date(self):
        now = datetime(2026, 10, 17, 2, 0, tzinfo=timezone.utc)
        self.assertEqual(digest_header("News", now, ZoneInfo("America/Los_Angeles")), "News — Oct 16, 2026")


if __name__ == "__main__":
    unittest.main()
