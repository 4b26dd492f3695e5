import unittest
from datetime import datetime, timedelta, timezone

from tidewatch.date_utils import (
    DurationFormatError,
    format_relative_time,
    hours_since,
    normalize_timestamp,
    parse_duration_hours,
    parse_timestamp,
)

_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _ago(**delta) -> str:
    return (_NOW - timedelta(**delta)).isoformat().replace("+00:00", "Z")


class RelativeTimeTests(unittest.TestCase):
    def test_relative_time_buckets(self) -> None:
        cases = [
            (_ago(seconds=30), "just now"),
            (_ago(seconds=59), "just now"),
            (_ago(minutes=5), "5m ago"),
            (_ago(minutes=59, seconds=59), "59m ago"),
            (_ago(hours=3), "3h ago"),
            (_ago(days=2), "2d ago"),
            (_ago(days=14), "2w ago"),
            (_ago(days=45), "1mo ago"),
            (_ago(days=400), "1y ago"),
        ]
        for timestamp, expected in cases:
            with self.subTest(timestamp=timestamp):
                self.assertEqual(format_relative_time(timestamp, now=_NOW), expected)

    def test_unparseable_timestamp_is_unknown(self) -> None:
        self.assertEqual(format_relative_time("yesterday-ish", now=_NOW), "unknown")
        self.assertEqual(format_relative_time(None, now=_NOW), "unknown")

    def test_epoch_seconds_and_milliseconds_agree(self) -> None:
        seconds = int(_NOW.timestamp())
        self.assertEqual(parse_timestamp(seconds), _NOW)
        self.assertEqual(parse_timestamp(seconds * 1000), _NOW)

    def test_naive_strings_are_treated_as_utc(self) -> None:
        self.assertEqual(parse_timestamp("2026-10-18T12:00:00"), _NOW)
        self.assertEqual(hours_since("2026-10-18T09:00:00Z", now=_NOW), 3.0)
        self.assertIsNone(hours_since("garbage", now=_NOW))

    def test_normalize_timestamp(self) -> None:
        self.assertEqual(normalize_timestamp(" 2026-10-18T12:00:00Z "), "2026-10-18T12:00:00Z")
        self.assertEqual(normalize_timestamp(int(_NOW.timestamp())), "2026-10-18T12:00:00.000Z")
        self.assertEqual(normalize_timestamp(None), "")
        self.assertEqual(normalize_timestamp(True), "")


class DurationParsingTests(unittest.TestCase):
    def test_units(self) -> None:
        self.assertEqual(parse_duration_hours("30m"), 0.5)
        self.assertEqual(parse_duration_hours("12h"), 12)
        self.assertEqual(parse_duration_hours("4d"), 96)
        self.assertEqual(parse_duration_hours("2w"), 336)
        self.assertEqual(parse_duration_hours("1mo"), 720)
        self.assertEqual(parse_duration_hours("1y"), 8760)

    def test_invalid_formats_raise(self) -> None:
        for value in ("", "4", "d", "4x", "-1d", "1.5h", "4 d", "4D"):
            with self.subTest(value=value):
                with self.assertRaises(DurationFormatError) as ctx:
                    parse_duration_hours(value)
                self.assertIn("<integer><unit>", str(ctx.exception))

    def test_duration_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            parse_duration_hours("soon")


if __name__ == "__main__":
    unittest.main()
