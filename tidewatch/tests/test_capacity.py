import unittest
from datetime import datetime, timezone

from tidewatch.capacity import (
    capacity_snapshot,
    check_threshold_crossed,
    classify_severity,
    compute_percentage,
    diff_capacity,
    filter_by_activity_age,
    filter_by_threshold,
    format_channel_label,
    format_size,
    format_tokens,
    sessions_older_than,
    should_trigger_backup,
    sort_by_capacity,
    summarize_by_agent,
)
from tidewatch.tests.support import make_summary

_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class CapacityMathTests(unittest.TestCase):
    def test_percentage_rounds_to_one_decimal(self) -> None:
        self.assertEqual(compute_percentage(6000, 200_000), 3.0)
        self.assertEqual(compute_percentage(1, 3), 33.3)
        self.assertEqual(compute_percentage(2, 3), 66.7)
        self.assertEqual(compute_percentage(189_999, 200_000), 95.0)

    def test_percentage_for_empty_window_is_zero(self) -> None:
        self.assertEqual(compute_percentage(5000, 0), 0.0)
        self.assertEqual(compute_percentage(5000, -1), 0.0)

    def test_percentage_is_monotonic_in_usage(self) -> None:
        previous = -1.0
        for used in range(0, 250_001, 12_345):
            value = compute_percentage(used, 200_000)
            self.assertGreaterEqual(value, previous)
            previous = value

    def test_percentage_is_not_clamped(self) -> None:
        self.assertEqual(compute_percentage(250_000, 200_000), 125.0)

    def test_severity_bands(self) -> None:
        cases = {
            0.0: "ok",
            74.9: "ok",
            75.0: "warning",
            84.9: "warning",
            85.0: "elevated",
            90.0: "high",
            94.9: "high",
            95.0: "critical",
            130.0: "critical",
        }
        for percentage, expected in cases.items():
            with self.subTest(percentage=percentage):
                self.assertEqual(classify_severity(percentage), expected)

    def test_band_boundary_uses_rounded_percentage(self) -> None:
        self.assertEqual(classify_severity(compute_percentage(149_990, 200_000)), "warning")


class CapacityFilterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sessions = [
            make_summary("recent", 40.0, lastActivity="2026-10-18T11:30:00Z"),
            make_summary("boundary", 75.0, lastActivity="2026-10-18T10:00:00Z"),
            make_summary("stale", 90.0, lastActivity="2026-10-10T12:00:00Z"),
            make_summary("undated", 99.0, lastActivity="not-a-date"),
        ]

    def test_threshold_is_inclusive(self) -> None:
        kept = filter_by_threshold(self.sessions, 75)
        self.assertEqual([s.sessionId for s in kept], ["boundary", "stale", "undated"])

    def test_activity_window_is_inclusive(self) -> None:
        kept = filter_by_activity_age(self.sessions, 2, now=_NOW)
        self.assertEqual([s.sessionId for s in kept], ["recent", "boundary"])

    def test_older_than_is_strict(self) -> None:
        self.assertEqual([s.sessionId for s in sessions_older_than(self.sessions, 2, now=_NOW)], ["stale"])
        self.assertEqual(
            [s.sessionId for s in sessions_older_than(self.sessions, 1, now=_NOW)],
            ["boundary", "stale"],
        )

    def test_sort_is_descending_and_stable(self) -> None:
        sessions = [
            make_summary("a", 50.0),
            make_summary("b", 80.0),
            make_summary("c", 50.0),
            make_summary("d", 80.0),
        ]
        ordered = sort_by_capacity(sessions)
        self.assertEqual([s.sessionId for s in ordered], ["b", "d", "a", "c"])
        self.assertEqual([s.sessionId for s in sessions], ["a", "b", "c", "d"])


class CapacityFormattingTests(unittest.TestCase):
    def test_format_size(self) -> None:
        self.assertEqual(format_size(950), "950")
        self.assertEqual(format_size(1000), "1.0k")
        self.assertEqual(format_size(18_700), "18.7k")
        self.assertEqual(format_size(171_000), "171k")
        self.assertEqual(format_size(1_000_000), "1.0M")

    def test_format_tokens(self) -> None:
        self.assertEqual(format_tokens(18_700, 200_000), "18.7k/200k")
        self.assertEqual(format_tokens(18_700, 200_000, raw=True), "18,700/200,000")

    def test_format_channel_label(self) -> None:
        self.assertEqual(format_channel_label("discord", "#general"), "discord/#general")
        self.assertEqual(format_channel_label("webchat", None), "webchat")


class CapacityAlertTests(unittest.TestCase):
    def test_highest_unwarned_threshold_is_reported(self) -> None:
        thresholds = [75, 85, 90, 95]
        self.assertEqual(check_threshold_crossed(92.0, thresholds), 90)
        self.assertEqual(check_threshold_crossed(92.0, thresholds, warned=[90]), 85)
        self.assertIsNone(check_threshold_crossed(92.0, thresholds, warned=[75, 85, 90]))
        self.assertIsNone(check_threshold_crossed(50.0, thresholds))

    def test_backup_trigger_respects_enabled_flag(self) -> None:
        self.assertEqual(should_trigger_backup(91.0, [90, 95]), 90)
        self.assertIsNone(should_trigger_backup(91.0, [90, 95], backed_up=[90]))
        self.assertIsNone(should_trigger_backup(99.0, [90, 95], enabled=False))


class CapacityTrendTests(unittest.TestCase):
    def test_diff_against_previous_snapshot(self) -> None:
        previous = capacity_snapshot([
            make_summary("a", 50.0),
            make_summary("b", 60.0),
            make_summary("c", 70.0),
        ])
        current = [
            make_summary("a", 50.05),
            make_summary("b", 62.5),
            make_summary("c", 65.0),
            make_summary("d", 10.0),
        ]

        changes = diff_capacity(previous, current)

        self.assertEqual(changes[("main", "a")].type, "unchanged")
        self.assertEqual(changes[("main", "b")].type, "increased")
        self.assertEqual(changes[("main", "b")].delta, 2.5)
        self.assertEqual(changes[("main", "c")].type, "decreased")
        self.assertEqual(changes[("main", "c")].delta, 5.0)
        self.assertEqual(changes[("main", "d")].type, "new")

    def test_same_session_id_under_different_agents_is_distinct(self) -> None:
        previous = capacity_snapshot([make_summary("shared", 20.0, agentId="kintaro")])
        changes = diff_capacity(previous, [make_summary("shared", 20.0, agentId="motoko")])
        self.assertEqual(changes[("motoko", "shared")].type, "new")

    def test_summarize_by_agent(self) -> None:
        summaries = summarize_by_agent([
            make_summary("a", 10.0),
            make_summary("b", 90.0, agentId="kintaro", agentName="Kintaro"),
            make_summary("c", 20.0, agentId="main", agentName="main"),
        ])

        self.assertEqual([s.agentId for s in summaries], ["main", "kintaro"])
        self.assertEqual(summaries[0].count, 2)
        self.assertEqual(summaries[0].avgPercentage, 15.0)
        self.assertEqual(summaries[0].maxPercentage, 20.0)
        self.assertEqual(summaries[1].agentName, "Kintaro")
        self.assertEqual(summarize_by_agent([]), [])


if __name__ == "__main__":
    unittest.main()
