import unittest
from datetime import datetime, timedelta, timezone

from room_reservation import InvalidTimeZoneError, from_utc, to_utc, validate_time_zone
from room_reservation.timezones import is_ambiguous, is_nonexistent


class TestValidateTimeZone(unittest.TestCase):
    def test_known_zone_resolves(self) -> None:
        self.assertEqual(str(validate_time_zone("Europe/Helsinki")), "Europe/Helsinki")

    def test_unknown_zone_is_rejected_with_its_name(self) -> None:
        for bad in ("Mars/Phobos", "", "   ", "../etc/passwd", "Europe", None, 42):
            with self.assertRaises(InvalidTimeZoneError) as context:
                validate_time_zone(bad)
            self.assertEqual(context.exception.kind, "InvalidTimeZone")

        with self.assertRaises(InvalidTimeZoneError) as context:
            validate_time_zone("Mars/Phobos")
        self.assertIn("Mars/Phobos", context.exception.message)


class TestConversion(unittest.TestCase):
    def test_helsinki_summer_offset(self) -> None:
        instant = to_utc(datetime(2025, 6, 1, 9, 0), "Europe/Helsinki")
        self.assertEqual(instant, datetime(2025, 6, 1, 6, 0, tzinfo=timezone.utc))
        self.assertEqual(instant.utcoffset(), timedelta(0))

    def test_to_utc_never_falls_back_to_utc(self) -> None:
        with self.assertRaises(InvalidTimeZoneError):
            to_utc(datetime(2025, 6, 1, 9, 0), "Mars/Phobos")

    def test_aware_input_is_already_absolute(self) -> None:
        aware = datetime(2025, 6, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(to_utc(aware, "Asia/Seoul"), datetime(2025, 6, 1, 7, 0, tzinfo=timezone.utc))

    def test_from_utc_projects_to_naive_local(self) -> None:
        local = from_utc(datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc), "America/New_York")
        self.assertEqual(local, datetime(2025, 1, 15, 7, 0))
        self.assertIsNone(local.tzinfo)

    def test_round_trip_across_zones(self) -> None:
        zones = ["Europe/Helsinki", "America/New_York", "Asia/Kolkata", "Australia/Sydney", "UTC"]
        start = datetime(2025, 1, 1, 0, 30)
        for zone in zones:
            for step in range(0, 365 * 24, 7):
                local = start + timedelta(hours=step)
                if is_nonexistent(local, zone):
                    continue
                self.assertEqual(from_utc(to_utc(local, zone), zone), local, f"{zone} {local}")

    def test_ambiguous_time_prefers_earlier_instant(self) -> None:
        # 2025-11-02 01:30 happens twice in New York: first as EDT, then as EST.
        local = datetime(2025, 11, 2, 1, 30)
        self.assertTrue(is_ambiguous(local, "America/New_York"))
        self.assertEqual(to_utc(local, "America/New_York"), datetime(2025, 11, 2, 5, 30, tzinfo=timezone.utc))
        self.assertEqual(from_utc(to_utc(local, "America/New_York"), "America/New_York"), local)

    def test_nonexistent_time_moves_forward(self) -> None:
        # 2025-03-09 02:30 is skipped in New York.
        local = datetime(2025, 3, 9, 2, 30)
        self.assertTrue(is_nonexistent(local, "America/New_York"))
        self.assertFalse(is_ambiguous(local, "America/New_York"))
        instant = to_utc(local, "America/New_York")
        self.assertEqual(instant, datetime(2025, 3, 9, 7, 30, tzinfo=timezone.utc))
        self.assertEqual(from_utc(instant, "America/New_York"), datetime(2025, 3, 9, 3, 30))

    def test_regular_time_is_neither_ambiguous_nor_nonexistent(self) -> None:
        local = datetime(2025, 6, 1, 9, 0)
        self.assertFalse(is_ambiguous(local, "Europe/Helsinki"))
        self.assertFalse(is_nonexistent(local, "Europe/Helsinki"))


if __name__ == "__main__":
    unittest.main()
