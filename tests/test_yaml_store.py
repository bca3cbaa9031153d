import tempfile
import threading
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

from room_reservation import (
    ConcurrencyConflictError,
    OverlapError,
    Reservation,
    ReservationNotFoundError,
    ReservationStorageError,
    ReservationYamlRepository,
    generate_test_reservations,
)

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def _reservation(room_number: int, start_hour: int, end_hour: int, day: int = 1) -> Reservation:
    return Reservation(
        room_number=room_number,
        start=datetime(2025, 6, day, start_hour, 0, tzinfo=timezone.utc),
        end=datetime(2025, 6, day, end_hour, 0, tzinfo=timezone.utc),
        reserver_name="Mikko",
        time_zone_id="Europe/Helsinki",
    )


class TestGenerateTestReservations(unittest.TestCase):
    def test_generates_non_overlapping_reservations_for_every_room(self) -> None:
        records = generate_test_reservations(date(2025, 5, 1), count_per_room=4)

        self.assertEqual(len(records), 20)
        self.assertEqual({record.room_number for record in records}, {1, 2, 3, 4, 5})
        for record in records:
            self.assertLess(record.start, record.end)
            self.assertGreater(record.start, NOW)
            same_room = [other for other in records if other.room_number == record.room_number and other is not record]
            self.assertFalse(any(other.start < record.end and other.end > record.start for other in same_room))

    def test_generation_is_deterministic(self) -> None:
        first = generate_test_reservations(date(2025, 5, 1))
        second = generate_test_reservations(date(2025, 5, 1))
        self.assertEqual(first, second)

    def test_rejects_non_positive_count(self) -> None:
        with self.assertRaises(ValueError):
            generate_test_reservations(date(2025, 5, 1), count_per_room=0)


class TestReservationYamlRepository(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        self.repo = ReservationYamlRepository(self.data_dir)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_insert_assigns_sequential_ids_and_persists(self) -> None:
        first = self.repo.insert(_reservation(1, 9, 10), now=NOW)
        second = self.repo.insert(_reservation(1, 10, 11), now=NOW)

        self.assertEqual((first.reservation_id, second.reservation_id), (1, 2))
        self.assertEqual(first.version, 1)
        self.assertEqual(first.created_at, NOW)

        reopened = ReservationYamlRepository(self.data_dir)
        self.assertEqual(reopened.find_by_id(2), second)
        self.assertEqual(reopened.find_by_room(1), [first, second])

    def test_ids_are_not_reused_after_delete(self) -> None:
        self.repo.insert(_reservation(1, 9, 10), now=NOW)
        second = self.repo.insert(_reservation(1, 10, 11), now=NOW)
        self.repo.delete(second.reservation_id, now=NOW)

        third = self.repo.insert(_reservation(1, 12, 13), now=NOW)
        self.assertEqual(third.reservation_id, 3)

    def test_find_by_room_only_returns_that_room(self) -> None:
        self.repo.insert(_reservation(1, 9, 10), now=NOW)
        self.repo.insert(_reservation(2, 9, 10), now=NOW)

        self.assertEqual([record.room_number for record in self.repo.find_by_room(2)], [2])
        self.assertEqual(self.repo.find_by_room(4), [])

    def test_insert_refuses_overlapping_write(self) -> None:
        self.repo.insert(_reservation(3, 9, 10), now=NOW)
        with self.assertRaises(OverlapError):
            self.repo.insert(_reservation(3, 9, 11), now=NOW)
        self.assertEqual(len(self.repo.list_all()), 1)

    def test_update_bumps_version_and_keeps_created_at(self) -> None:
        created = self.repo.insert(_reservation(1, 9, 10), now=NOW)
        later = NOW + timedelta(minutes=5)

        updated = self.repo.update(
            _reservation(2, 13, 14).with_id(created.reservation_id),
            expected_version=created.version,
            now=later,
        )

        self.assertEqual(updated.version, 2)
        self.assertEqual(updated.room_number, 2)
        self.assertEqual(updated.created_at, NOW)
        self.assertEqual(updated.updated_at, later)
        self.assertEqual(self.repo.find_by_id(created.reservation_id), updated)

    def test_update_with_stale_version_conflicts(self) -> None:
        created = self.repo.insert(_reservation(1, 9, 10), now=NOW)
        self.repo.update(_reservation(1, 10, 11).with_id(created.reservation_id), expected_version=1, now=NOW)

        with self.assertRaises(ConcurrencyConflictError):
            self.repo.update(_reservation(1, 11, 12).with_id(created.reservation_id), expected_version=1, now=NOW)

    def test_update_of_deleted_record_is_not_found(self) -> None:
        created = self.repo.insert(_reservation(1, 9, 10), now=NOW)
        self.repo.delete(created.reservation_id, now=NOW)

        with self.assertRaises(ReservationNotFoundError):
            self.repo.update(_reservation(1, 10, 11).with_id(created.reservation_id), expected_version=1, now=NOW)

    def test_update_refuses_overlap_with_other_record(self) -> None:
        self.repo.insert(_reservation(1, 9, 10), now=NOW)
        second = self.repo.insert(_reservation(1, 10, 11), now=NOW)

        with self.assertRaises(OverlapError):
            self.repo.update(_reservation(1, 9, 11).with_id(second.reservation_id), expected_version=1, now=NOW)

    def test_delete_missing_id_raises_not_found(self) -> None:
        with self.assertRaises(ReservationNotFoundError) as context:
            self.repo.delete(99, now=NOW)
        self.assertEqual(context.exception.kind, "NotFound")
        self.assertIn("99", context.exception.message)

    def test_list_paged_orders_by_start_and_skips_pages(self) -> None:
        for day in (5, 3, 1, 4, 2):
            self.repo.insert(_reservation(1, 9, 10, day=day), now=NOW)

        threshold = datetime(2025, 6, 2, 0, 0, tzinfo=timezone.utc)
        first_page = self.repo.list_paged(threshold, 1, 2)
        second_page = self.repo.list_paged(threshold, 2, 2)
        third_page = self.repo.list_paged(threshold, 3, 2)

        self.assertEqual([record.start.day for record in first_page], [2, 3])
        self.assertEqual([record.start.day for record in second_page], [4, 5])
        self.assertEqual(third_page, [])

    def test_logs_create_update_delete_events(self) -> None:
        created = self.repo.insert(_reservation(1, 9, 10), now=NOW)
        self.repo.update(_reservation(1, 10, 11).with_id(created.reservation_id), expected_version=1, now=NOW)
        self.repo.delete(created.reservation_id, now=NOW)

        event_types = [event["event_type"] for event in self.repo.read_events()]
        self.assertEqual(event_types, ["RESERVATION_CREATED", "RESERVATION_UPDATED", "RESERVATION_DELETED"])

    def test_corrupted_yaml_is_backed_up_and_reset(self) -> None:
        self.repo.reservations_file.write_text("- [unclosed\n", encoding="utf-8")

        self.assertEqual(self.repo.list_all(), [])
        backups = list(self.data_dir.glob("reservations.corrupt.*.yaml"))
        self.assertEqual(len(backups), 1)
        self.assertIn("YAML_RECOVERED", [event["event_type"] for event in self.repo.read_events()])

    def test_invalid_rows_are_skipped(self) -> None:
        created = self.repo.insert(_reservation(1, 9, 10), now=NOW)
        contents = self.repo.reservations_file.read_text(encoding="utf-8")
        self.repo.reservations_file.write_text(contents + "- just a string\n- {room_number: 2}\n", encoding="utf-8")

        self.assertEqual(self.repo.list_all(), [created])
        skipped = [event for event in self.repo.read_events() if event["event_type"] == "YAML_ROW_SKIPPED"]
        self.assertEqual(len(skipped), 2)

    def test_write_failure_raises_storage_error(self) -> None:
        with mock.patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with self.assertRaises(ReservationStorageError):
                self.repo.insert(_reservation(1, 9, 10), now=NOW)

    def test_seed_test_data_writes_reservations(self) -> None:
        self.repo.insert(_reservation(1, 9, 10), now=NOW)
        seeded = self.repo.seed_test_data(now=NOW, count_per_room=2, overwrite=True)

        self.assertEqual(len(seeded), 10)
        self.assertEqual(len(self.repo.list_all()), 10)
        self.assertIn("TEST_DATA_GENERATED", [event["event_type"] for event in self.repo.read_events()])

    def test_room_lock_serializes_same_room(self) -> None:
        order: list[str] = []
        entered = threading.Event()
        release = threading.Event()

        def hold_room() -> None:
            with self.repo.room_lock(3):
                order.append("first")
                entered.set()
                release.wait(timeout=5)

        def wait_for_room() -> None:
            with self.repo.room_lock(3, 1):
                order.append("second")

        holder = threading.Thread(target=hold_room)
        holder.start()
        entered.wait(timeout=5)
        waiter = threading.Thread(target=wait_for_room)
        waiter.start()
        waiter.join(timeout=0.2)
        self.assertTrue(waiter.is_alive())

        release.set()
        holder.join(timeout=5)
        waiter.join(timeout=5)
        self.assertEqual(order, ["first", "second"])


if __name__ == "__main__":
    unittest.main()
