from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from threading import Lock, RLock
from typing import Any, Iterator
import random
import shutil

import yaml

from .booking import ROOM_NUMBERS, Reservation, find_conflict
from .errors import (
    ConcurrencyConflictError,
    OverlapError,
    ReservationNotFoundError,
    ReservationStorageError,
)
from .timezones import to_utc

SAMPLE_TIME_ZONES = ("Europe/Helsinki", "America/New_York", "Asia/Seoul", "UTC", "Australia/Sydney")
SAMPLE_RESERVERS = ("Aino", "Mikko", "Sara", "Jun", "Olivia", "Ravi", "Leena")


def reservation_to_dict(reservation: Reservation) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "reservation_id": reservation.reservation_id,
        "room_number": reservation.room_number,
        "start": _utc(reservation.start).isoformat(timespec="seconds"),
        "end": _utc(reservation.end).isoformat(timespec="seconds"),
        "reserver_name": reservation.reserver_name,
        "time_zone_id": reservation.time_zone_id,
        "version": reservation.version,
    }
    if reservation.created_at is not None:
        payload["created_at"] = _utc(reservation.created_at).isoformat(timespec="seconds")
    if reservation.updated_at is not None:
        payload["updated_at"] = _utc(reservation.updated_at).isoformat(timespec="seconds")
    return payload


def reservation_from_dict(data: dict[str, Any]) -> Reservation:
    return Reservation(
        reservation_id=int(data["reservation_id"]),
        room_number=int(data["room_number"]),
        start=_parse_utc(data["start"]),
        end=_parse_utc(data["end"]),
        reserver_name=str(data["reserver_name"]),
        time_zone_id=str(data["time_zone_id"]),
        version=int(data.get("version", 1)),
        created_at=(_parse_utc(data["created_at"]) if data.get("created_at") is not None else None),
        updated_at=(_parse_utc(data["updated_at"]) if data.get("updated_at") is not None else None),
    )


class ReservationYamlRepository:
    """Reservation store backed by YAML files in ``base_dir``.

    Mutations for one room are serialized through :meth:`room_lock`; callers
    hold it across the read-validate-write sequence. ``insert`` and ``update``
    also refuse writes that would overlap a stored reservation in the same room.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.sequence_file = self.base_dir / "reservation_sequence.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._file_lock = RLock()
        self._room_locks: dict[int, RLock] = {}
        self._room_locks_guard = Lock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.reservations_file, self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")
        if not self.sequence_file.exists():
            self.sequence_file.write_text("last_id: 0\n", encoding="utf-8")

    @contextmanager
    def room_lock(self, *room_numbers: int) -> Iterator[None]:
        """Hold the locks of ``room_numbers`` for the duration of the block.

        Locks are taken in ascending room order so an update moving a
        reservation between two rooms cannot deadlock with the reverse move.
        """
        locks = [self._lock_for_room(room) for room in sorted(set(room_numbers))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    def _lock_for_room(self, room_number: int) -> RLock:
        with self._room_locks_guard:
            lock = self._room_locks.get(room_number)
            if lock is None:
                lock = RLock()
                self._room_locks[room_number] = lock
            return lock

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml(self, path: Path, payload: Any) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            pass

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = _utc(event_time or datetime.now(timezone.utc)).isoformat(timespec="seconds")
        with self._file_lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml(self.log_file, events)

    def _next_id(self) -> int:
        try:
            payload = yaml.safe_load(self.sequence_file.read_text(encoding="utf-8")) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            payload = {}
        last_id = int(payload.get("last_id", 0)) if isinstance(payload, dict) else 0

        # Never hand out an id that is already stored, even if the sequence file was lost.
        stored_ids = [int(row["reservation_id"]) for row in self._read_yaml_list(self.reservations_file) if "reservation_id" in row]
        next_id = max([last_id, *stored_ids]) + 1
        self._write_yaml(self.sequence_file, {"last_id": next_id})
        return next_id

    def _load_all(self) -> list[Reservation]:
        records: list[Reservation] = []
        for index, row in enumerate(self._read_yaml_list(self.reservations_file)):
            try:
                records.append(reservation_from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(self.reservations_file.name),
                        "index": index,
                        "reason": f"invalid reservation row: {error}",
                    },
                )
        return records

    def list_all(self) -> list[Reservation]:
        with self._file_lock:
            records = self._load_all()
        return sorted(records, key=lambda record: (record.start, record.room_number))

    def find_by_room(self, room_number: int) -> list[Reservation]:
        with self._file_lock:
            records = self._load_all()
        return [record for record in records if record.room_number == room_number]

    def find_by_id(self, reservation_id: int) -> Reservation | None:
        with self._file_lock:
            for record in self._load_all():
                if record.reservation_id == reservation_id:
                    return record
        return None

    def list_paged(self, from_instant: datetime, page_number: int, page_size: int) -> list[Reservation]:
        """Return one page of reservations starting at or after ``from_instant``.

        Page bounds are expected to be clamped by the caller.
        """
        threshold = _utc(from_instant)
        upcoming = [record for record in self.list_all() if record.start >= threshold]
        offset = (page_number - 1) * page_size
        return upcoming[offset : offset + page_size]

    def insert(self, reservation: Reservation, now: datetime | None = None) -> Reservation:
        effective_now = _utc(now or datetime.now(timezone.utc))
        with self.room_lock(reservation.room_number), self._file_lock:
            records = self._load_all()
            if find_conflict(reservation, records) is not None:
                raise OverlapError(
                    f"Reservation for room {reservation.room_number} overlaps with an existing reservation for the same room."
                )

            created = replace(
                reservation,
                reservation_id=self._next_id(),
                version=1,
                created_at=effective_now,
                updated_at=effective_now,
            )
            rows = [reservation_to_dict(record) for record in records]
            rows.append(reservation_to_dict(created))
            self._write_yaml(self.reservations_file, rows)

        self._log_event("RESERVATION_CREATED", _event_payload(created), effective_now)
        return created

    def update(self, reservation: Reservation, expected_version: int, now: datetime | None = None) -> Reservation:
        """Replace the stored record with ``reservation``.

        Raises ReservationNotFoundError when the record is gone and
        ConcurrencyConflictError when it changed since ``expected_version`` was read.
        """
        if reservation.reservation_id is None:
            raise ValueError("reservation_id is required to update a reservation")

        effective_now = _utc(now or datetime.now(timezone.utc))
        with self.room_lock(reservation.room_number), self._file_lock:
            records = self._load_all()
            found_index = -1
            for index, record in enumerate(records):
                if record.reservation_id == reservation.reservation_id:
                    found_index = index
                    break

            if found_index < 0:
                raise ReservationNotFoundError(reservation.reservation_id)

            current = records[found_index]
            if current.version != expected_version:
                raise ConcurrencyConflictError(
                    f"Reservation {reservation.reservation_id} was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})."
                )
            if find_conflict(reservation, records, exclude_id=reservation.reservation_id) is not None:
                raise OverlapError(
                    f"Reservation for room {reservation.room_number} overlaps with an existing reservation for the same room."
                )

            updated = replace(
                reservation,
                version=current.version + 1,
                created_at=current.created_at,
                updated_at=effective_now,
            )
            records[found_index] = updated
            self._write_yaml(self.reservations_file, [reservation_to_dict(record) for record in records])

        self._log_event("RESERVATION_UPDATED", _event_payload(updated), effective_now)
        return updated

    def delete(self, reservation_id: int, now: datetime | None = None) -> Reservation:
        effective_now = _utc(now or datetime.now(timezone.utc))
        with self._file_lock:
            records = self._load_all()
            remaining = [record for record in records if record.reservation_id != reservation_id]
            if len(remaining) == len(records):
                raise ReservationNotFoundError(reservation_id)

            deleted = next(record for record in records if record.reservation_id == reservation_id)
            self._write_yaml(self.reservations_file, [reservation_to_dict(record) for record in remaining])

        self._log_event("RESERVATION_DELETED", _event_payload(deleted), effective_now)
        return deleted

    def read_events(self) -> list[dict[str, Any]]:
        with self._file_lock:
            return self._read_yaml_list(self.log_file)

    def seed_test_data(
        self,
        now: datetime | None = None,
        count_per_room: int = 3,
        overwrite: bool = True,
    ) -> list[Reservation]:
        effective_now = _utc(now or datetime.now(timezone.utc))
        generated = generate_test_reservations(effective_now.date(), count_per_room=count_per_room)

        if overwrite:
            with self.room_lock(*ROOM_NUMBERS), self._file_lock:
                self._write_yaml(self.reservations_file, [])

        stored: list[Reservation] = []
        for reservation in generated:
            try:
                stored.append(self.insert(reservation, now=effective_now))
            except OverlapError:
                # Slot already taken by data kept from a previous seed.
                continue

        self._log_event(
            "TEST_DATA_GENERATED",
            {
                "count": len(stored),
                "rooms": list(ROOM_NUMBERS),
                "count_per_room": count_per_room,
                "overwrite": overwrite,
            },
            effective_now,
        )
        return stored


def generate_test_reservations(start_date: date, count_per_room: int = 3) -> list[Reservation]:
    """Build non-overlapping sample reservations for every room, starting two days after ``start_date``."""
    if count_per_room <= 0:
        raise ValueError("count_per_room must be greater than zero")

    rng = random.Random(f"rooms:{start_date.isoformat()}:{count_per_room}")
    records: list[Reservation] = []
    for room_number in ROOM_NUMBERS:
        day = start_date + timedelta(days=2)
        for _ in range(count_per_room):
            time_zone_id = rng.choice(SAMPLE_TIME_ZONES)
            start_hour = rng.randint(8, 16)
            duration_minutes = rng.choice([30, 60, 90, 120])
            local_start = datetime(day.year, day.month, day.day, start_hour, rng.choice([0, 15, 30, 45]))
            local_end = local_start + timedelta(minutes=duration_minutes)
            records.append(
                Reservation(
                    room_number=room_number,
                    start=to_utc(local_start, time_zone_id),
                    end=to_utc(local_end, time_zone_id),
                    reserver_name=rng.choice(SAMPLE_RESERVERS),
                    time_zone_id=time_zone_id,
                )
            )
            # Two days apart keeps a room free of overlaps whatever the zones.
            day += timedelta(days=2)
    return records


def _event_payload(reservation: Reservation) -> dict[str, Any]:
    return {
        "reservation_id": reservation.reservation_id,
        "room_number": reservation.room_number,
        "start": _utc(reservation.start).isoformat(timespec="seconds"),
        "end": _utc(reservation.end).isoformat(timespec="seconds"),
        "time_zone_id": reservation.time_zone_id,
        "version": reservation.version,
    }


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_utc(value: Any) -> datetime:
    if isinstance(value, datetime):
        return _utc(value)
    return _utc(datetime.fromisoformat(str(value)))
