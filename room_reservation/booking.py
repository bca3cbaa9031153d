from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable

from .errors import InvalidFieldError, InvalidIntervalError, OverlapError, PastStartError

ROOM_NUMBERS = range(1, 6)
MAX_RESERVER_NAME_LENGTH = 100


@dataclass(frozen=True)
class Reservation:
    """A stored reservation. ``start``/``end`` are aware UTC instants."""

    room_number: int
    start: datetime
    end: datetime
    reserver_name: str
    time_zone_id: str
    reservation_id: int | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidIntervalError(_interval_message(self.start, self.end))

    def with_id(self, reservation_id: int | None) -> "Reservation":
        return replace(self, reservation_id=reservation_id)


@dataclass(frozen=True)
class LocalReservation:
    """A reservation projected to the reserver's wall-clock frame."""

    reservation_id: int
    room_number: int
    start: datetime
    end: datetime
    reserver_name: str
    time_zone_id: str

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.reservation_id,
            "roomNumber": self.room_number,
            "reservationStart": self.start.isoformat(timespec="seconds"),
            "reservationEnd": self.end.isoformat(timespec="seconds"),
            "reserverName": self.reserver_name,
            "timeZoneId": self.time_zone_id,
        }


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by even one instant.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise InvalidIntervalError(_interval_message(new_start, new_end))
    if exist_start >= exist_end:
        raise InvalidIntervalError(_interval_message(exist_start, exist_end))

    return new_start < exist_end and new_end > exist_start


def find_conflict(
    candidate: Reservation,
    existing_reservations: Iterable[Reservation],
    exclude_id: int | None = None,
) -> Reservation | None:
    """Return the first reservation in the same room that overlaps ``candidate``.

    ``exclude_id`` skips the record being updated so it never collides with itself.
    """
    for reservation in existing_reservations:
        if exclude_id is not None and reservation.reservation_id == exclude_id:
            continue
        if reservation.room_number != candidate.room_number:
            continue
        if has_time_overlap(candidate.start, candidate.end, reservation.start, reservation.end):
            return reservation
    return None


def validate_fields(room_number: object, reserver_name: object) -> None:
    if isinstance(room_number, bool) or not isinstance(room_number, int) or room_number not in ROOM_NUMBERS:
        raise InvalidFieldError(
            "roomNumber",
            f"Room number must be between {ROOM_NUMBERS.start} and {ROOM_NUMBERS.stop - 1}, got {room_number!r}.",
        )
    if not isinstance(reserver_name, str) or not reserver_name.strip():
        raise InvalidFieldError("reserverName", "Reserver name must not be empty.")
    if len(reserver_name.strip()) > MAX_RESERVER_NAME_LENGTH:
        raise InvalidFieldError(
            "reserverName",
            f"Reserver name must be at most {MAX_RESERVER_NAME_LENGTH} characters, got {len(reserver_name.strip())}.",
        )


def validate_reservation(
    candidate: Reservation,
    existing_reservations: Iterable[Reservation],
    exclude_id: int | None = None,
    now: datetime | None = None,
) -> None:
    """Raise the first failing check for ``candidate``; return None when it may be committed.

    Checks run in a fixed order: interval shape, start in the past, overlap.
    """
    effective_now = now or datetime.now(timezone.utc)
    if effective_now.tzinfo is None:
        effective_now = effective_now.replace(tzinfo=timezone.utc)

    if candidate.start >= candidate.end:
        raise InvalidIntervalError(_interval_message(candidate.start, candidate.end))
    if candidate.start < effective_now:
        raise PastStartError(
            f"Start time must not be in the past: {candidate.start.isoformat(timespec='minutes')} "
            f"is before {effective_now.isoformat(timespec='minutes')}."
        )
    if find_conflict(candidate, existing_reservations, exclude_id) is not None:
        raise OverlapError(
            f"Reservation for room {candidate.room_number} from "
            f"{candidate.start.isoformat(timespec='minutes')} to {candidate.end.isoformat(timespec='minutes')} "
            "overlaps with an existing reservation for the same room."
        )


def _interval_message(start: datetime, end: datetime) -> str:
    return (
        "Start time must be before end time: "
        f"{start.isoformat(timespec='minutes')} >= {end.isoformat(timespec='minutes')}."
    )
