"""Request-level reservation operations.

Each operation normalizes the caller's local times to UTC, validates the
candidate against the stored reservations of its room, mutates the store and
projects the result back to the reserver's time zone.
"""

from __future__ import annotations

from datetime import datetime, timezone

from .booking import LocalReservation, Reservation, validate_fields, validate_reservation
from .errors import ConcurrencyConflictError, ReservationNotFoundError
from .payload import ReservationRequest
from .timezones import from_utc, to_utc, validate_time_zone
from .yaml_store import ReservationYamlRepository

DEFAULT_PAGE_NUMBER = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def project_to_local(reservation: Reservation) -> LocalReservation:
    if reservation.reservation_id is None:
        raise ValueError("only stored reservations can be projected")
    return LocalReservation(
        reservation_id=reservation.reservation_id,
        room_number=reservation.room_number,
        start=from_utc(reservation.start, reservation.time_zone_id),
        end=from_utc(reservation.end, reservation.time_zone_id),
        reserver_name=reservation.reserver_name,
        time_zone_id=reservation.time_zone_id,
    )


def build_candidate(request: ReservationRequest, reservation_id: int | None = None) -> Reservation:
    """Normalize ``request`` into a UTC reservation.

    The time zone is checked before anything else so an unknown zone is
    reported even when the interval is also wrong.
    """
    validate_time_zone(request.time_zone_id)
    validate_fields(request.room_number, request.reserver_name)
    return Reservation(
        reservation_id=reservation_id,
        room_number=request.room_number,
        start=to_utc(request.start, request.time_zone_id),
        end=to_utc(request.end, request.time_zone_id),
        reserver_name=request.reserver_name.strip(),
        time_zone_id=request.time_zone_id,
    )


def create_reservation(
    repository: ReservationYamlRepository,
    request: ReservationRequest,
    now: datetime | None = None,
) -> LocalReservation:
    candidate = build_candidate(request)
    with repository.room_lock(candidate.room_number):
        validate_reservation(candidate, repository.find_by_room(candidate.room_number), now=now)
        created = repository.insert(candidate, now=now)
    return project_to_local(created)


def update_reservation(
    repository: ReservationYamlRepository,
    reservation_id: int,
    request: ReservationRequest,
    now: datetime | None = None,
) -> LocalReservation:
    current = repository.find_by_id(reservation_id)
    if current is None:
        raise ReservationNotFoundError(reservation_id)

    candidate = build_candidate(request, reservation_id=reservation_id)
    with repository.room_lock(current.room_number, candidate.room_number):
        validate_reservation(
            candidate,
            repository.find_by_room(candidate.room_number),
            exclude_id=reservation_id,
            now=now,
        )
        try:
            updated = repository.update(candidate, expected_version=current.version, now=now)
        except ConcurrencyConflictError:
            if repository.find_by_id(reservation_id) is None:
                raise ReservationNotFoundError(reservation_id) from None
            raise
    return project_to_local(updated)


def get_reservation(repository: ReservationYamlRepository, reservation_id: int) -> LocalReservation:
    reservation = repository.find_by_id(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError(reservation_id)
    return project_to_local(reservation)


def list_reservations(repository: ReservationYamlRepository) -> list[LocalReservation]:
    return [project_to_local(reservation) for reservation in repository.list_all()]


def list_next_reservations(
    repository: ReservationYamlRepository,
    from_instant: datetime | None = None,
    page_number: int = DEFAULT_PAGE_NUMBER,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: datetime | None = None,
) -> list[LocalReservation]:
    page_number, page_size = clamp_page(page_number, page_size)
    threshold = from_instant or now or datetime.now(timezone.utc)
    if threshold.tzinfo is None:
        threshold = threshold.replace(tzinfo=timezone.utc)
    page = repository.list_paged(threshold, page_number, page_size)
    return [project_to_local(reservation) for reservation in page]


def delete_reservation(
    repository: ReservationYamlRepository,
    reservation_id: int,
    now: datetime | None = None,
) -> LocalReservation:
    deleted = repository.delete(reservation_id, now=now)
    return project_to_local(deleted)


def clamp_page(page_number: int | None, page_size: int | None) -> tuple[int, int]:
    if page_number is None or page_number < 1:
        page_number = DEFAULT_PAGE_NUMBER
    if page_size is None or page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    return page_number, min(page_size, MAX_PAGE_SIZE)
