from .booking import (
	ROOM_NUMBERS,
	LocalReservation,
	Reservation,
	find_conflict,
	has_time_overlap,
	validate_fields,
	validate_reservation,
)
from .errors import (
	ConcurrencyConflictError,
	InvalidFieldError,
	InvalidIntervalError,
	InvalidTimeZoneError,
	OverlapError,
	PastStartError,
	ReservationError,
	ReservationNotFoundError,
	ReservationStorageError,
)
from .payload import ReservationRequest, parse_reservation_payload
from .service import (
	create_reservation,
	delete_reservation,
	get_reservation,
	list_next_reservations,
	list_reservations,
	update_reservation,
)
from .timezones import from_utc, to_utc, validate_time_zone
from .yaml_store import ReservationYamlRepository, generate_test_reservations

__all__ = [
	"ROOM_NUMBERS",
	"LocalReservation",
	"Reservation",
	"find_conflict",
	"has_time_overlap",
	"validate_fields",
	"validate_reservation",
	"ConcurrencyConflictError",
	"InvalidFieldError",
	"InvalidIntervalError",
	"InvalidTimeZoneError",
	"OverlapError",
	"PastStartError",
	"ReservationError",
	"ReservationNotFoundError",
	"ReservationStorageError",
	"ReservationRequest",
	"parse_reservation_payload",
	"create_reservation",
	"delete_reservation",
	"get_reservation",
	"list_next_reservations",
	"list_reservations",
	"update_reservation",
	"from_utc",
	"to_utc",
	"validate_time_zone",
	"ReservationYamlRepository",
	"generate_test_reservations",
]
