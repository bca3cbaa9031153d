from __future__ import annotations


class ReservationError(ValueError):
    """Base class for caller-fixable reservation failures."""

    kind = "ReservationError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"ok": False, "kind": self.kind, "message": self.message}


class InvalidTimeZoneError(ReservationError):
    kind = "InvalidTimeZone"

    def __init__(self, time_zone_id: object) -> None:
        super().__init__(f"Unknown time zone identifier: {time_zone_id!r}.")
        self.time_zone_id = time_zone_id


class InvalidFieldError(ReservationError):
    kind = "InvalidField"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidIntervalError(ReservationError):
    kind = "InvalidInterval"


class PastStartError(ReservationError):
    kind = "PastStart"


class OverlapError(ReservationError):
    kind = "Overlap"


class ReservationNotFoundError(ReservationError, LookupError):
    kind = "NotFound"

    def __init__(self, reservation_id: object) -> None:
        super().__init__(f"No reservation with id: {reservation_id} found.")
        self.reservation_id = reservation_id


class ConcurrencyConflictError(ReservationError):
    kind = "ConcurrencyConflict"


class ReservationStorageError(RuntimeError):
    pass
