import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from .errors import InvalidFieldError

DEFAULT_TIME_ZONE_ID = "UTC"

_LOCAL_DATETIME_RE = re.compile(
    r"^(?P<date>\d{4}[/-]\d{1,2}[/-]\d{1,2})[T ](?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)(?::(?P<second>[0-5]\d))?$"
)


@dataclass(frozen=True)
class ReservationRequest:
    """A create/update request in the reserver's local frame."""

    room_number: int
    start: datetime
    end: datetime
    reserver_name: str
    time_zone_id: str


def parse_local_datetime(value: Any, field: str) -> datetime:
    """Parse a wall-clock time such as ``2025-06-01T09:00`` or ``2025/06/01 09:00``.

    Values carrying an offset (``Z``, ``+03:00``) are returned aware.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError(field, f"{field} is required.")

    text = value.strip()
    match = _LOCAL_DATETIME_RE.match(text)
    if match:
        try:
            date_part = datetime.strptime(match.group("date").replace("/", "-"), "%Y-%m-%d")
            return date_part.replace(
                hour=int(match.group("hour")),
                minute=int(match.group("minute")),
                second=int(match.group("second") or 0),
            )
        except ValueError:
            raise InvalidFieldError(field, f"{field} is not a valid date-time: {value!r}.") from None

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise InvalidFieldError(field, f"{field} is not a valid date-time: {value!r}.") from None


def parse_instant(value: Any, field: str = "from") -> datetime:
    """Parse an absolute instant; naive values are read as UTC."""
    parsed = parse_local_datetime(value, field)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_reservation_payload(payload: Mapping[str, Any] | None) -> ReservationRequest:
    if not isinstance(payload, Mapping):
        raise InvalidFieldError("body", "Request body must be a JSON object.")

    room_value = payload.get("roomNumber")
    if isinstance(room_value, bool) or room_value is None:
        raise InvalidFieldError("roomNumber", f"roomNumber must be an integer, got {room_value!r}.")
    try:
        room_number = int(room_value)
    except (TypeError, ValueError):
        raise InvalidFieldError("roomNumber", f"roomNumber must be an integer, got {room_value!r}.") from None
    if isinstance(room_value, float) and room_value != room_number:
        raise InvalidFieldError("roomNumber", f"roomNumber must be an integer, got {room_value!r}.")

    start = parse_local_datetime(payload.get("reservationStart"), "reservationStart")
    end = parse_local_datetime(payload.get("reservationEnd"), "reservationEnd")

    reserver_name = payload.get("reserverName")
    if not isinstance(reserver_name, str):
        raise InvalidFieldError("reserverName", "reserverName must be a string.")

    time_zone_id = payload.get("timeZoneId", DEFAULT_TIME_ZONE_ID)
    if time_zone_id is None:
        time_zone_id = DEFAULT_TIME_ZONE_ID

    return ReservationRequest(
        room_number=room_number,
        start=start,
        end=end,
        reserver_name=reserver_name,
        time_zone_id=time_zone_id,
    )
