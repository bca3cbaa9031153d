"""Conversion between reserver-local wall-clock times and UTC instants."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidTimeZoneError


def validate_time_zone(time_zone_id: object) -> ZoneInfo:
    """Resolve ``time_zone_id`` in the tz database or raise InvalidTimeZoneError."""
    if not isinstance(time_zone_id, str) or not time_zone_id.strip():
        raise InvalidTimeZoneError(time_zone_id)
    try:
        return ZoneInfo(time_zone_id)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # Malformed keys ("../x") raise ValueError, directory names ("Europe") OSError.
        raise InvalidTimeZoneError(time_zone_id) from None


def to_utc(local: datetime, time_zone_id: str) -> datetime:
    """Interpret ``local`` as wall-clock time in ``time_zone_id`` and return a UTC instant.

    Ambiguous wall-clock times (the repeated hour when clocks fall back)
    resolve to the earlier of the two instants. Wall-clock times inside a
    spring-forward gap use the offset in effect before the transition.
    An aware ``local`` is already absolute and is only converted.
    """
    zone = validate_time_zone(time_zone_id)
    if local.tzinfo is not None:
        return local.astimezone(timezone.utc)
    return local.replace(tzinfo=zone, fold=0).astimezone(timezone.utc)


def from_utc(instant: datetime, time_zone_id: str) -> datetime:
    """Project a UTC instant to naive wall-clock time in ``time_zone_id``."""
    zone = validate_time_zone(time_zone_id)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(zone).replace(tzinfo=None)


def is_ambiguous(local: datetime, time_zone_id: str) -> bool:
    """Return True when ``local`` names two instants in ``time_zone_id``."""
    zone = validate_time_zone(time_zone_id)
    naive = local.replace(tzinfo=None)
    if not _offsets_differ(naive, zone):
        return False
    return _round_trips(naive, zone)


def is_nonexistent(local: datetime, time_zone_id: str) -> bool:
    """Return True when ``local`` falls in a spring-forward gap of ``time_zone_id``."""
    zone = validate_time_zone(time_zone_id)
    naive = local.replace(tzinfo=None)
    if not _offsets_differ(naive, zone):
        return False
    return not _round_trips(naive, zone)


def _offsets_differ(naive: datetime, zone: ZoneInfo) -> bool:
    earlier = naive.replace(tzinfo=zone, fold=0)
    later = naive.replace(tzinfo=zone, fold=1)
    return earlier.utcoffset() != later.utcoffset()


def _round_trips(naive: datetime, zone: ZoneInfo) -> bool:
    instant = naive.replace(tzinfo=zone, fold=0).astimezone(timezone.utc)
    return instant.astimezone(zone).replace(tzinfo=None) == naive
