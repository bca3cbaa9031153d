from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from room_reservation import (
    ROOM_NUMBERS,
    ReservationError,
    ReservationRequest,
    ReservationYamlRepository,
    create_reservation as create_room_reservation,
    delete_reservation as delete_room_reservation,
    get_reservation as get_room_reservation,
    list_reservations as list_room_reservations,
    update_reservation as update_room_reservation,
)
from room_reservation.payload import parse_local_datetime

mcp = FastMCP(
    "Room Reservation MCP Server",
    instructions="Create, inspect and cancel room reservations. Times are local to the given IANA time zone.",
    json_response=True,
)

DATA_DIR = Path(os.environ.get("ROOM_RESERVATION_DATA_DIR", Path(__file__).parent / "data"))
_repository: ReservationYamlRepository | None = None


def get_repository() -> ReservationYamlRepository:
    global _repository
    if _repository is None:
        _repository = ReservationYamlRepository(DATA_DIR)
    return _repository


def use_repository(repository: ReservationYamlRepository | None) -> None:
    global _repository
    _repository = repository


def _build_request(
    room_number: int,
    start_local: str,
    end_local: str,
    reserver_name: str,
    time_zone_id: str,
) -> ReservationRequest:
    return ReservationRequest(
        room_number=room_number,
        start=parse_local_datetime(start_local, "reservationStart"),
        end=parse_local_datetime(end_local, "reservationEnd"),
        reserver_name=reserver_name,
        time_zone_id=time_zone_id,
    )


@mcp.resource("reservation://rooms")
async def list_rooms() -> list[int]:
    """List the bookable room numbers."""
    return list(ROOM_NUMBERS)


@mcp.tool()
def list_reservations(room_number: int | None = None) -> dict[str, Any]:
    """Return reservations in local time, optionally filtered by room."""
    records = list_room_reservations(get_repository())
    filtered = [record for record in records if room_number is None or record.room_number == room_number]
    return {"ok": True, "reservations": [record.to_dict() for record in filtered]}


@mcp.tool()
def get_reservation(reservation_id: int) -> dict[str, Any]:
    """Return one reservation in the reserver's local time."""
    try:
        record = get_room_reservation(get_repository(), reservation_id)
    except ReservationError as error:
        return error.to_dict()
    return {"ok": True, "reservation": record.to_dict()}


@mcp.tool()
def create_reservation(
    room_number: int,
    start_local: str,
    end_local: str,
    reserver_name: str,
    time_zone_id: str = "UTC",
) -> dict[str, Any]:
    """Reserve a room using local ISO timestamps (e.g. 2025-06-01T09:00) in ``time_zone_id``."""
    try:
        parsed = _build_request(room_number, start_local, end_local, reserver_name, time_zone_id)
        created = create_room_reservation(get_repository(), parsed)
    except ReservationError as error:
        return error.to_dict()
    return {"ok": True, "reservation": created.to_dict()}


@mcp.tool()
def update_reservation(
    reservation_id: int,
    room_number: int,
    start_local: str,
    end_local: str,
    reserver_name: str,
    time_zone_id: str = "UTC",
) -> dict[str, Any]:
    """Replace every field of an existing reservation."""
    try:
        parsed = _build_request(room_number, start_local, end_local, reserver_name, time_zone_id)
        updated = update_room_reservation(get_repository(), reservation_id, parsed)
    except ReservationError as error:
        return error.to_dict()
    return {"ok": True, "reservation": updated.to_dict()}


@mcp.tool()
def delete_reservation(reservation_id: int) -> dict[str, Any]:
    """Cancel a reservation."""
    try:
        deleted = delete_room_reservation(get_repository(), reservation_id)
    except ReservationError as error:
        return error.to_dict()
    return {"ok": True, "message": f"Removed reservation for room: {deleted.room_number}"}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
