from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request, url_for

from .errors import ReservationError, ReservationStorageError
from .payload import parse_instant, parse_reservation_payload
from .service import (
    DEFAULT_PAGE_NUMBER,
    DEFAULT_PAGE_SIZE,
    create_reservation,
    delete_reservation,
    get_reservation,
    list_next_reservations,
    list_reservations,
    update_reservation,
)
from .yaml_store import ReservationYamlRepository

ERROR_STATUS = {
    "NotFound": 404,
    "ConcurrencyConflict": 409,
}


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(DATA_DIR="data")
    app.config.from_prefixed_env("ROOM_RESERVATION")
    if data_dir is not None:
        app.config["DATA_DIR"] = str(data_dir)

    repository = ReservationYamlRepository(app.config["DATA_DIR"])
    clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(timezone.utc))
    app.extensions["reservation_repository"] = repository

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(ReservationError)
    def handle_reservation_error(error: ReservationError) -> Any:
        return jsonify(error.to_dict()), ERROR_STATUS.get(error.kind, 400)

    @app.errorhandler(ReservationStorageError)
    def handle_storage_error(error: ReservationStorageError) -> Any:
        app.logger.error("Reservation storage failure: %s", error, exc_info=error)
        return (
            jsonify({"ok": False, "kind": "StorageUnavailable", "message": "Reservation storage is unavailable."}),
            503,
        )

    @app.get("/api/reservation")
    def get_reservations() -> Any:
        reservations = list_reservations(repository)
        return jsonify({"ok": True, "reservations": [item.to_dict() for item in reservations]})

    @app.get("/api/reservation/next")
    def get_next_reservations() -> Any:
        from_text = request.args.get("from")
        from_instant = parse_instant(from_text) if from_text else None
        page_number = request.args.get("pageNumber", DEFAULT_PAGE_NUMBER, type=int)
        page_size = request.args.get("pageSize", DEFAULT_PAGE_SIZE, type=int)

        reservations = list_next_reservations(
            repository,
            from_instant=from_instant,
            page_number=page_number,
            page_size=page_size,
            now=clock(),
        )
        return jsonify({"ok": True, "reservations": [item.to_dict() for item in reservations]})

    @app.get("/api/reservation/<int:reservation_id>")
    def get_reservation_by_id(reservation_id: int) -> Any:
        reservation = get_reservation(repository, reservation_id)
        return jsonify({"ok": True, "reservation": reservation.to_dict()})

    @app.post("/api/reservation")
    def post_reservation() -> Any:
        parsed = parse_reservation_payload(request.get_json(silent=True))
        created = create_reservation(repository, parsed, now=clock())

        response = jsonify({"ok": True, "reservation": created.to_dict()})
        response.status_code = 201
        response.headers["Location"] = url_for("get_reservation_by_id", reservation_id=created.reservation_id)
        return response

    @app.put("/api/reservation/<int:reservation_id>")
    def put_reservation(reservation_id: int) -> Any:
        parsed = parse_reservation_payload(request.get_json(silent=True))
        updated = update_reservation(repository, reservation_id, parsed, now=clock())
        return jsonify({"ok": True, "reservation": updated.to_dict()})

    @app.delete("/api/reservation/<int:reservation_id>")
    def delete_reservation_by_id(reservation_id: int) -> Any:
        deleted = delete_reservation(repository, reservation_id, now=clock())
        return jsonify({"ok": True, "message": f"Removed reservation for room: {deleted.room_number}"})

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
