from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
import traceback

from room_reservation import (
    OverlapError,
    ReservationRequest,
    ReservationYamlRepository,
    create_reservation,
    delete_reservation,
    list_next_reservations,
)


def main() -> int:
    print("[INFO] Room Reservation Quick Check")
    print("[INFO] Generating and validating test data...")

    repo = ReservationYamlRepository("data")
    now = datetime.now(timezone.utc)

    generated = repo.seed_test_data(now=now, count_per_room=3, overwrite=True)
    print(f"[OK] Test data generated: {len(generated)} records")

    target_day = (now + timedelta(days=1)).date()
    request = ReservationRequest(
        room_number=1,
        start=datetime(target_day.year, target_day.month, target_day.day, 9, 0),
        end=datetime(target_day.year, target_day.month, target_day.day, 10, 0),
        reserver_name="Quick Check",
        time_zone_id="Europe/Helsinki",
    )
    created = create_reservation(repo, request, now=now)
    print(
        "[OK] Reserved slot: "
        f"room {created.room_number}, "
        f"{created.start.isoformat(timespec='minutes')}~{created.end.isoformat(timespec='minutes')} "
        f"({created.time_zone_id})"
    )

    try:
        create_reservation(repo, request, now=now)
        print("[ERROR] Overlapping reservation was accepted.")
        return 1
    except OverlapError as error:
        print(f"[OK] Overlap rejected: {error}")

    upcoming = list_next_reservations(repo, now=now, page_size=5)
    print(f"[OK] Next reservations page: {len(upcoming)} records")

    delete_reservation(repo, created.reservation_id, now=now)
    print(f"[OK] Removed reservation {created.reservation_id}")
    print(f"[OK] Reservations YAML: {Path('data/reservations.yaml').resolve()}")
    print(f"[OK] Event Log YAML: {Path('data/reservation_events.yaml').resolve()}")

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
