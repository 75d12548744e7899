"""
Schedule Service - per-application timeline entries (user_schedules).

Applying for a course drops an admin-locked "enrollment" entry on the
applicant's timeline. Users can tick entries off or move their dates;
locked entries can only be changed by admins.
"""

from datetime import date
from typing import Optional, Tuple, List

from sqlalchemy import text

from frog_portal.db.postgres import execute_raw_sql, get_db_session

SCHEDULE_COLUMNS = """
    schedule_id, user_id, application_id, title, description, year, month, day,
    is_completed, is_admin_locked, sort_order
"""


def enrollment_date(intake: Optional[dict], today: Optional[date] = None) -> Tuple[int, int, Optional[int]]:
    """
    Best known start date for an intake as (year, month, day).

    Preference: explicit year+month (day defaults to 1), then the intake's
    ISO start_date, then its month in the current year, then this month.
    """
    today = today or date.today()
    intake = intake or {}

    if intake.get("year") and intake.get("month"):
        return intake["year"], intake["month"], intake.get("day") or 1

    start = intake.get("start_date")
    if start:
        try:
            parsed = date.fromisoformat(str(start)[:10])
            return parsed.year, parsed.month, parsed.day
        except ValueError:
            pass

    if intake.get("month"):
        return today.year, intake["month"], intake.get("day") or 1

    return today.year, today.month, 1


def create_enrollment_schedule(user_id: int, application_id: int, course_name: str,
                               intake: Optional[dict], today: Optional[date] = None) -> int:
    year, month, day = enrollment_date(intake, today)
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO user_schedules (user_id, application_id, title, description, year, month, day,
                    is_completed, is_admin_locked, sort_order)
                VALUES (:uid, :aid, :title, :description, :year, :month, :day, :completed, :locked, 0)
                RETURNING schedule_id
            """),
            {
                "uid": user_id, "aid": application_id, "title": f"{course_name}入学予定",
                "description": "コース入学予定日", "year": year, "month": month, "day": day,
                "completed": False, "locked": True
            }
        )
        return result.fetchone()[0]


def create_schedule(user_id: int, application_id: Optional[int], entry: dict) -> int:
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO user_schedules (user_id, application_id, title, description, year, month, day,
                    is_completed, is_admin_locked, sort_order)
                VALUES (:uid, :aid, :title, :description, :year, :month, :day, :completed, :locked, :sort_order)
                RETURNING schedule_id
            """),
            {
                "uid": user_id, "aid": application_id, "title": entry["title"],
                "description": entry.get("description"), "year": entry["year"], "month": entry["month"],
                "day": entry.get("day"), "completed": entry.get("is_completed", False),
                "locked": entry.get("is_admin_locked", False), "sort_order": entry.get("sort_order", 0)
            }
        )
        return result.fetchone()[0]


def _normalize(row: dict) -> dict:
    row["is_completed"] = bool(row["is_completed"])
    row["is_admin_locked"] = bool(row["is_admin_locked"])
    return row


def list_schedules(application_id: int) -> List[dict]:
    """Entries in date order; entries without a day come last within their month."""
    rows = execute_raw_sql(f"""
        SELECT {SCHEDULE_COLUMNS} FROM user_schedules
        WHERE application_id = :aid
        ORDER BY year, month, CASE WHEN day IS NULL THEN 1 ELSE 0 END, day, sort_order, schedule_id
    """, {"aid": application_id})
    return [_normalize(r) for r in rows]


def get_schedule(schedule_id: int, application_id: Optional[int] = None) -> Optional[dict]:
    sql = f"SELECT {SCHEDULE_COLUMNS} FROM user_schedules WHERE schedule_id = :sid"
    params = {"sid": schedule_id}
    if application_id is not None:
        sql += " AND application_id = :aid"
        params["aid"] = application_id
    rows = execute_raw_sql(sql, params)
    return _normalize(rows[0]) if rows else None


def update_schedule(schedule_id: int, changes: dict) -> dict:
    """Apply column changes and return the updated entry."""
    if changes:
        assignments = ", ".join(f"{column} = :{column}" for column in changes)
        with get_db_session() as db:
            db.execute(
                text(f"UPDATE user_schedules SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE schedule_id = :sid"),
                {**changes, "sid": schedule_id}
            )
    return get_schedule(schedule_id)


def delete_schedule(schedule_id: int) -> bool:
    with get_db_session() as db:
        result = db.execute(text("DELETE FROM user_schedules WHERE schedule_id = :sid"), {"sid": schedule_id})
        return result.rowcount > 0
