"""
Course application read models.

Applications are listed with course and school names, the Japanese status
label and badge, the chosen intake date and a display date.
"""

from typing import List, Optional

from frog_portal.db.postgres import execute_raw_sql, fetch_one
from frog_portal.utils.formatting import application_status_label, status_badge, format_date

APPLICATION_SELECT = """
    SELECT a.application_id, a.user_id, a.course_id, a.intake_date_id, a.status,
           a.content_snare_id, a.content_snare_request_id, a.request_url, a.admin_notes,
           a.created_at, a.updated_at, c.name AS course_name, s.name AS school_name
    FROM course_applications a
    JOIN courses c ON a.course_id = c.course_id
    JOIN schools s ON c.school_id = s.school_id
"""


def _attach_intakes(rows: List[dict]) -> List[dict]:
    ids = sorted({r["intake_date_id"] for r in rows if r.get("intake_date_id")})
    intakes = {}
    if ids:
        placeholders = ", ".join(f":i{n}" for n in range(len(ids)))
        for row in execute_raw_sql(
            f"""SELECT intake_date_id, course_id, month, day, year, start_date, is_tentative, notes
                FROM course_intake_dates WHERE intake_date_id IN ({placeholders})""",
            {f"i{n}": i for n, i in enumerate(ids)}
        ):
            row["is_tentative"] = bool(row["is_tentative"])
            intakes[row["intake_date_id"]] = row

    for r in rows:
        r["status_label"] = application_status_label(r["status"])
        r["status_badge"] = status_badge(r["status"])
        r["created_at_label"] = format_date(r["created_at"])
        r["intake_date"] = intakes.get(r.get("intake_date_id"))
    return rows


def list_user_applications(user_id: int, include_drafts: bool = False, limit: Optional[int] = None) -> List[dict]:
    sql = APPLICATION_SELECT + " WHERE a.user_id = :uid"
    if not include_drafts:
        sql += " AND a.status <> 'draft'"
    sql += " ORDER BY a.created_at DESC, a.application_id DESC"
    if limit:
        sql += f" LIMIT {int(limit)}"
    return _attach_intakes(execute_raw_sql(sql, {"uid": user_id}))


def list_applications(status: Optional[str] = None) -> List[dict]:
    """All applications, newest first, optionally filtered by status (admin view)."""
    sql = APPLICATION_SELECT
    params = {}
    if status:
        sql += " WHERE a.status = :status"
        params["status"] = status
    sql += " ORDER BY a.created_at DESC, a.application_id DESC"
    return _attach_intakes(execute_raw_sql(sql, params))


def load_application(application_id: int) -> Optional[dict]:
    row = fetch_one(APPLICATION_SELECT + " WHERE a.application_id = :aid", {"aid": application_id})
    return _attach_intakes([row])[0] if row else None


def find_by_request_id(request_id: str) -> Optional[dict]:
    row = fetch_one(APPLICATION_SELECT + " WHERE a.content_snare_request_id = :rid", {"rid": request_id})
    return _attach_intakes([row])[0] if row else None
