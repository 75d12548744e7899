"""
Catalogue Service - course and school read models, course writes.

Three layers:
1. Loaders that join courses with school, location, intake dates, photos and
   the caller's favorites into plain dicts.
2. Pure filter/sort helpers applied to those dicts. They are kept free of SQL
   so the course search behaves identically whatever the database is.
3. Course writes shared by the school editor and admin routes.

FILTERS:
- search: case-insensitive substring over course name, school name, city, country
- categories: empty list matches everything
- location_id: school's goal location
- duration: courses without total_weeks always pass
- cost: tuition parsed from free text, courses without a price always pass
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Iterable

from sqlalchemy import text

from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.utils.formatting import format_intake_months, format_currency, detect_currency

DEFAULT_DURATION_RANGE = (0, 400)
DEFAULT_COST_RANGE = (0, 70000)

_NON_NUMERIC = re.compile(r"[^\d.-]")


# ============================================================
# FILTERING & SORTING
# ============================================================

@dataclass
class CourseFilters:
    search: str = ""
    categories: List[str] = field(default_factory=list)
    location_id: Optional[int] = None
    min_weeks: int = DEFAULT_DURATION_RANGE[0]
    max_weeks: int = DEFAULT_DURATION_RANGE[1]
    min_cost: float = DEFAULT_COST_RANGE[0]
    max_cost: float = DEFAULT_COST_RANGE[1]

    def active_count(self) -> int:
        """Number of filters that differ from their defaults."""
        count = 0
        if self.categories:
            count += 1
        if self.min_weeks > DEFAULT_DURATION_RANGE[0] or self.max_weeks < DEFAULT_DURATION_RANGE[1]:
            count += 1
        if self.min_cost > DEFAULT_COST_RANGE[0] or self.max_cost < DEFAULT_COST_RANGE[1]:
            count += 1
        if self.search:
            count += 1
        if self.location_id is not None:
            count += 1
        return count


def parse_cost(value) -> Optional[float]:
    """
    Turn a tuition string like 'CA$18,500' into 18500.0.
    Returns None when nothing numeric is left.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def tuition_label(value: Optional[str]) -> Optional[str]:
    """'CA$18,500' rendered as 'CA$18,500.00'; None when no currency or amount is recognised."""
    currency = detect_currency(value)
    amount = parse_cost(value)
    if currency is None or amount is None:
        return None
    return format_currency(amount, currency)


def matches_search(course: dict, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    haystack = [course.get("name"), course.get("school_name"), course.get("city"), course.get("country")]
    return any(value and needle in value.lower() for value in haystack)


def matches_filters(course: dict, filters: CourseFilters) -> bool:
    if not matches_search(course, filters.search):
        return False

    if filters.categories and course.get("category") not in filters.categories:
        return False

    if filters.location_id is not None and course.get("location_id") != filters.location_id:
        return False

    weeks = course.get("total_weeks")
    if weeks and not (filters.min_weeks <= weeks <= filters.max_weeks):
        return False

    cost = parse_cost(course.get("tuition_and_others"))
    if cost is not None and not (filters.min_cost <= cost <= filters.max_cost):
        return False

    return True


def filter_courses(courses: Iterable[dict], filters: CourseFilters) -> List[dict]:
    return [c for c in courses if matches_filters(c, filters)]


def _missing_last(key_fn, reverse: bool):
    def sort(courses: List[dict]) -> List[dict]:
        present = [c for c in courses if key_fn(c)]
        missing = [c for c in courses if not key_fn(c)]
        return sorted(present, key=key_fn, reverse=reverse) + missing
    return sort


_SORTERS = {
    "price_asc": _missing_last(lambda c: parse_cost(c.get("tuition_and_others")), False),
    "price_desc": _missing_last(lambda c: parse_cost(c.get("tuition_and_others")), True),
    "duration_asc": _missing_last(lambda c: c.get("total_weeks"), False),
    "duration_desc": _missing_last(lambda c: c.get("total_weeks"), True),
    "name_desc": lambda courses: sorted(courses, key=lambda c: c["name"].lower(), reverse=True),
    "name_asc": lambda courses: sorted(courses, key=lambda c: c["name"].lower()),
}


def sort_courses(courses: Iterable[dict], sort: str = "name_asc") -> List[dict]:
    """Sort courses; unknown sort keys fall back to name ascending."""
    sorter = _SORTERS.get(sort, _SORTERS["name_asc"])
    return sorter(list(courses))


# ============================================================
# LOADERS
# ============================================================

COURSE_COLUMNS = """
    c.course_id, c.school_id, c.name, c.category, c.description, c.total_weeks,
    c.lecture_weeks, c.work_permit_weeks, c.tuition_and_others, c.url,
    c.admission_requirements, c.graduation_requirements, c.job_support, c.notes,
    c.start_date, c.migration_goals, c.content_snare_template_id, c.created_at,
    s.name AS school_name, gl.location_id, gl.country, gl.city
"""

COURSE_FROM = """
    FROM courses c
    JOIN schools s ON c.school_id = s.school_id
    LEFT JOIN goal_locations gl ON s.goal_location_id = gl.location_id
"""

INTAKE_ORDER = """
    ORDER BY CASE WHEN year IS NULL THEN 0 ELSE 1 END, year, month,
             CASE WHEN day IS NULL THEN 0 ELSE 1 END, day
"""


def intake_dates_by_course(course_ids: List[int]) -> Dict[int, List[dict]]:
    """Intake dates grouped per course, unknown years and days first."""
    grouped: Dict[int, List[dict]] = {cid: [] for cid in course_ids}
    if not course_ids:
        return grouped

    placeholders = ", ".join(f":c{i}" for i in range(len(course_ids)))
    params = {f"c{i}": cid for i, cid in enumerate(course_ids)}
    rows = execute_raw_sql(f"""
        SELECT intake_date_id, course_id, month, day, year, start_date, is_tentative, notes
        FROM course_intake_dates
        WHERE course_id IN ({placeholders})
        {INTAKE_ORDER}
    """, params)
    for row in rows:
        row["is_tentative"] = bool(row["is_tentative"])
        grouped.setdefault(row["course_id"], []).append(row)
    return grouped


def favorite_course_ids(user_id: Optional[int]) -> set:
    if not user_id:
        return set()
    rows = execute_raw_sql(
        "SELECT course_id FROM favorite_courses WHERE user_id = :uid", {"uid": user_id}
    )
    return {r["course_id"] for r in rows}


def first_photos(course_rows: List[dict]) -> Dict[int, str]:
    """Cover image per course: its own newest photo, else the school's newest."""
    photos = execute_raw_sql(
        "SELECT school_id, course_id, image_url FROM school_photos ORDER BY created_at DESC, photo_id DESC"
    )
    by_course, by_school = {}, {}
    for p in photos:
        if p["course_id"] is not None:
            by_course.setdefault(p["course_id"], p["image_url"])
        by_school.setdefault(p["school_id"], p["image_url"])
    return {
        c["course_id"]: by_course.get(c["course_id"]) or by_school.get(c["school_id"])
        for c in course_rows
    }


def _decorate(rows: List[dict], user_id: Optional[int]) -> List[dict]:
    ids = [r["course_id"] for r in rows]
    intakes = intake_dates_by_course(ids)
    favorites = favorite_course_ids(user_id)
    covers = first_photos(rows)
    for r in rows:
        r["intake_dates"] = intakes.get(r["course_id"], [])
        r["intake_months"] = format_intake_months(r["intake_dates"])
        r["is_favorite"] = r["course_id"] in favorites
        r["image_url"] = covers.get(r["course_id"])
        r["tuition_label"] = tuition_label(r.get("tuition_and_others"))
        r["accepts_online_application"] = bool(r.get("content_snare_template_id"))
    return rows


def load_courses(user_id: Optional[int] = None, school_id: Optional[int] = None) -> List[dict]:
    """Every course with school, location, intake dates and favorite flag."""
    sql = f"SELECT {COURSE_COLUMNS} {COURSE_FROM}"
    params = {}
    if school_id is not None:
        sql += " WHERE c.school_id = :sid"
        params["sid"] = school_id
    sql += " ORDER BY c.name"
    return _decorate(execute_raw_sql(sql, params), user_id)


def search_courses(filters: CourseFilters, sort: str = "name_asc", user_id: Optional[int] = None) -> List[dict]:
    return sort_courses(filter_courses(load_courses(user_id), filters), sort)


def load_course(course_id: int, user_id: Optional[int] = None) -> Optional[dict]:
    """Course detail: subjects, intake dates, photos and linked job positions."""
    row = fetch_one(f"SELECT {COURSE_COLUMNS} {COURSE_FROM} WHERE c.course_id = :cid", {"cid": course_id})
    if not row:
        return None
    course = _decorate([row], user_id)[0]

    course["subjects"] = execute_raw_sql(
        "SELECT subject_id, course_id, title, description FROM course_subjects WHERE course_id = :cid ORDER BY subject_id",
        {"cid": course_id}
    )
    photos = school_photos(course["school_id"])
    own = [p for p in photos if p["course_id"] == course_id]
    course["photos"] = own or photos
    course["job_positions"] = execute_raw_sql("""
        SELECT jp.job_position_id, jp.title, jp.industry
        FROM course_job_positions cjp
        JOIN job_positions jp ON cjp.job_position_id = jp.job_position_id
        WHERE cjp.course_id = :cid ORDER BY jp.title
    """, {"cid": course_id})
    return course


def favorite_courses(user_id: int) -> List[dict]:
    rows = execute_raw_sql(f"""
        SELECT {COURSE_COLUMNS} {COURSE_FROM}
        JOIN favorite_courses f ON f.course_id = c.course_id
        WHERE f.user_id = :uid
        ORDER BY f.created_at DESC, f.favorite_id DESC
    """, {"uid": user_id})
    return _decorate(rows, user_id)


def list_categories() -> List[str]:
    rows = execute_raw_sql(
        "SELECT DISTINCT category FROM courses WHERE category IS NOT NULL AND category <> '' ORDER BY category"
    )
    return [r["category"] for r in rows]


def list_locations() -> List[dict]:
    return execute_raw_sql("SELECT location_id, country, city FROM goal_locations ORDER BY country, city")


PHOTO_COLUMNS = "photo_id, school_id, course_id, image_url, description, created_at"


def school_photos(school_id: int) -> List[dict]:
    """A school's photos, newest first."""
    return execute_raw_sql(
        f"SELECT {PHOTO_COLUMNS} FROM school_photos WHERE school_id = :sid ORDER BY created_at DESC, photo_id DESC",
        {"sid": school_id}
    )


SCHOOL_SELECT = """
    SELECT s.school_id, s.name, s.website, s.description, gl.location_id, gl.country, gl.city,
           (SELECT COUNT(*) FROM courses c WHERE c.school_id = s.school_id) AS course_count
    FROM schools s
    LEFT JOIN goal_locations gl ON s.goal_location_id = gl.location_id
"""


def list_schools() -> List[dict]:
    return execute_raw_sql(SCHOOL_SELECT + " ORDER BY s.name")


def load_school(school_id: int, user_id: Optional[int] = None) -> Optional[dict]:
    """School with unique course categories, newest photos first and its courses."""
    school = fetch_one(SCHOOL_SELECT + " WHERE s.school_id = :sid", {"sid": school_id})
    if not school:
        return None

    school["courses"] = load_courses(user_id, school_id=school_id)
    school["categories"] = sorted({c["category"] for c in school["courses"] if c.get("category")})
    school["photos"] = school_photos(school_id)
    return school


# ============================================================
# COURSE WRITES
# ============================================================
# Shared by the school editor and admin routes. Callers pick the model,
# which decides whether the form template id can be written.

COURSE_CHILD_TABLES = (
    "favorite_courses", "school_photos", "course_subjects",
    "course_intake_dates", "course_job_positions",
)


def course_values(data, exclude_unset: bool) -> dict:
    """Column values from a course model; migration goals stored comma separated."""
    values = data.model_dump(exclude_unset=exclude_unset)
    if "migration_goals" in values:
        goals = values["migration_goals"]
        values["migration_goals"] = ",".join(g.value if hasattr(g, "value") else g for g in goals) if goals else None
    return values


def insert_course(school_id: int, values: dict) -> int:
    columns = ", ".join(values)
    placeholders = ", ".join(f":{c}" for c in values)
    with get_db_session() as db:
        result = db.execute(
            text(f"INSERT INTO courses (school_id, {columns}) VALUES (:school_id, {placeholders}) RETURNING course_id"),
            {**values, "school_id": school_id}
        )
        return result.fetchone()[0]


def update_course(course_id: int, values: dict) -> None:
    assignments = ", ".join(f"{c} = :{c}" for c in values)
    with get_db_session() as db:
        db.execute(
            text(f"UPDATE courses SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE course_id = :cid"),
            {**values, "cid": course_id}
        )


def has_applications(course_id: int) -> bool:
    return fetch_one(
        "SELECT application_id FROM course_applications WHERE course_id = :cid", {"cid": course_id}
    ) is not None


def delete_course(course_id: int) -> None:
    """Delete a course with its favorites, photos, subjects, intake dates and job links."""
    with get_db_session() as db:
        for table in COURSE_CHILD_TABLES:
            db.execute(text(f"DELETE FROM {table} WHERE course_id = :cid"), {"cid": course_id})
        db.execute(text("DELETE FROM courses WHERE course_id = :cid"), {"cid": course_id})


def insert_photo(school_id: int, image_url: str, description: Optional[str], course_id: Optional[int]) -> dict:
    with get_db_session() as db:
        result = db.execute(
            text(f"""
                INSERT INTO school_photos (school_id, course_id, image_url, description)
                VALUES (:sid, :cid, :url, :description)
                RETURNING {PHOTO_COLUMNS}
            """),
            {"sid": school_id, "cid": course_id, "url": image_url, "description": description}
        )
        return dict(zip(result.keys(), result.fetchone()))
