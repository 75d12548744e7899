"""
Statistics Routes (admin)

GET /statistics/users - Profile answer distributions
GET /statistics/schools - Courses, applications and favorites per school
"""

from typing import List

from fastapi import APIRouter, Depends

from frog_portal.core.auth import get_current_admin
from frog_portal.db.postgres import execute_raw_sql, fetch_one
from frog_portal.schemas.schemas import UserStatisticsResponse, DistributionEntry, SchoolStatistics

router = APIRouter(prefix="/statistics", tags=["Statistics"])

UNSET = "未設定"
DISTRIBUTION_COLUMNS = ("migration_goal", "english_level", "age_range")


def distribution(column: str) -> List[DistributionEntry]:
    """Profile counts grouped by one answer column, unanswered rows as 未設定."""
    if column not in DISTRIBUTION_COLUMNS:
        raise ValueError(f"Unknown distribution column: {column}")
    rows = execute_raw_sql(f"""
        SELECT COALESCE(NULLIF({column}, ''), :unset) AS value, COUNT(*) AS count
        FROM profiles
        GROUP BY COALESCE(NULLIF({column}, ''), :unset)
        ORDER BY count DESC, value
    """, {"unset": UNSET})
    return [DistributionEntry(**r) for r in rows]


@router.get("/users", response_model=UserStatisticsResponse)
async def user_statistics(admin: dict = Depends(get_current_admin)):
    total = fetch_one("SELECT COUNT(*) AS count FROM users")["count"]
    return UserStatisticsResponse(
        total_users=total,
        **{column: distribution(column) for column in DISTRIBUTION_COLUMNS}
    )


@router.get("/schools", response_model=List[SchoolStatistics])
async def school_statistics(admin: dict = Depends(get_current_admin)):
    rows = execute_raw_sql("""
        SELECT s.school_id, s.name,
               (SELECT COUNT(*) FROM courses c WHERE c.school_id = s.school_id) AS course_count,
               (SELECT COUNT(*) FROM course_applications a
                    JOIN courses c ON a.course_id = c.course_id
                    WHERE c.school_id = s.school_id) AS application_count,
               (SELECT COUNT(*) FROM favorite_courses f
                    JOIN courses c ON f.course_id = c.course_id
                    WHERE c.school_id = s.school_id) AS favorite_count
        FROM schools s
        ORDER BY s.name
    """)
    return [SchoolStatistics(**r) for r in rows]
