"""
Course Routes

GET /courses - Course list with filters and sorting
GET /courses/categories - Distinct course categories
GET /courses/locations - Goal locations
GET /courses/{id} - Course detail
POST /courses/{id}/favorite - Toggle favorite
GET /courses/{id}/related-posts - Interview articles about the course or its school
GET /favorites - Own favorite courses
GET /job-positions - All job positions
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text

from frog_portal.core.auth import get_current_user, get_optional_user
from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.services import catalogue_service
from frog_portal.services.catalogue_service import CourseFilters, DEFAULT_DURATION_RANGE, DEFAULT_COST_RANGE
from frog_portal.services.cms_client import get_cms_client, to_blog_post
from frog_portal.schemas.schemas import (
    CourseSort, CourseListResponse, CourseSummary, CourseDetail, LocationResponse,
    FavoriteToggleResponse, JobPositionResponse, BlogPost
)

router = APIRouter(tags=["Courses"])


def _user_id(user: Optional[dict]) -> Optional[int]:
    return user["user_id"] if user else None


@router.get("/courses", response_model=CourseListResponse)
async def list_courses(
    search: str = Query("", description="Matches course, school, city or country"),
    category: List[str] = Query([], description="Repeat for several categories"),
    location_id: Optional[int] = None,
    min_weeks: int = Query(DEFAULT_DURATION_RANGE[0], ge=0),
    max_weeks: int = Query(DEFAULT_DURATION_RANGE[1], ge=0),
    min_cost: float = Query(DEFAULT_COST_RANGE[0], ge=0),
    max_cost: float = Query(DEFAULT_COST_RANGE[1], ge=0),
    sort: CourseSort = CourseSort.name_asc,
    user: Optional[dict] = Depends(get_optional_user)
):
    """
    Course list for the search page.

    Courses without a duration or a price are never filtered out by the
    duration or cost ranges.
    """
    filters = CourseFilters(
        search=search.strip(),
        categories=category,
        location_id=location_id,
        min_weeks=min_weeks,
        max_weeks=max_weeks,
        min_cost=min_cost,
        max_cost=max_cost,
    )
    courses = catalogue_service.search_courses(filters, sort.value, _user_id(user))
    return CourseListResponse(
        courses=[CourseSummary(**c) for c in courses],
        total=len(courses),
        active_filter_count=filters.active_count(),
    )


@router.get("/courses/categories", response_model=List[str])
async def list_categories():
    return catalogue_service.list_categories()


@router.get("/courses/locations", response_model=List[LocationResponse])
async def list_locations():
    return [LocationResponse(**loc) for loc in catalogue_service.list_locations()]


@router.get("/courses/{course_id}", response_model=CourseDetail)
async def get_course(course_id: int, user: Optional[dict] = Depends(get_optional_user)):
    course = catalogue_service.load_course(course_id, _user_id(user))
    if not course:
        raise HTTPException(status_code=404, detail="コースが見つかりません")
    return CourseDetail(**course)


@router.post("/courses/{course_id}/favorite", response_model=FavoriteToggleResponse)
async def toggle_favorite(course_id: int, user: dict = Depends(get_current_user)):
    """Add the course to favorites, or remove it when it is already there."""
    if not fetch_one("SELECT course_id FROM courses WHERE course_id = :cid", {"cid": course_id}):
        raise HTTPException(status_code=404, detail="コースが見つかりません")

    with get_db_session() as db:
        removed = db.execute(
            text("DELETE FROM favorite_courses WHERE user_id = :uid AND course_id = :cid"),
            {"uid": user["user_id"], "cid": course_id}
        )
        if removed.rowcount:
            return FavoriteToggleResponse(is_favorite=False)

        db.execute(
            text("INSERT INTO favorite_courses (user_id, course_id) VALUES (:uid, :cid)"),
            {"uid": user["user_id"], "cid": course_id}
        )
    return FavoriteToggleResponse(is_favorite=True)


@router.get("/courses/{course_id}/related-posts", response_model=List[BlogPost])
async def related_posts(course_id: int, limit: int = Query(3, ge=1, le=10)):
    """Interviews mentioning the school, else the course. Empty when the CMS is down."""
    course = fetch_one("""
        SELECT c.name, s.name AS school_name FROM courses c
        JOIN schools s ON c.school_id = s.school_id WHERE c.course_id = :cid
    """, {"cid": course_id})
    if not course:
        raise HTTPException(status_code=404, detail="コースが見つかりません")

    cms = get_cms_client()
    posts = cms.related_posts(school_name=course["school_name"], limit=limit)
    if not posts:
        posts = cms.related_posts(course_name=course["name"], limit=limit)
    return [BlogPost(**to_blog_post(p)) for p in posts]


@router.get("/favorites", response_model=List[CourseSummary])
async def list_favorites(user: dict = Depends(get_current_user)):
    return [CourseSummary(**c) for c in catalogue_service.favorite_courses(user["user_id"])]


@router.get("/job-positions", response_model=List[JobPositionResponse])
async def list_job_positions():
    rows = execute_raw_sql("SELECT job_position_id, title, industry FROM job_positions ORDER BY title")
    return [JobPositionResponse(**r) for r in rows]
