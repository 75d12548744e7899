"""
School Editor Routes

Used by school staff through an invite link, not by logged-in members.
Credentials: Authorization: Bearer <token> (+ X-Email header for changes).
The landing page passes ?token= only. Editors cannot set a course's
application form template; admins do that through /admin/courses.

GET /schools/{id}/editor - Validate token and load school + courses
POST /schools/{id}/courses - Create course
PUT /schools/{id}/courses/{course_id} - Update course
DELETE /schools/{id}/courses/{course_id} - Delete course and its children
GET /schools/{id}/courses/{course_id}/intake-dates - List intake dates
POST /schools/{id}/courses/{course_id}/intake-dates - Add intake date
DELETE /schools/{id}/courses/{course_id}/intake-dates/{intake_date_id} - Remove intake date
GET /schools/{id}/photos - List photos
POST /schools/{id}/photos - Add photo by URL
POST /schools/{id}/photos/upload - Upload photo file
GET /schools/{id}/courses/{course_id}/subjects - List subjects
POST /schools/{id}/courses/{course_id}/subjects - Add subject
DELETE /schools/{id}/courses/{course_id}/subjects/{subject_id} - Remove subject
GET /schools/{id}/courses/{course_id}/job-positions - Linked job positions
PUT /schools/{id}/courses/{course_id}/job-positions - Replace linked job positions
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Header, Query, UploadFile, File, Form
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import text

from frog_portal.core.auth import bearer_scheme
from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.services import catalogue_service
from frog_portal.services.catalogue_service import load_course, load_school, INTAKE_ORDER
from frog_portal.services.school_token_service import find_valid_token, mark_used
from frog_portal.utils.file_upload import store_upload
from frog_portal.schemas.schemas import (
    EditorSessionResponse, SchoolDetail, EditorCourseCreate, EditorCourseUpdate, CourseDetail,
    IntakeDateCreate, IntakeDateResponse, PhotoCreate, PhotoResponse,
    SubjectCreate, SubjectResponse, JobPositionLinks, JobPositionResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schools", tags=["School Editor"])

INVALID_TOKEN = "無効または期限切れのトークンです"


# ============================================================
# CREDENTIALS
# ============================================================

def _check_token(school_id: int, token: Optional[str], email: Optional[str], require_email: bool) -> dict:
    if not token:
        raise HTTPException(status_code=400, detail="トークンが必要です")
    if require_email and not email:
        raise HTTPException(status_code=400, detail="メールアドレスが必要です")

    row = find_valid_token(school_id, token, email.strip().lower() if email else None)
    if not row:
        raise HTTPException(status_code=401, detail=INVALID_TOKEN)
    mark_used(row["token_id"])
    return row


async def editor_reader(
    school_id: int,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    x_email: Optional[str] = Header(None)
) -> dict:
    """Token for read-only editor calls; email checked when sent."""
    token = credentials.credentials if credentials else None
    return _check_token(school_id, token, x_email, require_email=False)


async def editor_writer(
    school_id: int,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    x_email: Optional[str] = Header(None)
) -> dict:
    """Token and email for editor calls that change data."""
    token = credentials.credentials if credentials else None
    return _check_token(school_id, token, x_email, require_email=True)


def _course_in_school(school_id: int, course_id: int) -> dict:
    course = fetch_one(
        "SELECT course_id, name FROM courses WHERE course_id = :cid AND school_id = :sid",
        {"cid": course_id, "sid": school_id}
    )
    if not course:
        raise HTTPException(status_code=404, detail="コースが見つかりません")
    return course


# ============================================================
# LANDING
# ============================================================

@router.get("/{school_id}/editor", response_model=EditorSessionResponse)
async def open_editor(school_id: int, token: Optional[str] = Query(None)):
    """
    Validate an invite link.

    Answers 200 with valid=false and a reason code (token-required,
    invalid-token, school-not-found) so the page can explain the problem.
    """
    if not token:
        return EditorSessionResponse(valid=False, reason="token-required")

    row = find_valid_token(school_id, token)
    if not row:
        return EditorSessionResponse(valid=False, reason="invalid-token")

    school = load_school(school_id)
    if not school:
        return EditorSessionResponse(valid=False, reason="school-not-found")

    mark_used(row["token_id"])
    return EditorSessionResponse(valid=True, school=SchoolDetail(**school))


# ============================================================
# COURSES
# ============================================================

@router.post("/{school_id}/courses", response_model=CourseDetail, status_code=201)
async def create_course(school_id: int, data: EditorCourseCreate, access: dict = Depends(editor_writer)):
    course_id = catalogue_service.insert_course(school_id, catalogue_service.course_values(data, exclude_unset=False))
    logger.info("Course %s created for school %s by %s", course_id, school_id, access["email"])
    return CourseDetail(**load_course(course_id))


@router.put("/{school_id}/courses/{course_id}", response_model=CourseDetail)
async def update_course(school_id: int, course_id: int, data: EditorCourseUpdate,
                        access: dict = Depends(editor_writer)):
    _course_in_school(school_id, course_id)
    values = catalogue_service.course_values(data, exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="更新する項目がありません")

    catalogue_service.update_course(course_id, values)
    return CourseDetail(**load_course(course_id))


@router.delete("/{school_id}/courses/{course_id}", response_model=MessageResponse)
async def delete_course(school_id: int, course_id: int, access: dict = Depends(editor_writer)):
    """Delete a course with its favorites, photos, subjects, intake dates and job links."""
    _course_in_school(school_id, course_id)
    if catalogue_service.has_applications(course_id):
        raise HTTPException(status_code=400, detail="申込のあるコースは削除できません")

    catalogue_service.delete_course(course_id)
    logger.info("Course %s deleted from school %s by %s", course_id, school_id, access["email"])
    return MessageResponse(message="コースを削除しました")


# ============================================================
# INTAKE DATES
# ============================================================

INTAKE_COLUMNS = "intake_date_id, course_id, month, day, year, start_date, is_tentative, notes"


def _intake_response(row: dict) -> IntakeDateResponse:
    row["is_tentative"] = bool(row["is_tentative"])
    return IntakeDateResponse(**row)


@router.get("/{school_id}/courses/{course_id}/intake-dates", response_model=List[IntakeDateResponse])
async def list_intake_dates(school_id: int, course_id: int, access: dict = Depends(editor_reader)):
    _course_in_school(school_id, course_id)
    rows = execute_raw_sql(
        f"SELECT {INTAKE_COLUMNS} FROM course_intake_dates WHERE course_id = :cid {INTAKE_ORDER}",
        {"cid": course_id}
    )
    return [_intake_response(r) for r in rows]


@router.post("/{school_id}/courses/{course_id}/intake-dates", response_model=IntakeDateResponse, status_code=201)
async def add_intake_date(school_id: int, course_id: int, data: IntakeDateCreate,
                          access: dict = Depends(editor_writer)):
    _course_in_school(school_id, course_id)
    with get_db_session() as db:
        result = db.execute(
            text(f"""
                INSERT INTO course_intake_dates (course_id, month, day, year, start_date, is_tentative, notes)
                VALUES (:cid, :month, :day, :year, :start_date, :is_tentative, :notes)
                RETURNING {INTAKE_COLUMNS}
            """),
            {"cid": course_id, **data.model_dump()}
        )
        row = dict(zip(result.keys(), result.fetchone()))
    return _intake_response(row)


@router.delete("/{school_id}/courses/{course_id}/intake-dates/{intake_date_id}", response_model=MessageResponse)
async def delete_intake_date(school_id: int, course_id: int, intake_date_id: int,
                             access: dict = Depends(editor_writer)):
    _course_in_school(school_id, course_id)
    with get_db_session() as db:
        # applications keep their row but lose the date reference
        db.execute(
            text("UPDATE course_applications SET intake_date_id = NULL WHERE intake_date_id = :id"),
            {"id": intake_date_id}
        )
        result = db.execute(
            text("DELETE FROM course_intake_dates WHERE intake_date_id = :id AND course_id = :cid"),
            {"id": intake_date_id, "cid": course_id}
        )
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="入学日が見つかりません")
    return MessageResponse(message="入学日を削除しました")


# ============================================================
# PHOTOS
# ============================================================

def _insert_photo(school_id: int, image_url: str, description: Optional[str], course_id: Optional[int]) -> PhotoResponse:
    if course_id is not None:
        _course_in_school(school_id, course_id)
    return PhotoResponse(**catalogue_service.insert_photo(school_id, image_url, description, course_id))


@router.get("/{school_id}/photos", response_model=List[PhotoResponse])
async def list_photos(school_id: int, access: dict = Depends(editor_reader)):
    return [PhotoResponse(**r) for r in catalogue_service.school_photos(school_id)]


@router.post("/{school_id}/photos", response_model=PhotoResponse, status_code=201)
async def add_photo(school_id: int, data: PhotoCreate, access: dict = Depends(editor_writer)):
    return _insert_photo(school_id, data.image_url, data.description, data.course_id)


@router.post("/{school_id}/photos/upload", response_model=PhotoResponse, status_code=201)
async def upload_photo(
    school_id: int,
    file: UploadFile = File(..., description="Photo (jpg, png, webp, gif; max 5MB)"),
    description: Optional[str] = Form(None),
    course_id: Optional[int] = Form(None),
    access: dict = Depends(editor_writer)
):
    stored = await store_upload(file, "school-photos", owner=str(school_id))
    return _insert_photo(school_id, stored["url"], description, course_id)


# ============================================================
# SUBJECTS
# ============================================================

@router.get("/{school_id}/courses/{course_id}/subjects", response_model=List[SubjectResponse])
async def list_subjects(school_id: int, course_id: int, access: dict = Depends(editor_reader)):
    _course_in_school(school_id, course_id)
    rows = execute_raw_sql(
        "SELECT subject_id, course_id, title, description FROM course_subjects WHERE course_id = :cid ORDER BY subject_id",
        {"cid": course_id}
    )
    return [SubjectResponse(**r) for r in rows]


@router.post("/{school_id}/courses/{course_id}/subjects", response_model=SubjectResponse, status_code=201)
async def add_subject(school_id: int, course_id: int, data: SubjectCreate, access: dict = Depends(editor_writer)):
    _course_in_school(school_id, course_id)
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO course_subjects (course_id, title, description)
                VALUES (:cid, :title, :description)
                RETURNING subject_id
            """),
            {"cid": course_id, "title": data.title, "description": data.description}
        )
        subject_id = result.fetchone()[0]
    return SubjectResponse(subject_id=subject_id, course_id=course_id, title=data.title, description=data.description)


@router.delete("/{school_id}/courses/{course_id}/subjects/{subject_id}", response_model=MessageResponse)
async def delete_subject(school_id: int, course_id: int, subject_id: int, access: dict = Depends(editor_writer)):
    _course_in_school(school_id, course_id)
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM course_subjects WHERE subject_id = :id AND course_id = :cid"),
            {"id": subject_id, "cid": course_id}
        )
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="科目が見つかりません")
    return MessageResponse(message="科目を削除しました")


# ============================================================
# JOB POSITIONS
# ============================================================

def _linked_positions(course_id: int) -> List[JobPositionResponse]:
    rows = execute_raw_sql("""
        SELECT jp.job_position_id, jp.title, jp.industry
        FROM course_job_positions cjp
        JOIN job_positions jp ON cjp.job_position_id = jp.job_position_id
        WHERE cjp.course_id = :cid ORDER BY jp.title
    """, {"cid": course_id})
    return [JobPositionResponse(**r) for r in rows]


@router.get("/{school_id}/courses/{course_id}/job-positions", response_model=List[JobPositionResponse])
async def get_course_job_positions(school_id: int, course_id: int, access: dict = Depends(editor_reader)):
    _course_in_school(school_id, course_id)
    return _linked_positions(course_id)


@router.put("/{school_id}/courses/{course_id}/job-positions", response_model=List[JobPositionResponse])
async def set_course_job_positions(school_id: int, course_id: int, data: JobPositionLinks,
                                   access: dict = Depends(editor_writer)):
    """Replace the course's job position links with the given ids."""
    _course_in_school(school_id, course_id)
    wanted = list(dict.fromkeys(data.job_position_ids))
    if wanted:
        placeholders = ", ".join(f":j{i}" for i in range(len(wanted)))
        known = execute_raw_sql(
            f"SELECT job_position_id FROM job_positions WHERE job_position_id IN ({placeholders})",
            {f"j{i}": jp for i, jp in enumerate(wanted)}
        )
        if len(known) != len(wanted):
            raise HTTPException(status_code=400, detail="存在しない職種が含まれています")

    with get_db_session() as db:
        db.execute(text("DELETE FROM course_job_positions WHERE course_id = :cid"), {"cid": course_id})
        for jp in wanted:
            db.execute(
                text("INSERT INTO course_job_positions (course_id, job_position_id) VALUES (:cid, :jp)"),
                {"cid": course_id, "jp": jp}
            )
    return _linked_positions(course_id)
