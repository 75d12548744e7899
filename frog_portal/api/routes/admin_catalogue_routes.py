"""
Admin Catalogue Routes

POST /admin/schools - Create school
PUT /admin/schools/{id} - Update school
DELETE /admin/schools/{id} - Delete school without courses
POST /admin/schools/{id}/courses - Create course (form template allowed)
PUT /admin/courses/{id} - Update course (form template allowed)
DELETE /admin/courses/{id} - Delete course and its children
POST /admin/schools/{id}/photos - Add photo by URL
POST /admin/schools/{id}/photos/upload - Upload photo file
DELETE /admin/photos/{id} - Remove photo
POST /admin/job-positions - Create job position
PUT /admin/job-positions/{id} - Rename job position
DELETE /admin/job-positions/{id} - Delete job position
POST /admin/visa-types - Create visa type with requirements
PUT /admin/visa-types/{id} - Update visa type, replacing requirements when sent
DELETE /admin/visa-types/{id} - Delete visa type not used by any plan
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Form
from sqlalchemy import text

from frog_portal.core.auth import get_current_admin
from frog_portal.db.postgres import get_db_session, fetch_one
from frog_portal.services import catalogue_service, visa_service
from frog_portal.utils.file_upload import store_upload
from frog_portal.schemas.schemas import (
    SchoolCreate, SchoolUpdate, SchoolDetail, CourseCreate, CourseUpdate, CourseDetail,
    PhotoCreate, PhotoResponse, JobPositionCreate, JobPositionResponse,
    VisaTypeCreate, VisaTypeUpdate, VisaTypeResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Catalogue"])


def _school_or_404(school_id: int) -> dict:
    school = fetch_one("SELECT school_id, name FROM schools WHERE school_id = :sid", {"sid": school_id})
    if not school:
        raise HTTPException(status_code=404, detail="学校が見つかりません")
    return school


def _check_location(location_id: Optional[int]) -> None:
    if location_id is None:
        return
    if not fetch_one("SELECT location_id FROM goal_locations WHERE location_id = :lid", {"lid": location_id}):
        raise HTTPException(status_code=400, detail="存在しない地域です")


# ============================================================
# SCHOOLS
# ============================================================

@router.post("/schools", response_model=SchoolDetail, status_code=201)
async def create_school(data: SchoolCreate, admin: dict = Depends(get_current_admin)):
    _check_location(data.goal_location_id)
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO schools (name, goal_location_id, website, description)
                VALUES (:name, :goal_location_id, :website, :description)
                RETURNING school_id
            """),
            data.model_dump()
        )
        school_id = result.fetchone()[0]

    logger.info("School %s created by admin %s", school_id, admin["user_id"])
    return SchoolDetail(**catalogue_service.load_school(school_id))


@router.put("/schools/{school_id}", response_model=SchoolDetail)
async def update_school(school_id: int, data: SchoolUpdate, admin: dict = Depends(get_current_admin)):
    _school_or_404(school_id)
    values = data.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="更新する項目がありません")
    if "goal_location_id" in values:
        _check_location(values["goal_location_id"])

    assignments = ", ".join(f"{c} = :{c}" for c in values)
    with get_db_session() as db:
        db.execute(text(f"UPDATE schools SET {assignments} WHERE school_id = :sid"), {**values, "sid": school_id})
    return SchoolDetail(**catalogue_service.load_school(school_id))


@router.delete("/schools/{school_id}", response_model=MessageResponse)
async def delete_school(school_id: int, admin: dict = Depends(get_current_admin)):
    """Delete a school with its photos and editor links. Schools with courses are kept."""
    _school_or_404(school_id)
    if fetch_one("SELECT course_id FROM courses WHERE school_id = :sid", {"sid": school_id}):
        raise HTTPException(status_code=400, detail="コースのある学校は削除できません")

    with get_db_session() as db:
        db.execute(text("DELETE FROM school_photos WHERE school_id = :sid"), {"sid": school_id})
        db.execute(text("DELETE FROM school_access_tokens WHERE school_id = :sid"), {"sid": school_id})
        db.execute(text("DELETE FROM schools WHERE school_id = :sid"), {"sid": school_id})

    logger.info("School %s deleted by admin %s", school_id, admin["user_id"])
    return MessageResponse(message="学校を削除しました")


# ============================================================
# COURSES
# ============================================================

def _course_or_404(course_id: int) -> dict:
    course = fetch_one("SELECT course_id, school_id FROM courses WHERE course_id = :cid", {"cid": course_id})
    if not course:
        raise HTTPException(status_code=404, detail="コースが見つかりません")
    return course


@router.post("/schools/{school_id}/courses", response_model=CourseDetail, status_code=201)
async def create_course(school_id: int, data: CourseCreate, admin: dict = Depends(get_current_admin)):
    _school_or_404(school_id)
    course_id = catalogue_service.insert_course(school_id, catalogue_service.course_values(data, exclude_unset=False))
    logger.info("Course %s created for school %s by admin %s", course_id, school_id, admin["user_id"])
    return CourseDetail(**catalogue_service.load_course(course_id))


@router.put("/courses/{course_id}", response_model=CourseDetail)
async def update_course(course_id: int, data: CourseUpdate, admin: dict = Depends(get_current_admin)):
    _course_or_404(course_id)
    values = catalogue_service.course_values(data, exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="更新する項目がありません")

    catalogue_service.update_course(course_id, values)
    return CourseDetail(**catalogue_service.load_course(course_id))


@router.delete("/courses/{course_id}", response_model=MessageResponse)
async def delete_course(course_id: int, admin: dict = Depends(get_current_admin)):
    _course_or_404(course_id)
    if catalogue_service.has_applications(course_id):
        raise HTTPException(status_code=400, detail="申込のあるコースは削除できません")

    catalogue_service.delete_course(course_id)
    logger.info("Course %s deleted by admin %s", course_id, admin["user_id"])
    return MessageResponse(message="コースを削除しました")


# ============================================================
# PHOTOS
# ============================================================

def _insert_photo(school_id: int, image_url: str, description: Optional[str], course_id: Optional[int]) -> PhotoResponse:
    _school_or_404(school_id)
    if course_id is not None and _course_or_404(course_id)["school_id"] != school_id:
        raise HTTPException(status_code=400, detail="コースがこの学校に属していません")
    return PhotoResponse(**catalogue_service.insert_photo(school_id, image_url, description, course_id))


@router.post("/schools/{school_id}/photos", response_model=PhotoResponse, status_code=201)
async def add_photo(school_id: int, data: PhotoCreate, admin: dict = Depends(get_current_admin)):
    return _insert_photo(school_id, data.image_url, data.description, data.course_id)


@router.post("/schools/{school_id}/photos/upload", response_model=PhotoResponse, status_code=201)
async def upload_photo(
    school_id: int,
    file: UploadFile = File(..., description="Photo (jpg, png, webp, gif; max 5MB)"),
    description: Optional[str] = Form(None),
    course_id: Optional[int] = Form(None),
    admin: dict = Depends(get_current_admin)
):
    _school_or_404(school_id)
    stored = await store_upload(file, "school-photos", owner=str(school_id))
    return _insert_photo(school_id, stored["url"], description, course_id)


@router.delete("/photos/{photo_id}", response_model=MessageResponse)
async def delete_photo(photo_id: int, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(text("DELETE FROM school_photos WHERE photo_id = :pid"), {"pid": photo_id})
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="写真が見つかりません")
    return MessageResponse(message="写真を削除しました")


# ============================================================
# JOB POSITIONS
# ============================================================

@router.post("/job-positions", response_model=JobPositionResponse, status_code=201)
async def create_job_position(data: JobPositionCreate, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(
            text("INSERT INTO job_positions (title, industry) VALUES (:title, :industry) RETURNING job_position_id"),
            data.model_dump()
        )
        job_position_id = result.fetchone()[0]
    return JobPositionResponse(job_position_id=job_position_id, **data.model_dump())


@router.put("/job-positions/{job_position_id}", response_model=JobPositionResponse)
async def update_job_position(job_position_id: int, data: JobPositionCreate, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(
            text("UPDATE job_positions SET title = :title, industry = :industry WHERE job_position_id = :jid"),
            {**data.model_dump(), "jid": job_position_id}
        )
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="職種が見つかりません")
    return JobPositionResponse(job_position_id=job_position_id, **data.model_dump())


@router.delete("/job-positions/{job_position_id}", response_model=MessageResponse)
async def delete_job_position(job_position_id: int, admin: dict = Depends(get_current_admin)):
    """Unlink the position from courses and clear it from profiles, then delete it."""
    with get_db_session() as db:
        db.execute(text("DELETE FROM course_job_positions WHERE job_position_id = :jid"), {"jid": job_position_id})
        db.execute(
            text("UPDATE profiles SET future_occupation = NULL WHERE future_occupation = :jid"),
            {"jid": job_position_id}
        )
        result = db.execute(text("DELETE FROM job_positions WHERE job_position_id = :jid"), {"jid": job_position_id})
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="職種が見つかりません")
    return MessageResponse(message="職種を削除しました")


# ============================================================
# VISA TYPES
# ============================================================

@router.post("/visa-types", response_model=VisaTypeResponse, status_code=201)
async def create_visa_type(data: VisaTypeCreate, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO visa_types (name, description, country)
                VALUES (:name, :description, :country)
                RETURNING visa_type_id
            """),
            {"name": data.name, "description": data.description, "country": data.country}
        )
        visa_type_id = result.fetchone()[0]
        visa_service.replace_requirements(db, visa_type_id, [r.model_dump() for r in data.requirements])

    logger.info("Visa type %s created by admin %s", visa_type_id, admin["user_id"])
    return VisaTypeResponse(**visa_service.load_visa_type(visa_type_id))


@router.put("/visa-types/{visa_type_id}", response_model=VisaTypeResponse)
async def update_visa_type(visa_type_id: int, data: VisaTypeUpdate, admin: dict = Depends(get_current_admin)):
    if not visa_service.load_visa_type(visa_type_id):
        raise HTTPException(status_code=404, detail="ビザタイプが見つかりません")

    values = data.model_dump(exclude_unset=True)
    requirements = values.pop("requirements", None)
    if not values and requirements is None:
        raise HTTPException(status_code=400, detail="更新する項目がありません")

    with get_db_session() as db:
        if values:
            assignments = ", ".join(f"{c} = :{c}" for c in values)
            db.execute(
                text(f"UPDATE visa_types SET {assignments} WHERE visa_type_id = :vid"),
                {**values, "vid": visa_type_id}
            )
        if requirements is not None:
            visa_service.replace_requirements(db, visa_type_id, requirements)
    return VisaTypeResponse(**visa_service.load_visa_type(visa_type_id))


@router.delete("/visa-types/{visa_type_id}", response_model=MessageResponse)
async def delete_visa_type(visa_type_id: int, admin: dict = Depends(get_current_admin)):
    if not visa_service.load_visa_type(visa_type_id):
        raise HTTPException(status_code=404, detail="ビザタイプが見つかりません")
    if visa_service.visa_type_in_use(visa_type_id):
        raise HTTPException(status_code=400, detail="ビザプランで使用中のビザタイプは削除できません")

    with get_db_session() as db:
        db.execute(text("DELETE FROM visa_requirements WHERE visa_type_id = :vid"), {"vid": visa_type_id})
        db.execute(text("DELETE FROM visa_types WHERE visa_type_id = :vid"), {"vid": visa_type_id})

    logger.info("Visa type %s deleted by admin %s", visa_type_id, admin["user_id"])
    return MessageResponse(message="ビザタイプを削除しました")
