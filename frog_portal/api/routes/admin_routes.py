"""
Admin Routes

GET /admin/check - Is the caller an admin
GET /admin/applications - All applications (filter by status)
PUT /admin/applications/{id}/status - Review an application
GET /admin/applications/pending-count - Applications waiting for review
POST /admin/applications/{id}/schedules - Add a timeline entry for the applicant
DELETE /admin/applications/{id}/schedules/{schedule_id} - Remove a timeline entry
PUT /admin/documents/{id}/status - Approve or reject a document
PUT /admin/visa-reviews/{id} - Update a visa plan review
GET /admin/visa-reviews/pending-count - Reviews waiting for an admin
GET /admin/profiles - Member profiles (search by name or email)
GET /admin/profiles/{user_id} - One member with applications, visa plans and files
POST /admin/schools/{id}/invite - Issue a school editor link
"""

import logging
from datetime import datetime
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text

from frog_portal.core.auth import get_current_user, get_current_admin, is_admin
from frog_portal.api.routes.file_routes import list_user_files
from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.services import schedule_service, visa_service
from frog_portal.services.application_service import list_applications, list_user_applications, load_application
from frog_portal.services.profile_service import load_profile
from frog_portal.services.progress_service import goal_label
from frog_portal.services.school_token_service import create_invite
from frog_portal.utils.formatting import format_date
from frog_portal.schemas.schemas import (
    AdminProfileSummary, AdminProfileList, AdminProfileDetail, ProfileResponse, VisaPlanResponse,
    AdminCheckResponse, ApplicationStatus, CourseApplicationResponse, ApplicationStatusUpdate,
    CountResponse, ScheduleCreate, ScheduleResponse, DocumentStatusUpdate, MessageResponse,
    VisaReviewUpdate, VisaReviewResponse, VisaReviewStatus, SchoolInviteRequest, SchoolInviteResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/check", response_model=AdminCheckResponse)
async def check_admin(user: dict = Depends(get_current_user)):
    return AdminCheckResponse(is_admin=is_admin(user))


# ============================================================
# APPLICATIONS
# ============================================================

@router.get("/applications", response_model=List[CourseApplicationResponse])
async def all_applications(status: Optional[ApplicationStatus] = None, admin: dict = Depends(get_current_admin)):
    return [CourseApplicationResponse(**a) for a in list_applications(status.value if status else None)]


@router.get("/applications/pending-count", response_model=CountResponse)
async def pending_applications(admin: dict = Depends(get_current_admin)):
    row = fetch_one("SELECT COUNT(*) AS count FROM course_applications WHERE status = 'submitted'")
    return CountResponse(count=row["count"])


@router.put("/applications/{application_id}/status", response_model=CourseApplicationResponse)
async def update_application_status(application_id: int, data: ApplicationStatusUpdate,
                                    admin: dict = Depends(get_current_admin)):
    if not load_application(application_id):
        raise HTTPException(status_code=404, detail="申込が見つかりません")

    params = {"status": data.status.value, "aid": application_id}
    notes_clause = ""
    if data.admin_notes is not None:
        notes_clause = ", admin_notes = :notes"
        params["notes"] = data.admin_notes

    with get_db_session() as db:
        db.execute(
            text(f"""
                UPDATE course_applications SET status = :status{notes_clause}, updated_at = CURRENT_TIMESTAMP
                WHERE application_id = :aid
            """),
            params
        )

    logger.info("Application %s set to %s by admin %s", application_id, data.status.value, admin["user_id"])
    return CourseApplicationResponse(**load_application(application_id))


@router.post("/applications/{application_id}/schedules", response_model=ScheduleResponse, status_code=201)
async def add_schedule(application_id: int, data: ScheduleCreate, admin: dict = Depends(get_current_admin)):
    application = load_application(application_id)
    if not application:
        raise HTTPException(status_code=404, detail="申込が見つかりません")

    schedule_id = schedule_service.create_schedule(application["user_id"], application_id, data.model_dump())
    return ScheduleResponse(**schedule_service.get_schedule(schedule_id))


@router.delete("/applications/{application_id}/schedules/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(application_id: int, schedule_id: int, admin: dict = Depends(get_current_admin)):
    if not schedule_service.get_schedule(schedule_id, application_id):
        raise HTTPException(status_code=404, detail="予定が見つかりません")
    schedule_service.delete_schedule(schedule_id)
    return MessageResponse(message="予定を削除しました")


@router.put("/documents/{document_id}/status", response_model=MessageResponse)
async def update_document_status(document_id: int, data: DocumentStatusUpdate,
                                 admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(
            text("""
                UPDATE course_application_documents SET status = :status, updated_at = CURRENT_TIMESTAMP
                WHERE document_id = :did
            """),
            {"status": data.status.value, "did": document_id}
        )
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="書類が見つかりません")
    return MessageResponse(message="書類のステータスを更新しました")


# ============================================================
# VISA REVIEWS
# ============================================================

REVIEW_COLUMNS = "review_id, plan_id, reviewer_id, status, reviewer_notes, completed_at, created_at"


@router.get("/visa-reviews/pending-count", response_model=CountResponse)
async def pending_reviews(admin: dict = Depends(get_current_admin)):
    row = fetch_one("SELECT COUNT(*) AS count FROM visa_plan_reviews WHERE status = 'pending'")
    return CountResponse(count=row["count"])


@router.put("/visa-reviews/{review_id}", response_model=VisaReviewResponse)
async def update_review(review_id: int, data: VisaReviewUpdate, admin: dict = Depends(get_current_admin)):
    """
    Record the reviewer's decision.

    Completing a review stamps completed_at and moves the plan to reviewed.
    """
    review = fetch_one(f"SELECT {REVIEW_COLUMNS} FROM visa_plan_reviews WHERE review_id = :rid", {"rid": review_id})
    if not review:
        raise HTTPException(status_code=404, detail="レビューが見つかりません")

    completed = data.status == VisaReviewStatus.completed
    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE visa_plan_reviews
                SET status = :status, reviewer_notes = :notes, reviewer_id = :reviewer, completed_at = :completed_at
                WHERE review_id = :rid
            """),
            {
                "status": data.status.value, "notes": data.reviewer_notes, "reviewer": admin["user_id"],
                "completed_at": datetime.utcnow() if completed else None, "rid": review_id
            }
        )
        if completed:
            db.execute(
                text("UPDATE visa_plans SET status = 'reviewed', updated_at = CURRENT_TIMESTAMP WHERE plan_id = :pid"),
                {"pid": review["plan_id"]}
            )

    return VisaReviewResponse(
        **fetch_one(f"SELECT {REVIEW_COLUMNS} FROM visa_plan_reviews WHERE review_id = :rid", {"rid": review_id})
    )


# ============================================================
# SCHOOL EDITOR INVITES
# ============================================================

@router.post("/schools/{school_id}/invite", response_model=SchoolInviteResponse)
async def invite_school_editor(school_id: int, data: SchoolInviteRequest, admin: dict = Depends(get_current_admin)):
    email = (data.email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="メールアドレスは必須です")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise HTTPException(status_code=400, detail="無効なメールアドレスです") from e

    school = fetch_one("SELECT school_id, name FROM schools WHERE school_id = :sid", {"sid": school_id})
    if not school:
        raise HTTPException(status_code=404, detail="学校が見つかりません")

    invite = create_invite(school_id, email, created_by=admin["user_id"])
    return SchoolInviteResponse(
        access_url=invite["access_url"],
        school_name=school["name"],
        expires_at=invite["expires_at"],
    )


# ============================================================
# PROFILES
# ============================================================

PROFILE_LIST_FROM = """
    FROM users u
    JOIN profiles p ON p.user_id = u.user_id
    WHERE (:q = '' OR LOWER(u.email) LIKE :pattern OR LOWER(p.first_name) LIKE :pattern
           OR LOWER(p.last_name) LIKE :pattern)
"""


@router.get("/profiles", response_model=AdminProfileList)
async def list_profiles(
    q: str = Query("", description="Substring of email, first or last name"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: dict = Depends(get_current_admin)
):
    """Profiles newest first; total counts every match, not just the page."""
    term = q.strip().lower()
    params = {"q": term, "pattern": f"%{term}%", "limit": limit, "offset": offset}
    total = fetch_one(f"SELECT COUNT(*) AS count {PROFILE_LIST_FROM}", params)["count"]
    rows = execute_raw_sql(f"""
        SELECT u.user_id, u.email, u.role, u.created_at, p.first_name, p.last_name, p.migration_goal,
               p.onboarding_completed, p.is_member, p.subscription_status
        {PROFILE_LIST_FROM}
        ORDER BY u.created_at DESC, u.user_id DESC
        LIMIT :limit OFFSET :offset
    """, params)

    profiles = []
    for row in rows:
        row["onboarding_completed"] = bool(row["onboarding_completed"])
        row["is_member"] = bool(row["is_member"])
        row["created_at_label"] = format_date(row["created_at"])
        profiles.append(AdminProfileSummary(**row))
    return AdminProfileList(profiles=profiles, total=total)


@router.get("/profiles/{user_id}", response_model=AdminProfileDetail)
async def get_profile_detail(user_id: int, admin: dict = Depends(get_current_admin)):
    profile = load_profile(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="プロフィールが見つかりません")
    role = fetch_one("SELECT role FROM users WHERE user_id = :uid", {"uid": user_id})["role"]

    return AdminProfileDetail(
        profile=ProfileResponse(**profile),
        role=role,
        goal_label=goal_label(profile["migration_goal"]),
        applications=[CourseApplicationResponse(**a) for a in list_user_applications(user_id, include_drafts=True)],
        visa_plans=[VisaPlanResponse(**p) for p in visa_service.list_plans(user_id)],
        files=list_user_files(user_id),
    )
