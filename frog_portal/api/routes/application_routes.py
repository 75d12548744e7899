"""
Course Application Routes

POST /course-applications - Apply for a course (creates a Content Snare form request)
GET /course-applications - Own submitted applications
GET /course-applications/status?course_id= - Own application for a course
GET /course-applications/{id} - Application detail
GET /course-applications/{id}/form-status - Form progress from Content Snare
GET /course-applications/{id}/schedules - Timeline entries
POST /course-applications/{id}/schedules/{schedule_id} - Toggle or move an entry
GET /course-applications/{id}/documents - Attached documents
POST /course-applications/{id}/documents - Attach an uploaded file
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text

from frog_portal.core.auth import get_current_user, is_admin
from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.services import schedule_service
from frog_portal.services.application_service import (
    list_user_applications, load_application, find_by_request_id
)
from frog_portal.services.content_snare_client import ContentSnareError, get_content_snare_client
from frog_portal.services.profile_service import load_profile
from frog_portal.services.progress_service import form_progress
from frog_portal.services.slack_service import notify_course_application, display_name
from frog_portal.utils.formatting import status_badge, format_datetime
from frog_portal.schemas.schemas import (
    CourseApplicationCreate, CourseApplicationCreated, CourseApplicationResponse,
    ApplicationStatusResponse, FormStatusResponse, ScheduleActionRequest, ScheduleAction,
    ScheduleResponse, DocumentCreate, DocumentResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/course-applications", tags=["Course Applications"])


def content_snare_http_error(e: ContentSnareError) -> HTTPException:
    """Map a Content Snare failure onto the status our client sees."""
    status_code = e.status_code if e.status_code in (400, 404, 422, 500) else 502
    return HTTPException(status_code=status_code, detail=str(e))


def _owned_application(application_id: int, user: dict) -> dict:
    application = load_application(application_id)
    if not application:
        raise HTTPException(status_code=404, detail="申込が見つかりません")
    if application["user_id"] != user["user_id"] and not is_admin(user):
        raise HTTPException(status_code=403, detail="この申込へのアクセス権限がありません")
    return application


# ============================================================
# APPLY
# ============================================================

@router.post("", response_model=CourseApplicationCreated, status_code=201)
async def create_application(data: CourseApplicationCreate, user: dict = Depends(get_current_user)):
    """
    Apply for a course.

    Steps:
    1. Validate course, form template, profile and intake date
    2. Sync the applicant's name and email to their Content Snare client
    3. Create a published form request and store the application as draft
    4. Notify admins on Slack and put the enrollment date on the timeline
    """
    if not data.client_id or not data.course_id:
        raise HTTPException(status_code=400, detail="client_idとcourse_idは必須です")
    if not data.intake_date_id:
        raise HTTPException(status_code=400, detail="入学日（スタート日）の選択は必須です")

    course = fetch_one(
        "SELECT course_id, name, content_snare_template_id FROM courses WHERE course_id = :cid",
        {"cid": data.course_id}
    )
    if not course:
        raise HTTPException(status_code=404, detail="コースが見つかりません")
    if not course["content_snare_template_id"]:
        raise HTTPException(status_code=400, detail="このコースはオンライン申込に対応していません")

    profile = load_profile(user["user_id"])
    if not profile:
        raise HTTPException(status_code=404, detail="プロフィールが見つかりません")

    intake = fetch_one(
        """SELECT intake_date_id, month, day, year, start_date FROM course_intake_dates
           WHERE intake_date_id = :iid AND course_id = :cid""",
        {"iid": data.intake_date_id, "cid": data.course_id}
    )
    if not intake:
        raise HTTPException(status_code=400, detail="選択された入学日が見つかりません")

    full_name = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    client = get_content_snare_client()
    try:
        client.update_client(data.client_id, full_name, profile["email"], language_code="en")
        form_request = client.create_request(
            course["content_snare_template_id"],
            profile["email"],
            full_name,
            name=f"{course['name']} - {full_name}",
        )
    except ContentSnareError as e:
        logger.error("Form request for user %s, course %s failed: %s", user["user_id"], course["course_id"], e)
        raise content_snare_http_error(e) from e

    request_id = str(form_request["id"])
    share_link = form_request.get("share_link")

    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO course_applications (user_id, course_id, intake_date_id, status,
                    content_snare_id, content_snare_request_id, request_url)
                VALUES (:uid, :cid, :iid, 'draft', :client_id, :request_id, :url)
                RETURNING application_id
            """),
            {
                "uid": user["user_id"], "cid": course["course_id"], "iid": intake["intake_date_id"],
                "client_id": data.client_id, "request_id": request_id, "url": share_link
            }
        )
        application_id = result.fetchone()[0]

    notice = notify_course_application(
        application_id,
        display_name(profile.get("first_name"), profile.get("last_name"), profile["email"]),
        course["name"],
    )
    if not notice["ok"]:
        logger.warning("Application %s notification not sent: %s", application_id, notice["error"])

    schedule_service.create_enrollment_schedule(user["user_id"], application_id, course["name"], intake)

    logger.info("Application %s created (request %s)", application_id, request_id)
    return CourseApplicationCreated(request_id=request_id, share_link=share_link, application_id=application_id)


# ============================================================
# READ
# ============================================================

@router.get("", response_model=List[CourseApplicationResponse])
async def my_applications(user: dict = Depends(get_current_user)):
    """Own applications that left the draft state."""
    return [CourseApplicationResponse(**a) for a in list_user_applications(user["user_id"])]


@router.get("/status", response_model=Optional[ApplicationStatusResponse])
async def application_status(course_id: int = Query(...), user: dict = Depends(get_current_user)):
    """Latest own application for a course, or null when the user has not applied."""
    row = fetch_one("""
        SELECT application_id, status, content_snare_request_id FROM course_applications
        WHERE user_id = :uid AND course_id = :cid
        ORDER BY created_at DESC, application_id DESC
    """, {"uid": user["user_id"], "cid": course_id})
    return ApplicationStatusResponse(**row) if row else None


@router.get("/{application_id}", response_model=CourseApplicationResponse)
async def get_application(application_id: int, user: dict = Depends(get_current_user)):
    return CourseApplicationResponse(**_owned_application(application_id, user))


@router.get("/{reference}/form-status", response_model=FormStatusResponse)
async def form_status(reference: str, user: dict = Depends(get_current_user)):
    """
    Form progress for an application.

    reference may be the Content Snare request id or our application id.
    """
    application = find_by_request_id(reference)
    if not application and reference.isdigit():
        application = load_application(int(reference))
    if not application:
        raise HTTPException(status_code=404, detail="申込が見つかりません")
    if application["user_id"] != user["user_id"] and not is_admin(user):
        raise HTTPException(status_code=403, detail="この申込へのアクセス権限がありません")

    request_id = application["content_snare_request_id"]
    if not request_id:
        raise HTTPException(status_code=404, detail="申込フォームがまだ作成されていません")

    client = get_content_snare_client()
    try:
        form_request = client.get_request(request_id)
        pages = client.get_request_pages(request_id)
        sections = client.get_request_sections(request_id)
    except ContentSnareError as e:
        raise content_snare_http_error(e) from e

    return FormStatusResponse(
        request_id=request_id,
        status=form_request.get("status"),
        share_link=form_request.get("share_link") or application["request_url"],
        progress=form_progress(form_request, pages, sections),
        pages=pages,
        sections=sections,
    )


# ============================================================
# SCHEDULES
# ============================================================

@router.get("/{application_id}/schedules", response_model=List[ScheduleResponse])
async def list_schedules(application_id: int, user: dict = Depends(get_current_user)):
    _owned_application(application_id, user)
    return [ScheduleResponse(**s) for s in schedule_service.list_schedules(application_id)]


@router.post("/{application_id}/schedules/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(application_id: int, schedule_id: int, data: ScheduleActionRequest,
                          user: dict = Depends(get_current_user)):
    """
    Tick an entry off or move it.

    Entries locked by an admin can only be changed by admins.
    """
    _owned_application(application_id, user)

    schedule = schedule_service.get_schedule(schedule_id, application_id)
    if not schedule:
        raise HTTPException(status_code=404, detail="予定が見つかりません")
    if schedule["is_admin_locked"] and not is_admin(user):
        raise HTTPException(status_code=403, detail="この予定は管理者のみ変更できます")

    if data.action == ScheduleAction.toggle_completed:
        completed = data.completed if data.completed is not None else not schedule["is_completed"]
        changes = {"is_completed": completed}
    else:
        if data.year is None or data.month is None:
            raise HTTPException(status_code=400, detail="年と月は必須です")
        changes = {"year": data.year, "month": data.month, "day": data.day}

    return ScheduleResponse(**schedule_service.update_schedule(schedule_id, changes))


# ============================================================
# DOCUMENTS
# ============================================================

DOCUMENT_SELECT = """
    SELECT d.document_id, d.application_id, d.file_id, d.document_type, d.status, d.created_at,
           f.name AS file_name, f.url AS file_url
    FROM course_application_documents d
    JOIN user_files f ON d.file_id = f.file_id
"""


def _document_response(row: dict) -> DocumentResponse:
    return DocumentResponse(
        **row, status_badge=status_badge(row["status"]), created_at_label=format_datetime(row["created_at"])
    )


@router.get("/{application_id}/documents", response_model=List[DocumentResponse])
async def list_documents(application_id: int, user: dict = Depends(get_current_user)):
    _owned_application(application_id, user)
    rows = execute_raw_sql(
        DOCUMENT_SELECT + " WHERE d.application_id = :aid ORDER BY d.created_at, d.document_id",
        {"aid": application_id}
    )
    return [_document_response(r) for r in rows]


@router.post("/{application_id}/documents", response_model=DocumentResponse, status_code=201)
async def attach_document(application_id: int, data: DocumentCreate, user: dict = Depends(get_current_user)):
    """Attach one of the caller's uploaded files to their own application."""
    application = _owned_application(application_id, user)
    if application["user_id"] != user["user_id"]:
        raise HTTPException(status_code=403, detail="この申込へのアクセス権限がありません")

    if not fetch_one("SELECT file_id FROM user_files WHERE file_id = :fid AND user_id = :uid",
                     {"fid": data.file_id, "uid": user["user_id"]}):
        raise HTTPException(status_code=404, detail="ファイルが見つかりません")

    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO course_application_documents (application_id, file_id, document_type)
                VALUES (:aid, :fid, :doc_type)
                RETURNING document_id
            """),
            {"aid": application_id, "fid": data.file_id, "doc_type": data.document_type.value}
        )
        document_id = result.fetchone()[0]

    row = fetch_one(DOCUMENT_SELECT + " WHERE d.document_id = :did", {"did": document_id})
    return _document_response(row)
