"""
Content Snare Routes

POST /content-snare/webhook - Form events pushed by Content Snare
POST /content-snare/clients - Create (or reuse) the caller's Content Snare client
GET /admin/content-snare/templates - Form templates (admin)
GET /admin/content-snare/requests - Form requests (admin)
GET /admin/content-snare/clients/{client_id} - One Content Snare client (admin)
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Depends, Body, Query
from sqlalchemy import text

from frog_portal.core.auth import get_current_user, get_current_admin
from frog_portal.db.postgres import get_db_session
from frog_portal.services.application_service import find_by_request_id
from frog_portal.services.content_snare_client import ContentSnareError, get_content_snare_client
from frog_portal.services.mongo_service import record_webhook_event
from frog_portal.services.profile_service import load_profile
from frog_portal.services.slack_service import notify_form_submitted, display_name
from frog_portal.api.routes.application_routes import content_snare_http_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Content Snare"])

EVENT_STATUSES = {
    "request.submitted": "submitted",
    "request.approved": "approved",
    "request.rejected": "rejected",
}


@router.post("/content-snare/webhook")
async def content_snare_webhook(payload: Dict[str, Any] = Body(...)):
    """
    Move the matching application to the status the event implies.

    Unknown events are acknowledged without changes. A submitted form also
    notifies admins on Slack.
    """
    event = payload.get("event")
    request_id = payload.get("request_id")
    if not event or not request_id:
        raise HTTPException(status_code=400, detail="Invalid webhook data")

    application = find_by_request_id(str(request_id))
    if not application:
        record_webhook_event("content_snare", event, payload, handled=False)
        raise HTTPException(status_code=404, detail="Application not found")

    new_status = EVENT_STATUSES.get(event)
    if new_status:
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE course_applications SET status = :status, updated_at = CURRENT_TIMESTAMP
                    WHERE application_id = :aid
                """),
                {"status": new_status, "aid": application["application_id"]}
            )
        logger.info("Application %s -> %s (%s)", application["application_id"], new_status, event)

    if event == "request.submitted":
        profile = load_profile(application["user_id"]) or {}
        result = notify_form_submitted(
            application["application_id"],
            display_name(profile.get("first_name"), profile.get("last_name"), profile.get("email", "")),
            application["course_name"] or "不明なコース",
        )
        if not result["ok"]:
            logger.warning("Submission notice for %s not sent: %s", application["application_id"], result["error"])

    record_webhook_event("content_snare", event, payload, handled=new_status is not None)
    return {"success": True}


@router.post("/content-snare/clients")
async def create_client(user: dict = Depends(get_current_user)):
    """Content Snare client for the caller, matched by email before creating a new one."""
    profile = load_profile(user["user_id"])
    if not profile:
        raise HTTPException(status_code=404, detail="プロフィールが見つかりません")
    if not profile.get("first_name") or not profile.get("last_name"):
        raise HTTPException(status_code=400, detail="姓名を登録してください")

    full_name = f"{profile['first_name']} {profile['last_name']}"
    try:
        client = get_content_snare_client().create_client(full_name, profile["email"])
    except ContentSnareError as e:
        raise content_snare_http_error(e) from e
    return {"client_id": str(client["id"]), "full_name": client.get("full_name", full_name)}


@router.get("/admin/content-snare/templates")
async def list_templates(admin: dict = Depends(get_current_admin)) -> List[dict]:
    try:
        return get_content_snare_client().list_templates()
    except ContentSnareError as e:
        raise content_snare_http_error(e) from e


@router.get("/admin/content-snare/requests")
async def list_requests(
    client_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    admin: dict = Depends(get_current_admin)
) -> List[dict]:
    try:
        return get_content_snare_client().list_requests(client_id=client_id, page=page)
    except ContentSnareError as e:
        raise content_snare_http_error(e) from e


@router.get("/admin/content-snare/clients/{client_id}")
async def get_client(client_id: str, admin: dict = Depends(get_current_admin)) -> dict:
    try:
        return get_content_snare_client().get_client(client_id)
    except ContentSnareError as e:
        raise content_snare_http_error(e) from e
