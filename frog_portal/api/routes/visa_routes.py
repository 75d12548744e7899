"""
Visa Planning Routes

GET /visa/types - Visa types
POST /visa/plans - Create plan with ordered visa types
GET /visa/plans - Own plans
GET /visa/plans/{id} - Plan detail
PUT /visa/plans/{id}/items - Replace the plan's visa types
POST /visa/plans/{id}/submit - Submit plan for admin review
GET /visa/plans/{id}/reviews - Reviews of a plan
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from frog_portal.core.auth import get_current_user, is_admin
from frog_portal.db.postgres import get_db_session, fetch_one
from frog_portal.services import visa_service
from frog_portal.services.profile_service import load_profile
from frog_portal.services.slack_service import notify_visa_review, display_name
from frog_portal.schemas.schemas import (
    VisaTypeResponse, VisaPlanCreate, VisaPlanItemsUpdate, VisaPlanResponse, VisaReviewResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/visa", tags=["Visa Planning"])


def _owned_plan(plan_id: int, user: dict) -> dict:
    plan = visa_service.load_plan(plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="ビザプランが見つかりません")
    if plan["user_id"] != user["user_id"] and not is_admin(user):
        raise HTTPException(status_code=403, detail="このビザプランへのアクセス権限がありません")
    return plan


def _check_visa_types(items: list) -> None:
    missing = visa_service.unknown_visa_types([i.visa_type_id for i in items])
    if missing:
        raise HTTPException(status_code=400, detail=f"存在しないビザタイプです: {missing}")


@router.get("/types", response_model=List[VisaTypeResponse])
async def list_visa_types():
    """Visa types with their requirements in display order."""
    return [VisaTypeResponse(**t) for t in visa_service.list_visa_types()]


@router.post("/plans", response_model=VisaPlanResponse, status_code=201)
async def create_plan(data: VisaPlanCreate, user: dict = Depends(get_current_user)):
    _check_visa_types(data.items)
    plan_id = visa_service.create_plan(
        user["user_id"], data.name, data.description, [i.model_dump() for i in data.items]
    )
    logger.info("Visa plan %s created by user %s", plan_id, user["user_id"])
    return VisaPlanResponse(**visa_service.load_plan(plan_id))


@router.get("/plans", response_model=List[VisaPlanResponse])
async def list_plans(user: dict = Depends(get_current_user)):
    return [VisaPlanResponse(**p) for p in visa_service.list_plans(user["user_id"])]


@router.get("/plans/{plan_id}", response_model=VisaPlanResponse)
async def get_plan(plan_id: int, user: dict = Depends(get_current_user)):
    return VisaPlanResponse(**_owned_plan(plan_id, user))


@router.put("/plans/{plan_id}/items", response_model=VisaPlanResponse)
async def replace_items(plan_id: int, data: VisaPlanItemsUpdate, user: dict = Depends(get_current_user)):
    """Replace the plan's visa types; list order becomes the plan order."""
    plan = _owned_plan(plan_id, user)
    if plan["status"] == "submitted":
        raise HTTPException(status_code=400, detail="レビュー中のプランは変更できません")
    _check_visa_types(data.items)
    visa_service.replace_items(plan_id, [i.model_dump() for i in data.items])
    return VisaPlanResponse(**visa_service.load_plan(plan_id))


@router.post("/plans/{plan_id}/submit", response_model=VisaReviewResponse, status_code=201)
async def submit_plan(plan_id: int, user: dict = Depends(get_current_user)):
    """
    Ask an admin to review the plan.

    Creates a pending review, marks the plan submitted and notifies Slack.
    """
    plan = _owned_plan(plan_id, user)
    if not plan["items"]:
        raise HTTPException(status_code=400, detail="ビザタイプを1つ以上追加してください")
    if fetch_one("SELECT review_id FROM visa_plan_reviews WHERE plan_id = :pid AND status = 'pending'",
                 {"pid": plan_id}):
        raise HTTPException(status_code=400, detail="このプランは既にレビュー待ちです")

    with get_db_session() as db:
        result = db.execute(
            text("INSERT INTO visa_plan_reviews (plan_id, status) VALUES (:pid, 'pending') RETURNING review_id"),
            {"pid": plan_id}
        )
        review_id = result.fetchone()[0]
        db.execute(
            text("UPDATE visa_plans SET status = 'submitted', updated_at = CURRENT_TIMESTAMP WHERE plan_id = :pid"),
            {"pid": plan_id}
        )

    profile = load_profile(plan["user_id"]) or {}
    notice = notify_visa_review(
        review_id,
        display_name(profile.get("first_name"), profile.get("last_name"), profile.get("email", "")),
        "、".join(item["visa_type_name"] for item in plan["items"]),
    )
    if not notice["ok"]:
        logger.warning("Visa review %s notification not sent: %s", review_id, notice["error"])

    review = fetch_one("""
        SELECT review_id, plan_id, reviewer_id, status, reviewer_notes, completed_at, created_at
        FROM visa_plan_reviews WHERE review_id = :rid
    """, {"rid": review_id})
    return VisaReviewResponse(**review)


@router.get("/plans/{plan_id}/reviews", response_model=List[VisaReviewResponse])
async def list_reviews(plan_id: int, user: dict = Depends(get_current_user)):
    _owned_plan(plan_id, user)
    return [VisaReviewResponse(**r) for r in visa_service.list_reviews(plan_id)]
