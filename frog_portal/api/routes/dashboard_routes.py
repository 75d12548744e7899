"""
Dashboard Routes

GET /dashboard - Everything the member home page shows in one call
"""

import logging

from fastapi import APIRouter, HTTPException, Depends

from frog_portal.core.auth import get_current_user
from frog_portal.services import visa_service
from frog_portal.services.application_service import list_user_applications
from frog_portal.services.catalogue_service import favorite_courses
from frog_portal.services.profile_service import load_profile
from frog_portal.services.progress_service import goal_label, study_plan_progress
from frog_portal.services.recommendation_service import recommend_courses
from frog_portal.schemas.schemas import DashboardResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])

LATEST_APPLICATIONS = 5


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(user: dict = Depends(get_current_user)):
    """
    Member home page data.

    Drafts are included in the latest applications so a freshly started
    form shows up right away.
    """
    profile = load_profile(user["user_id"])
    if not profile:
        raise HTTPException(status_code=404, detail="プロフィールが見つかりません")

    visa_plans = visa_service.list_plans(user["user_id"])
    return DashboardResponse(
        profile=profile,
        goal_label=goal_label(profile.get("migration_goal")),
        applications=list_user_applications(user["user_id"], include_drafts=True, limit=LATEST_APPLICATIONS),
        favorites=favorite_courses(user["user_id"]),
        visa_plans=visa_plans,
        study_plan=study_plan_progress(visa_plans),
        recommendations=recommend_courses(user["user_id"]),
    )
