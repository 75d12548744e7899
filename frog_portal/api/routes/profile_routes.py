"""
Profile Routes

GET /profiles/me - Own profile with onboarding progress and completion
PUT /profiles/me - Update profile (partial)
POST /profiles/me/onboarding - Save onboarding answers
POST /profiles/me/avatar - Upload avatar image
"""

import logging

from fastapi import APIRouter, HTTPException, Depends, UploadFile, File

from frog_portal.core.auth import get_current_user
from frog_portal.db.postgres import fetch_one
from frog_portal.services.profile_service import load_profile, update_profile
from frog_portal.services.progress_service import goal_label
from frog_portal.services.slack_service import notify_onboarding_completed, display_name
from frog_portal.utils.file_upload import store_upload
from frog_portal.schemas.schemas import ProfileUpdate, OnboardingRequest, ProfileResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["Profiles"])


def _require_profile(user_id: int) -> dict:
    profile = load_profile(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="プロフィールが見つかりません")
    return profile


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(user: dict = Depends(get_current_user)):
    return ProfileResponse(**_require_profile(user["user_id"]))


@router.put("/me", response_model=ProfileResponse)
async def update_my_profile(data: ProfileUpdate, user: dict = Depends(get_current_user)):
    """Update profile. Only provided fields are updated."""
    _require_profile(user["user_id"])

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="更新する項目がありません")

    if changes.get("future_occupation") is not None:
        if not fetch_one("SELECT job_position_id FROM job_positions WHERE job_position_id = :id",
                         {"id": changes["future_occupation"]}):
            raise HTTPException(status_code=400, detail="指定された職種が存在しません")

    update_profile(user["user_id"], changes)
    return ProfileResponse(**load_profile(user["user_id"]))


@router.post("/me/onboarding", response_model=ProfileResponse)
async def complete_onboarding(data: OnboardingRequest, user: dict = Depends(get_current_user)):
    """
    Save the seven onboarding answers and mark onboarding complete.

    Admins are notified on Slack; a failed notification does not fail the request.
    """
    profile = _require_profile(user["user_id"])

    answers = data.model_dump()
    answers["migration_goal"] = data.migration_goal.value
    update_profile(user["user_id"], {**answers, "onboarding_completed": True})

    result = notify_onboarding_completed(
        user["user_id"],
        user["email"],
        display_name(profile.get("first_name"), profile.get("last_name"), user["email"]),
        goal_label(answers["migration_goal"]),
    )
    if not result["ok"]:
        logger.warning("Onboarding notification for user %s not sent: %s", user["user_id"], result["error"])

    return ProfileResponse(**load_profile(user["user_id"]))


@router.post("/me/avatar", response_model=ProfileResponse)
async def upload_avatar(
    file: UploadFile = File(..., description="Avatar image (jpg, png, webp, gif; max 5MB)"),
    user: dict = Depends(get_current_user)
):
    _require_profile(user["user_id"])
    stored = await store_upload(file, "avatars", owner=str(user["user_id"]))
    update_profile(user["user_id"], {"avatar_url": stored["url"]})
    return ProfileResponse(**load_profile(user["user_id"]))
