"""
Profile read/write helpers shared by the profile, dashboard and
application routes.
"""

from typing import Optional

from sqlalchemy import text

from frog_portal.db.postgres import get_db_session, fetch_one
from frog_portal.services.progress_service import onboarding_progress, profile_completion

PROFILE_SELECT = """
    SELECT p.user_id, u.email, p.first_name, p.last_name, p.avatar_url, p.migration_goal,
           p.english_level, p.current_occupation, p.future_occupation, p.work_experience,
           p.working_holiday, p.age_range, p.abroad_timing, p.support_needed,
           p.onboarding_completed, p.is_member, p.stripe_customer_id, p.stripe_subscription_id,
           p.subscription_status, p.subscription_period_end
    FROM profiles p JOIN users u ON p.user_id = u.user_id
    WHERE p.user_id = :uid
"""


def load_profile(user_id: int) -> Optional[dict]:
    """Profile row plus its onboarding progress and completion percentages."""
    profile = fetch_one(PROFILE_SELECT, {"uid": user_id})
    if not profile:
        return None
    profile["onboarding_completed"] = bool(profile["onboarding_completed"])
    profile["is_member"] = bool(profile["is_member"])
    profile["onboarding_progress"] = onboarding_progress(profile)
    profile["profile_completion"] = profile_completion(profile)
    return profile


def update_profile(user_id: int, changes: dict) -> None:
    if not changes:
        return
    assignments = ", ".join(f"{column} = :{column}" for column in changes)
    with get_db_session() as db:
        db.execute(
            text(f"UPDATE profiles SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE user_id = :uid"),
            {**changes, "uid": user_id}
        )
