"""
Progress calculations shown on the dashboard and application pages.

All functions are pure: they take rows/dicts and return numbers, so the
routes can compose them freely.
"""

import math
from typing import List, Optional

from frog_portal.utils.formatting import round_half_up, progress_color

ONBOARDING_FIELDS = [
    "migration_goal",
    "english_level",
    "work_experience",
    "working_holiday",
    "age_range",
    "abroad_timing",
    "support_needed",
]

PROFILE_FIELDS = ONBOARDING_FIELDS + ["current_occupation", "future_occupation"]

GOAL_LABELS = {
    "overseas_job": "海外就職",
    "improve_language": "語学力向上",
    "career_change": "キャリアチェンジ",
    "find_new_home": "移住先探し",
}

VISA_STEPS = 3

# plan status -> wizard step: built, waiting for review, reviewed
VISA_PLAN_STEPS = {
    "draft": 1,
    "submitted": 2,
    "reviewed": 3,
    "approved": 3,
}

STUDY_PLAN_STEPS = [
    ("college_selection", "学校選択"),
    ("admission_date", "入学日決定"),
    ("visa_planning", "ビザプラン作成"),
    ("document_preparation", "書類準備"),
]

# an admin-completed review settles school and admission date as well
SETTLED_PLAN_STATUSES = ("approved", "reviewed")


def _filled(value) -> bool:
    return value is not None and value != ""


def onboarding_progress(profile: Optional[dict]) -> int:
    """Share of the seven onboarding answers given, rounded to a whole percent."""
    if not profile:
        return 0
    done = sum(1 for f in ONBOARDING_FIELDS if profile.get(f))
    return round_half_up(done / len(ONBOARDING_FIELDS) * 100)


def profile_completion(profile: Optional[dict]) -> int:
    """Share of the nine profile fields filled, rounded down."""
    if not profile:
        return 0
    done = sum(1 for f in PROFILE_FIELDS if _filled(profile.get(f)))
    return math.floor(done / len(PROFILE_FIELDS) * 100)


def goal_label(goal: Optional[str]) -> Optional[str]:
    if not goal:
        return None
    return GOAL_LABELS.get(goal, goal)


# ============================================================
# FORM (CONTENT SNARE) PROGRESS
# ============================================================

def form_progress(request: dict, pages: List[dict], sections: List[dict]) -> dict:
    """
    Summarise a form request.

    Field counts come from the request when the API reports them, else from
    the per-page counts. An API completion percentage wins over our own.
    """
    total = request.get("fields_count")
    if total is None:
        total = sum(p.get("fields_count") or 0 for p in pages)

    done = request.get("done_fields_count")
    if done is None:
        done = sum(p.get("done_fields_count") or 0 for p in pages)

    percent = request.get("completion_percentage")
    if percent is None:
        percent = round_half_up(done / total * 100) if total > 0 else 0
    percent = round_half_up(float(percent))

    completed_sections = sum(1 for s in sections if s.get("status") == "complete")

    return {
        "total_fields": total,
        "done_fields": done,
        "percent": percent,
        "completed_sections": completed_sections,
        "total_sections": len(sections),
        "color": progress_color(percent),
    }


# ============================================================
# VISA & STUDY PLAN PROGRESS
# ============================================================

def visa_step_progress(current_step: int, total_steps: int = VISA_STEPS) -> dict:
    """Progress bar for the visa wizard: step 1 is 0%, the last step 100%."""
    current_step = max(1, min(current_step, total_steps))
    percent = (current_step - 1) / (total_steps - 1) * 100
    steps = []
    for step in range(1, total_steps + 1):
        if step < current_step:
            state = "complete"
        elif step == current_step:
            state = "current"
        else:
            state = "upcoming"
        steps.append({"step": step, "state": state})
    return {"percent": percent, "steps": steps}


def visa_plan_progress(status: Optional[str]) -> dict:
    """Wizard progress for a saved visa plan, from its status."""
    return visa_step_progress(VISA_PLAN_STEPS.get(status, 1))


def study_plan_progress(visa_plans: List[dict]) -> dict:
    """
    Four-step study plan derived from the user's visa plans.

    Any plan completes visa planning. An approved or reviewed first plan also
    means the school and admission date were settled.
    """
    completed = {key: False for key, _ in STUDY_PLAN_STEPS}
    if visa_plans:
        completed["visa_planning"] = True
        if visa_plans[0].get("status") in SETTLED_PLAN_STATUSES:
            completed["college_selection"] = True
            completed["admission_date"] = True

    done = sum(1 for v in completed.values() if v)
    return {
        "percent": round_half_up(done / len(STUDY_PLAN_STEPS) * 100),
        "steps": [
            {"key": key, "label": label, "completed": completed[key]}
            for key, label in STUDY_PLAN_STEPS
        ],
    }
