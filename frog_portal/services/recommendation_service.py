"""
Course Recommendation Service

PURPOSE:
Pick a handful of courses for the dashboard based on the user's profile.

HOW IT WORKS:
1. Build a feature row per course:
   - job match: course is linked to the user's future occupation
   - goal match: course lists the user's migration goal
   - category match: course category is one the user already favorited
2. Score = weighted sum of the features (numpy dot product)
3. Return the top N courses with a score above zero
4. With nothing to go on, fall back to the newest courses

Courses the user already applied to are never recommended.
"""

import logging
from typing import List, Optional, Set

import numpy as np

from frog_portal.db.postgres import execute_raw_sql, fetch_one
from frog_portal.services.progress_service import goal_label

logger = logging.getLogger(__name__)

# job match, goal match, category match
FEATURE_WEIGHTS = np.array([0.6, 0.3, 0.1])
DEFAULT_LIMIT = 3


def course_goals(course: dict) -> Set[str]:
    raw = course.get("migration_goals") or ""
    return {g.strip() for g in raw.split(",") if g.strip()}


def feature_matrix(courses: List[dict], job_course_ids: Set[int], goal: Optional[str],
                   preferred_categories: Set[str]) -> np.ndarray:
    """One row of 0/1 features per course, columns in FEATURE_WEIGHTS order."""
    rows = [
        [
            1.0 if c["course_id"] in job_course_ids else 0.0,
            1.0 if goal and goal in course_goals(c) else 0.0,
            1.0 if c.get("category") and c["category"] in preferred_categories else 0.0,
        ]
        for c in courses
    ]
    return np.array(rows, dtype=float).reshape(len(courses), len(FEATURE_WEIGHTS))


def _reason(features: np.ndarray, goal: Optional[str], category: Optional[str]) -> str:
    reasons = []
    if features[0]:
        reasons.append("希望職種に関連するコース")
    if features[1]:
        reasons.append(f"渡航目的「{goal_label(goal)}」に対応")
    if features[2]:
        reasons.append(f"お気に入りと同じカテゴリ（{category}）")
    return "、".join(reasons)


def score_courses(courses: List[dict], job_course_ids: Set[int], goal: Optional[str],
                  preferred_categories: Set[str], limit: int = DEFAULT_LIMIT) -> List[dict]:
    """
    Rank courses by weighted feature score.

    Ties keep the input order (stable sort). Courses scoring zero are left out.
    """
    if not courses:
        return []

    features = feature_matrix(courses, job_course_ids, goal, preferred_categories)
    scores = features @ FEATURE_WEIGHTS
    order = np.argsort(-scores, kind="stable")

    ranked = []
    for idx in order:
        if scores[idx] <= 0 or len(ranked) >= limit:
            break
        course = courses[idx]
        ranked.append({
            "course_id": course["course_id"],
            "name": course["name"],
            "school_name": course.get("school_name"),
            "category": course.get("category"),
            "score": round(float(scores[idx]), 4),
            "reason": _reason(features[idx], goal, course.get("category")),
        })
    return ranked


def recommend_courses(user_id: int, limit: int = DEFAULT_LIMIT) -> List[dict]:
    """Top courses for a user, newest courses when the profile gives no signal."""
    profile = fetch_one(
        "SELECT migration_goal, future_occupation FROM profiles WHERE user_id = :uid", {"uid": user_id}
    ) or {}

    courses = execute_raw_sql("""
        SELECT c.course_id, c.name, c.category, c.migration_goals, c.created_at, s.name AS school_name
        FROM courses c
        JOIN schools s ON c.school_id = s.school_id
        WHERE c.course_id NOT IN (
            SELECT course_id FROM course_applications WHERE user_id = :uid
        )
        ORDER BY c.created_at DESC, c.course_id DESC
    """, {"uid": user_id})

    job_course_ids: Set[int] = set()
    if profile.get("future_occupation"):
        rows = execute_raw_sql(
            "SELECT course_id FROM course_job_positions WHERE job_position_id = :jp",
            {"jp": profile["future_occupation"]}
        )
        job_course_ids = {r["course_id"] for r in rows}

    favorites = execute_raw_sql("""
        SELECT DISTINCT c.category FROM favorite_courses f
        JOIN courses c ON f.course_id = c.course_id
        WHERE f.user_id = :uid AND c.category IS NOT NULL
    """, {"uid": user_id})
    preferred = {r["category"] for r in favorites}

    ranked = score_courses(courses, job_course_ids, profile.get("migration_goal"), preferred, limit)
    if ranked:
        return ranked

    logger.debug("No profile signal for user %s, recommending newest courses", user_id)
    return [
        {
            "course_id": c["course_id"],
            "name": c["name"],
            "school_name": c.get("school_name"),
            "category": c.get("category"),
            "score": 0.0,
            "reason": "新着コース",
        }
        for c in courses[:limit]
    ]
