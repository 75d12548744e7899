"""
Slack Notification Service

Posts admin notifications to an incoming webhook when:
- a user finishes onboarding
- a course application is created
- a visa plan is submitted for review

Sending never raises: every function returns {"ok": bool, "error": str|None}
so callers can log the outcome and carry on.
"""

import logging
import time
from typing import List, Optional

import requests

from frog_portal.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

ATTACHMENT_COLOR = "#36a64f"
FOOTER = "Frog Members Portal"


def send_slack_notification(webhook_url: str, payload: dict, timeout: Optional[float] = None) -> dict:
    if not webhook_url:
        return {"ok": False, "error": "webhook_url_missing"}

    try:
        response = requests.post(
            webhook_url,
            json=payload,
            timeout=timeout or settings.slack_timeout_seconds,
        )
    except requests.Timeout:
        logger.warning("Slack webhook timed out")
        return {"ok": False, "error": "timeout"}
    except requests.RequestException as e:
        logger.warning("Slack webhook failed: %s", e)
        return {"ok": False, "error": "fetch_error"}

    if not response.ok:
        logger.warning("Slack webhook returned %s: %s", response.status_code, response.text[:200])
        return {"ok": False, "error": f"status_{response.status_code}"}

    return {"ok": True, "error": None}


def build_admin_payload(title: str, message: str, fields: Optional[List[dict]] = None) -> dict:
    return {
        "attachments": [
            {
                "color": ATTACHMENT_COLOR,
                "title": title,
                "text": message,
                "fields": fields or [],
                "footer": FOOTER,
                "ts": int(time.time()),
            }
        ]
    }


def send_admin_notification(title: str, message: str, fields: Optional[List[dict]] = None) -> dict:
    payload = build_admin_payload(title, message, fields)
    return send_slack_notification(settings.slack_admin_webhook_url, payload)


def display_name(first_name: Optional[str], last_name: Optional[str], fallback: str = "") -> str:
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return first_name or last_name or fallback or "不明なユーザー"


# ============================================================
# EVENT NOTIFICATIONS
# ============================================================

def notify_onboarding_completed(user_id: int, email: str, name: str, goal: Optional[str] = None) -> dict:
    fields = [
        {"title": "ユーザーID", "value": str(user_id), "short": True},
        {"title": "メールアドレス", "value": email, "short": True},
    ]
    if goal:
        fields.append({"title": "目標", "value": goal, "short": True})
    fields.append({"title": "管理画面", "value": f"{settings.app_url}/admin/profiles/{user_id}"})
    return send_admin_notification(
        "🎉 新規ユーザー登録",
        f"{name}さんが新規登録しました。",
        fields,
    )


def notify_course_application(application_id: int, user_name: str, course_name: str) -> dict:
    return send_admin_notification(
        "新規コース申請",
        f"{user_name}さんから{course_name}への申し込みがありました",
        [
            {"title": "ユーザー", "value": user_name, "short": True},
            {"title": "コース", "value": course_name, "short": True},
            {"title": "リンク", "value": f"{settings.app_url}/admin/applications/{application_id}"},
        ],
    )


def notify_visa_review(review_id: int, user_name: str, visa_types: str) -> dict:
    return send_admin_notification(
        "新規ビザ相談",
        f"{user_name}さんから{visa_types}についての相談がありました",
        [
            {"title": "ユーザー", "value": user_name, "short": True},
            {"title": "ビザタイプ", "value": visa_types, "short": True},
            {"title": "リンク", "value": f"{settings.app_url}/admin/visa-reviews/{review_id}"},
        ],
    )


def notify_form_submitted(application_id: int, user_name: str, course_name: str) -> dict:
    return send_admin_notification(
        "申込フォーム提出",
        f"{user_name}さんが{course_name}の申込フォームを提出しました",
        [
            {"title": "ユーザー", "value": user_name, "short": True},
            {"title": "コース", "value": course_name, "short": True},
            {"title": "リンク", "value": f"{settings.app_url}/admin/applications/{application_id}"},
        ],
    )
