"""
School Editor Tokens

Admins invite a school's staff member by email. The invite is a random token
stored in school_access_tokens with an expiry; the staff member opens
{app_url}/schools/{id}/editor?token=... and every editor API call presents
the token plus their email. A new invite for the same school and email
expires the previous ones.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import text

from frog_portal.core.config import get_settings
from frog_portal.db.postgres import get_db_session, fetch_one

logger = logging.getLogger(__name__)

settings = get_settings()


def create_invite(school_id: int, email: str, created_by: Optional[int] = None) -> dict:
    """Issue a fresh token, expiring older ones for the same school and email."""
    now = datetime.utcnow()
    token = str(uuid.uuid4())
    expires_at = now + timedelta(days=settings.school_token_ttl_days)

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE school_access_tokens SET expires_at = :now
                WHERE school_id = :sid AND email = :email AND expires_at > :now
            """),
            {"now": now, "sid": school_id, "email": email}
        )
        db.execute(
            text("""
                INSERT INTO school_access_tokens (school_id, email, token, expires_at, created_by)
                VALUES (:sid, :email, :token, :expires_at, :created_by)
            """),
            {"sid": school_id, "email": email, "token": token, "expires_at": expires_at, "created_by": created_by}
        )

    logger.info("Issued school editor token for school %s", school_id)
    return {
        "token": token,
        "access_url": f"{settings.app_url}/schools/{school_id}/editor?token={token}",
        "expires_at": expires_at,
    }


def find_valid_token(school_id: int, token: str, email: Optional[str] = None) -> Optional[dict]:
    """Unexpired token row for the school (and email when given), else None."""
    sql = """
        SELECT token_id, school_id, email, expires_at, used_at FROM school_access_tokens
        WHERE token = :token AND school_id = :sid AND expires_at > :now
    """
    params = {"token": token, "sid": school_id, "now": datetime.utcnow()}
    if email is not None:
        sql += " AND email = :email"
        params["email"] = email
    return fetch_one(sql, params)


def mark_used(token_id: int) -> None:
    with get_db_session() as db:
        db.execute(
            text("UPDATE school_access_tokens SET used_at = :now WHERE token_id = :id"),
            {"now": datetime.utcnow(), "id": token_id}
        )
