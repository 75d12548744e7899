"""
Authentication Routes

POST /auth/register - Register new user (creates an empty profile)
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
"""

import logging

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from frog_portal.db.postgres import get_db_session
from frog_portal.core.auth import hash_password, verify_password, create_access_token, get_current_user
from frog_portal.schemas.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, UserResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=MessageResponse, status_code=201)
async def register(request: RegisterRequest):
    """
    Register a new member account.

    Every account starts with role `user` and an empty profile; the
    onboarding questions fill the profile in afterwards.
    """
    email = request.email.lower()
    with get_db_session() as db:
        result = db.execute(
            text("SELECT user_id FROM users WHERE email = :email"),
            {"email": email}
        )
        if result.fetchone():
            raise HTTPException(status_code=400, detail="このメールアドレスは既に登録されています")

        result = db.execute(
            text("""
                INSERT INTO users (email, password_hash, role)
                VALUES (:email, :password_hash, 'user')
                RETURNING user_id
            """),
            {"email": email, "password_hash": hash_password(request.password)}
        )
        user_id = result.fetchone()[0]

        db.execute(
            text("INSERT INTO profiles (user_id, first_name, last_name) VALUES (:uid, :first, :last)"),
            {"uid": user_id, "first": request.first_name, "last": request.last_name}
        )

    logger.info("Registered user %s", user_id)
    return MessageResponse(message="登録が完了しました。ログインしてください。")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        result = db.execute(
            text("SELECT user_id, password_hash, role, is_active FROM users WHERE email = :email"),
            {"email": request.email.lower()}
        )
        user = result.fetchone()

    if not user:
        raise HTTPException(status_code=401, detail="メールアドレスまたはパスワードが正しくありません")

    user_id, password_hash, role, is_active = user

    if not is_active:
        raise HTTPException(status_code=403, detail="アカウントが無効化されています")

    if not verify_password(request.password, password_hash):
        raise HTTPException(status_code=401, detail="メールアドレスまたはパスワードが正しくありません")

    token = create_access_token(data={"sub": str(user_id), "role": role})

    return TokenResponse(access_token=token, user_id=user_id, role=role)


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    with get_db_session() as db:
        result = db.execute(
            text("SELECT user_id, email, role, is_active, created_at FROM users WHERE user_id = :id"),
            {"id": user["user_id"]}
        )
        row = result.fetchone()

    return UserResponse(
        user_id=row[0], email=row[1], role=row[2], is_active=bool(row[3]), created_at=row[4]
    )
