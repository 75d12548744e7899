"""
Advisor Routes

POST /advisor/messages - Ask a question, optionally within a session
GET /advisor/sessions/{session_id} - Stored messages of a session
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Depends
from pymongo.errors import PyMongoError

from frog_portal.core.auth import get_current_user
from frog_portal.services.advisor_service import answer_question, session_messages
from frog_portal.schemas.schemas import AdvisorQuery, AdvisorAnswer, AdvisorMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/advisor", tags=["Advisor"])


@router.post("/messages", response_model=AdvisorAnswer)
async def ask(data: AdvisorQuery, user: dict = Depends(get_current_user)):
    query = (data.query or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="質問を入力してください")

    logger.info("Advisor question from user %s", user["user_id"])
    return AdvisorAnswer(**answer_question(user["user_id"], query, data.session_id))


@router.get("/sessions/{session_id}", response_model=List[AdvisorMessage])
async def get_session(session_id: str, user: dict = Depends(get_current_user)):
    try:
        messages = session_messages(user["user_id"], session_id)
    except PyMongoError as e:
        logger.error("Could not load advisor session %s: %s", session_id, e)
        raise HTTPException(status_code=503, detail="会話履歴を取得できませんでした")
    return [AdvisorMessage(**m) for m in messages]
