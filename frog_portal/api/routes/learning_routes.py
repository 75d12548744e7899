"""
Learning Routes

GET /learning - Sections, videos and resources (video URLs for members only)
POST /learning/videos/{id}/progress - Save own watch progress (members only)
"""

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from frog_portal.core.auth import get_current_user
from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.schemas.schemas import LearningResponse, VideoProgressUpdate, MessageResponse

router = APIRouter(prefix="/learning", tags=["Learning"])


def _is_member(user_id: int) -> bool:
    row = fetch_one("SELECT is_member FROM profiles WHERE user_id = :uid", {"uid": user_id})
    return bool(row and row["is_member"])


@router.get("", response_model=LearningResponse)
async def get_learning_content(user: dict = Depends(get_current_user)):
    """
    Everything in the learning area, ordered by order_index.

    Non-members see titles and descriptions; video URLs are withheld and
    every video is marked locked.
    """
    member = _is_member(user["user_id"])

    sections = execute_raw_sql(
        "SELECT section_id, title, description FROM video_sections ORDER BY order_index, section_id"
    )
    videos = execute_raw_sql("""
        SELECT video_id, section_id, title, description, video_url, duration_seconds
        FROM learning_videos ORDER BY order_index, video_id
    """)
    resources = execute_raw_sql("SELECT resource_id, video_id, title, url FROM video_resources ORDER BY resource_id")
    progress = {
        r["video_id"]: r for r in execute_raw_sql(
            "SELECT video_id, progress_seconds, completed FROM video_progress WHERE user_id = :uid",
            {"uid": user["user_id"]}
        )
    }

    by_video = {}
    for resource in resources:
        by_video.setdefault(resource["video_id"], []).append(resource)

    by_section = {s["section_id"]: {**s, "videos": []} for s in sections}
    completed = 0
    for video in videos:
        watched = progress.get(video["video_id"]) if member else None
        done = bool(watched and watched["completed"])
        completed += done
        by_section[video["section_id"]]["videos"].append({
            **video,
            "video_url": video["video_url"] if member else None,
            "locked": not member,
            "progress_seconds": watched["progress_seconds"] if watched else 0,
            "completed": done,
            "resources": by_video.get(video["video_id"], []) if member else [],
        })

    return LearningResponse(
        is_member=member,
        sections=list(by_section.values()),
        completed_videos=completed,
        total_videos=len(videos),
    )


@router.post("/videos/{video_id}/progress", response_model=MessageResponse)
async def save_progress(video_id: int, data: VideoProgressUpdate, user: dict = Depends(get_current_user)):
    if not _is_member(user["user_id"]):
        raise HTTPException(status_code=403, detail="メンバー限定のコンテンツです")
    if not fetch_one("SELECT video_id FROM learning_videos WHERE video_id = :vid", {"vid": video_id}):
        raise HTTPException(status_code=404, detail="動画が見つかりません")

    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO video_progress (user_id, video_id, progress_seconds, completed)
                VALUES (:uid, :vid, :progress, :completed)
                ON CONFLICT (user_id, video_id) DO UPDATE SET
                    progress_seconds = EXCLUDED.progress_seconds,
                    completed = EXCLUDED.completed,
                    updated_at = CURRENT_TIMESTAMP
            """),
            {"uid": user["user_id"], "vid": video_id, "progress": data.progress_seconds, "completed": data.completed}
        )
    return MessageResponse(message="進捗を保存しました")
