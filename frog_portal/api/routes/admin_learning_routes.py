"""
Admin Learning Routes

POST /admin/learning/sections - Create section
PUT /admin/learning/sections/{id} - Update section
DELETE /admin/learning/sections/{id} - Delete section with its videos
POST /admin/learning/videos - Create video in a section
PUT /admin/learning/videos/{id} - Update or move video
DELETE /admin/learning/videos/{id} - Delete video with its resources and progress
POST /admin/learning/videos/{id}/resources - Attach resource link
DELETE /admin/learning/resources/{id} - Remove resource link
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from frog_portal.core.auth import get_current_admin
from frog_portal.db.postgres import get_db_session, fetch_one
from frog_portal.schemas.schemas import (
    SectionCreate, SectionUpdate, SectionResponse, VideoCreate, VideoUpdate, VideoResponse,
    ResourceCreate, ResourceResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/learning", tags=["Admin Learning"])

SECTION_COLUMNS = "section_id, title, description, order_index"
VIDEO_COLUMNS = "video_id, section_id, title, description, video_url, duration_seconds, order_index"


def _load_section(section_id: int) -> dict:
    section = fetch_one(f"SELECT {SECTION_COLUMNS} FROM video_sections WHERE section_id = :sid", {"sid": section_id})
    if not section:
        raise HTTPException(status_code=404, detail="セクションが見つかりません")
    return section


def _load_video(video_id: int) -> dict:
    video = fetch_one(f"SELECT {VIDEO_COLUMNS} FROM learning_videos WHERE video_id = :vid", {"vid": video_id})
    if not video:
        raise HTTPException(status_code=404, detail="動画が見つかりません")
    return video


def _check_section(section_id: int) -> None:
    if not fetch_one("SELECT section_id FROM video_sections WHERE section_id = :sid", {"sid": section_id}):
        raise HTTPException(status_code=400, detail="存在しないセクションです")


def _delete_videos(db, video_ids: List[int]) -> None:
    for video_id in video_ids:
        db.execute(text("DELETE FROM video_progress WHERE video_id = :vid"), {"vid": video_id})
        db.execute(text("DELETE FROM video_resources WHERE video_id = :vid"), {"vid": video_id})
        db.execute(text("DELETE FROM learning_videos WHERE video_id = :vid"), {"vid": video_id})


# ============================================================
# SECTIONS
# ============================================================

@router.post("/sections", response_model=SectionResponse, status_code=201)
async def create_section(data: SectionCreate, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(
            text(f"""
                INSERT INTO video_sections (title, description, order_index)
                VALUES (:title, :description, :order_index)
                RETURNING {SECTION_COLUMNS}
            """),
            data.model_dump()
        )
        row = dict(zip(result.keys(), result.fetchone()))
    return SectionResponse(**row)


@router.put("/sections/{section_id}", response_model=SectionResponse)
async def update_section(section_id: int, data: SectionUpdate, admin: dict = Depends(get_current_admin)):
    _load_section(section_id)
    values = data.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="更新する項目がありません")

    assignments = ", ".join(f"{c} = :{c}" for c in values)
    with get_db_session() as db:
        db.execute(text(f"UPDATE video_sections SET {assignments} WHERE section_id = :sid"),
                   {**values, "sid": section_id})
    return SectionResponse(**_load_section(section_id))


@router.delete("/sections/{section_id}", response_model=MessageResponse)
async def delete_section(section_id: int, admin: dict = Depends(get_current_admin)):
    """Delete a section with every video in it, their resources and watch progress."""
    _load_section(section_id)
    with get_db_session() as db:
        rows = db.execute(
            text("SELECT video_id FROM learning_videos WHERE section_id = :sid"), {"sid": section_id}
        ).fetchall()
        _delete_videos(db, [r[0] for r in rows])
        db.execute(text("DELETE FROM video_sections WHERE section_id = :sid"), {"sid": section_id})

    logger.info("Learning section %s deleted by admin %s", section_id, admin["user_id"])
    return MessageResponse(message="セクションを削除しました")


# ============================================================
# VIDEOS
# ============================================================

@router.post("/videos", response_model=VideoResponse, status_code=201)
async def create_video(data: VideoCreate, admin: dict = Depends(get_current_admin)):
    _check_section(data.section_id)
    with get_db_session() as db:
        result = db.execute(
            text(f"""
                INSERT INTO learning_videos (section_id, title, description, video_url, duration_seconds, order_index)
                VALUES (:section_id, :title, :description, :video_url, :duration_seconds, :order_index)
                RETURNING {VIDEO_COLUMNS}
            """),
            data.model_dump()
        )
        row = dict(zip(result.keys(), result.fetchone()))
    return VideoResponse(**row)


@router.put("/videos/{video_id}", response_model=VideoResponse)
async def update_video(video_id: int, data: VideoUpdate, admin: dict = Depends(get_current_admin)):
    _load_video(video_id)
    values = data.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="更新する項目がありません")
    if "section_id" in values:
        _check_section(values["section_id"])

    assignments = ", ".join(f"{c} = :{c}" for c in values)
    with get_db_session() as db:
        db.execute(text(f"UPDATE learning_videos SET {assignments} WHERE video_id = :vid"),
                   {**values, "vid": video_id})
    return VideoResponse(**_load_video(video_id))


@router.delete("/videos/{video_id}", response_model=MessageResponse)
async def delete_video(video_id: int, admin: dict = Depends(get_current_admin)):
    _load_video(video_id)
    with get_db_session() as db:
        _delete_videos(db, [video_id])
    return MessageResponse(message="動画を削除しました")


# ============================================================
# RESOURCES
# ============================================================

@router.post("/videos/{video_id}/resources", response_model=ResourceResponse, status_code=201)
async def add_resource(video_id: int, data: ResourceCreate, admin: dict = Depends(get_current_admin)):
    _load_video(video_id)
    with get_db_session() as db:
        result = db.execute(
            text("INSERT INTO video_resources (video_id, title, url) VALUES (:vid, :title, :url) RETURNING resource_id"),
            {"vid": video_id, "title": data.title, "url": data.url}
        )
        resource_id = result.fetchone()[0]
    return ResourceResponse(resource_id=resource_id, video_id=video_id, title=data.title, url=data.url)


@router.delete("/resources/{resource_id}", response_model=MessageResponse)
async def delete_resource(resource_id: int, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        result = db.execute(text("DELETE FROM video_resources WHERE resource_id = :rid"), {"rid": resource_id})
        if not result.rowcount:
            raise HTTPException(status_code=404, detail="リソースが見つかりません")
    return MessageResponse(message="リソースを削除しました")
