"""
Interview Routes (microCMS)

GET /interviews - Interview articles, newest first
GET /interviews/{slug} - One article
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from frog_portal.services.cms_client import CMSError, get_cms_client, to_blog_post
from frog_portal.schemas.schemas import BlogPost, BlogPostList

router = APIRouter(prefix="/interviews", tags=["Interviews"])


@router.get("", response_model=BlogPostList)
async def list_interviews(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    q: Optional[str] = None,
    category: Optional[str] = None
):
    try:
        data = get_cms_client().list_posts(limit=limit, offset=offset, q=q, category=category)
    except CMSError as e:
        raise HTTPException(status_code=e.status_code, detail="記事の読み込みに失敗しました") from e

    return BlogPostList(
        contents=[BlogPost(**to_blog_post(item)) for item in data.get("contents", [])],
        total_count=data.get("totalCount", 0),
        offset=data.get("offset", offset),
        limit=data.get("limit", limit),
    )


@router.get("/{slug}", response_model=BlogPost)
async def get_interview(slug: str):
    try:
        item = get_cms_client().get_post(slug)
    except CMSError as e:
        detail = "記事が見つかりません" if e.status_code == 404 else "記事の読み込みに失敗しました"
        raise HTTPException(status_code=e.status_code, detail=detail) from e
    return BlogPost(**to_blog_post(item))
