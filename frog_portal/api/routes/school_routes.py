"""
School Routes

GET /schools - All schools with location and course count
GET /schools/{id} - School detail with categories, photos and courses
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends

from frog_portal.core.auth import get_optional_user
from frog_portal.services.catalogue_service import list_schools, load_school
from frog_portal.schemas.schemas import SchoolSummary, SchoolDetail

router = APIRouter(prefix="/schools", tags=["Schools"])


@router.get("", response_model=List[SchoolSummary])
async def get_schools():
    return [SchoolSummary(**s) for s in list_schools()]


@router.get("/{school_id}", response_model=SchoolDetail)
async def get_school(school_id: int, user: Optional[dict] = Depends(get_optional_user)):
    school = load_school(school_id, user["user_id"] if user else None)
    if not school:
        raise HTTPException(status_code=404, detail="学校が見つかりません")
    return SchoolDetail(**school)
