"""
User File Routes

POST /user-files - Upload a document (image or PDF, max 5MB)
GET /user-files - Own uploaded files
GET /user-files/formats - Supported formats per bucket
"""

from typing import List

from fastapi import APIRouter, Depends, UploadFile, File
from sqlalchemy import text

from frog_portal.core.auth import get_current_user
from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.utils.file_upload import store_upload, get_supported_formats
from frog_portal.utils.formatting import format_bytes, format_datetime
from frog_portal.schemas.schemas import UserFileResponse

router = APIRouter(prefix="/user-files", tags=["User Files"])

FILE_COLUMNS = "file_id, name, url, size, content_type, created_at"


def _to_response(row: dict) -> UserFileResponse:
    return UserFileResponse(
        **row, size_label=format_bytes(row["size"]), created_at_label=format_datetime(row["created_at"])
    )


def list_user_files(user_id: int) -> List[UserFileResponse]:
    rows = execute_raw_sql(
        f"SELECT {FILE_COLUMNS} FROM user_files WHERE user_id = :uid ORDER BY created_at DESC, file_id DESC",
        {"uid": user_id}
    )
    return [_to_response(r) for r in rows]


@router.post("", response_model=UserFileResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(..., description="Document (pdf, jpg, png, webp, gif)"),
    user: dict = Depends(get_current_user)
):
    stored = await store_upload(file, "user-files", owner=str(user["user_id"]))
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO user_files (user_id, name, path, url, size, content_type)
                VALUES (:uid, :name, :path, :url, :size, :content_type)
                RETURNING file_id
            """),
            {"uid": user["user_id"], **stored}
        )
        file_id = result.fetchone()[0]

    return _to_response(fetch_one(f"SELECT {FILE_COLUMNS} FROM user_files WHERE file_id = :fid", {"fid": file_id}))


@router.get("", response_model=List[UserFileResponse])
async def list_files(user: dict = Depends(get_current_user)):
    return list_user_files(user["user_id"])


@router.get("/formats")
async def supported_formats():
    return get_supported_formats()
