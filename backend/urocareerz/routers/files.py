from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..auth.principal import current_user
from ..modules.identity.roles import is_admin
from ..observability.logging import get_logger
from ..services import s3_assets

router = APIRouter(tags=["files"])
log = get_logger("files")


class UploadRequest(BaseModel):
    fileName: str | None = None
    fileType: str | None = None
    fileSize: int | None = None
    contentType: str | None = None


@router.post("/upload")
def presign_upload(body: UploadRequest, request: Request):
    user = current_user(request)
    if not body.fileName:
        raise HTTPException(status_code=400, detail="No file provided")
    kind = str(body.fileType or "").strip().lower()
    try:
        s3_assets.validate_upload(kind=kind, file_name=body.fileName, file_size=int(body.fileSize or 0))
    except s3_assets.UploadRejected as e:
        raise HTTPException(status_code=400, detail=str(e))

    key = s3_assets.make_user_file_key(kind=kind, user_id=user.user_id, file_name=body.fileName)
    try:
        put = s3_assets.presign_put_object(key=key, content_type=body.contentType)
    except RuntimeError as e:
        log.error("upload_presign_failed", error=str(e))
        raise HTTPException(status_code=500, detail="File storage is not configured")

    log.info("upload_presigned", user_id=user.user_id, kind=kind)
    return {
        "uploadUrl": put["url"],
        "fileKey": key,
        "fileName": body.fileName,
        "fileSize": int(body.fileSize or 0),
    }


@router.delete("/upload")
def delete_upload(request: Request, key: str | None = None):
    user = current_user(request)
    if not key:
        raise HTTPException(status_code=400, detail="File key is required")
    obj_key = s3_assets.key_from_ref(key)
    if s3_assets.owner_of_key(obj_key) != user.user_id:
        raise HTTPException(status_code=403, detail="Access denied")

    s3_assets.delete_object(key=obj_key)
    log.info("upload_deleted", user_id=user.user_id)
    return {"success": True, "message": "File deleted successfully"}


@router.get("/download")
def download(request: Request, key: str | None = None):
    user = current_user(request)
    if key is None:
        raise HTTPException(status_code=400, detail="File key is required")
    if s3_assets.is_placeholder(key):
        raise HTTPException(status_code=404, detail="No file uploaded yet")

    obj_key = s3_assets.key_from_ref(key)
    if s3_assets.owner_of_key(obj_key) != user.user_id and not is_admin(user.role):
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        url = s3_assets.presign_get_object(key=obj_key)
    except RuntimeError as e:
        log.error("download_presign_failed", error=str(e))
        raise HTTPException(status_code=500, detail="File storage is not configured")
    return {"downloadUrl": url, "fileKey": obj_key}
