import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import settings
from ..constants import BUCKETS
from ..database import get_db
from ..models import Dealership, User
from ..schemas import MediaOut
from ..storage import StoredObject, UploadRejected, storage


router = APIRouter(prefix="/media", tags=["media"])

logger = logging.getLogger("fleetmarket.media")


def _limit_for(bucket: str) -> int:
    return settings.MAX_VIDEO_BYTES if BUCKETS.get(bucket) == "video" else settings.MAX_IMAGE_BYTES


async def receive_upload(request: Request, bucket: str, owner: str, filename: str | None = None) -> StoredObject:
    """Read the raw request body and store it in ``bucket``."""
    if bucket not in BUCKETS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown bucket")
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > _limit_for(bucket):
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large")
    data = await request.body()
    try:
        return storage.upload(bucket, owner, filename or "upload", data, request.headers.get("content-type"))
    except UploadRejected as e:
        logger.warning("upload to %s rejected: %s", bucket, e.detail)
        raise HTTPException(status_code=e.status_code, detail=e.detail)


def media_out(obj: StoredObject) -> MediaOut:
    return MediaOut(bucket=obj.bucket, path=obj.path, url=obj.url, size=obj.size, content_type=obj.content_type)


@router.post("/{bucket}", response_model=MediaOut)
async def upload(bucket: str, request: Request, filename: str | None = Query(None), user: User = Depends(get_current_user)):
    obj = await receive_upload(request, bucket, str(user.id), filename)
    return media_out(obj)


def owned_folders(db: Session, user: User) -> set[str]:
    """Upload folders a user may manage: their own and their dealership's."""
    folders = {str(user.id)}
    d = db.query(Dealership.id).filter(Dealership.user_id == user.id).one_or_none()
    if d is not None:
        folders.add(str(d.id))
    return folders


@router.delete("/{bucket}/{path:path}")
def remove(bucket: str, path: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    owner = path.split("/", 1)[0]
    if user.role != "admin" and owner not in owned_folders(db, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    try:
        removed = storage.remove(bucket, path)
    except UploadRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return {"detail": "deleted"}
