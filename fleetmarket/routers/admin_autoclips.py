import logging
import uuid
from datetime import datetime, time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..config import settings
from ..constants import AUTOCLIP_STATUSES
from ..database import get_db
from ..models import AutoClip, User
from ..schemas import (
    AutoClipBulkIn, AutoClipOut, AutoClipPatchIn, AutoClipsPageOut, AutoClipStatsOut, BulkResultOut, RejectIn,
)
from ..utils.bulk import run_bulk
from ..utils.listing_query import Page, paginate
from ..utils.notify import notify_dealership
from ..utils.serializers import autoclip_out


router = APIRouter(prefix="/admin/autoclips", tags=["admin"])

logger = logging.getLogger("fleetmarket.admin.autoclips")


def load_clip(db: Session, clip_id) -> AutoClip:
    a = db.get(AutoClip, clip_id)
    if a is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="AutoClip not found")
    return a


def review_clip(db: Session, clip: AutoClip, admin: User, approve: bool, reason: str | None = None) -> None:
    reason = (reason or "").strip()
    if not approve and not reason:
        raise ValueError("Please provide a rejection reason")
    clip.status = "published" if approve else "rejected"
    clip.reviewed_at = datetime.utcnow()
    clip.reviewed_by = str(admin.id)
    clip.rejection_reason = None if approve else reason
    db.flush()


def _notify_review(clip: AutoClip, tasks: BackgroundTasks) -> None:
    notify_dealership(
        "autoclip.reviewed",
        {
            "clip_id": str(clip.id),
            "dealership_id": str(clip.dealership_id),
            "status": clip.status,
            "title": clip.title,
            "rejection_reason": clip.rejection_reason,
        },
        tasks,
    )


@router.get("", response_model=AutoClipsPageOut)
def list_clips(
    status_filter: str = Query("under_review", alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(AutoClip)
    if status_filter != "all":
        if status_filter not in AUTOCLIP_STATUSES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")
        query = query.filter(AutoClip.status == status_filter)
    query = query.order_by(AutoClip.created_at.desc(), AutoClip.id.desc())
    rows, total, pages = paginate(query, Page(page, page_size))
    return AutoClipsPageOut(
        items=[autoclip_out(a) for a in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.get("/stats", response_model=AutoClipStatsOut)
def clip_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    today = datetime.combine(datetime.utcnow().date(), time.min)
    count = db.query(func.count(AutoClip.id))
    pending = count.filter(AutoClip.status == "under_review").scalar() or 0
    approved = count.filter(AutoClip.status == "published", AutoClip.reviewed_at >= today).scalar() or 0
    rejected = count.filter(AutoClip.status == "rejected", AutoClip.reviewed_at >= today).scalar() or 0
    reviewed = (
        count.filter(AutoClip.status.in_(("published", "rejected")), AutoClip.reviewed_at.isnot(None)).scalar()
        or 0
    )
    return AutoClipStatsOut(pending=pending, approved_today=approved, rejected_today=rejected, total_reviewed=reviewed)


@router.post("/bulk", response_model=BulkResultOut)
def bulk_review(payload: AutoClipBulkIn, tasks: BackgroundTasks, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if payload.action not in ("approve", "reject"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown action")
    if payload.action == "reject" and not (payload.reason or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please provide a rejection reason")
    reviewed: list[AutoClip] = []

    def _apply(session: Session, clip_id):
        a = session.get(AutoClip, clip_id)
        if a is None:
            raise LookupError("AutoClip not found")
        review_clip(session, a, admin, payload.action == "approve", payload.reason)
        reviewed.append(a)

    try:
        result = run_bulk(db, payload.ids, _apply, label=f"autoclips.{payload.action}")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    for a in reviewed:
        if str(a.id) in result.succeeded:
            _notify_review(a, tasks)
    return BulkResultOut(**result.as_dict())


@router.post("/{clip_id}/approve", response_model=AutoClipOut)
def approve_clip(clip_id: uuid.UUID, tasks: BackgroundTasks, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    a = load_clip(db, clip_id)
    review_clip(db, a, admin, approve=True)
    logger.info("admin %s approved clip %s", admin.id, a.id)
    _notify_review(a, tasks)
    return autoclip_out(a)


@router.post("/{clip_id}/reject", response_model=AutoClipOut)
def reject_clip(clip_id: uuid.UUID, payload: RejectIn, tasks: BackgroundTasks, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    a = load_clip(db, clip_id)
    try:
        review_clip(db, a, admin, approve=False, reason=payload.reason)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info("admin %s rejected clip %s", admin.id, a.id)
    _notify_review(a, tasks)
    return autoclip_out(a)


@router.patch("/{clip_id}", response_model=AutoClipOut)
def edit_clip(clip_id: uuid.UUID, payload: AutoClipPatchIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    a = load_clip(db, clip_id)
    if payload.status is not None and payload.status not in AUTOCLIP_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")
    if payload.title is not None:
        a.title = payload.title.strip()
    if payload.description is not None:
        a.description = payload.description
    if payload.status is not None:
        a.status = payload.status
    db.flush()
    return autoclip_out(a)
