import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, func, not_, or_, select
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..config import settings
from ..database import get_db
from ..models import Dealership, User
from ..schemas import BulkResultOut, BulkRoleIn, RoleChangeIn, UserLookupOut, UserOut, UsersPageOut, UsersSummaryOut
from ..utils.bulk import BulkItemError, run_bulk
from ..utils.listing_query import Page, apply_search, apply_sort, paginate
from ..utils.roles import RoleTransitionError, check_role_transition
from .admin_dealerships import create_dealership
from .auth import user_out


router = APIRouter(prefix="/admin/users", tags=["admin"])

logger = logging.getLogger("fleetmarket.admin.users")

BAN_UNTIL = datetime(2099, 12, 31)
SORT_KEYS = ("name", "email", "created_at", "role")
LOOKUP_DEFAULT_LIMIT = 50
LOOKUP_MAX_LIMIT = 100


def load_user(db: Session, user_id) -> User:
    u = db.get(User, user_id)
    if u is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return u


def _banned_clause(now: datetime):
    return and_(User.banned_until.isnot(None), User.banned_until > now)


@router.get("", response_model=UsersPageOut)
def list_users(
    q: str | None = Query(None),
    role: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status", pattern="^(all|active|banned|locked)$"),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    now = datetime.utcnow()
    query = apply_search(db.query(User), [User.name, User.email, User.phone_number], q)
    if role and role != "all":
        query = query.filter(User.role == role)
    if status_filter == "active":
        query = query.filter(User.locked.is_(False), not_(_banned_clause(now)))
    elif status_filter == "banned":
        query = query.filter(_banned_clause(now))
    elif status_filter == "locked":
        query = query.filter(User.locked.is_(True))
    query = apply_sort(query, User, sort_by, order, SORT_KEYS, "created_at")
    rows, total, pages = paginate(query, Page(page, page_size))
    return UsersPageOut(
        items=[user_out(u) for u in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.get("/summary", response_model=UsersSummaryOut)
def users_summary(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    now = datetime.utcnow()
    total = db.query(func.count(User.id)).scalar() or 0
    dealers = db.query(func.count(User.id)).filter(User.role == "dealer").scalar() or 0
    admins = db.query(func.count(User.id)).filter(User.role == "admin").scalar() or 0
    banned = db.query(func.count(User.id)).filter(_banned_clause(now)).scalar() or 0
    active = (
        db.query(func.count(User.id))
        .filter(User.locked.is_(False), not_(_banned_clause(now)))
        .scalar()
        or 0
    )
    return UsersSummaryOut(total=total, dealers=dealers, admins=admins, active=active, banned=banned)


@router.get("/lookup")
def lookup_users(
    q: str | None = Query(None),
    limit: int = Query(LOOKUP_DEFAULT_LIMIT),
    offset: int = Query(0),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Owner picker for listing transfers: non-guest users without a dealership."""
    limit = min(max(limit, 1), LOOKUP_MAX_LIMIT)
    offset = max(offset, 0)
    owners = select(Dealership.user_id).where(Dealership.user_id.isnot(None))
    query = (
        db.query(User)
        .filter(or_(User.email.is_(None), not_(User.email.ilike("%guest%"))))
        .filter(or_(User.name.is_(None), User.name != "Guest User"))
        .filter(User.id.notin_(owners))
    )
    query = apply_search(query, [User.name, User.email, User.phone_number], q)
    total = query.count()
    rows = query.order_by(User.name.asc(), User.id.asc()).offset(offset).limit(limit).all()
    return {
        "items": [UserLookupOut(id=str(u.id), name=u.name, email=u.email, phone_number=u.phone_number) for u in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def change_role(db: Session, u: User, payload: RoleChangeIn, admin: User) -> None:
    if u.id == admin.id:
        raise RoleTransitionError("You cannot change your own role.")
    check_role_transition(u.role, payload.role, banned=u.is_banned, locked=bool(u.locked))
    if payload.role == "dealer" and u.dealership is None:
        if payload.dealership is None:
            raise RoleTransitionError("Dealership details are required to promote a user to dealer.")
        create_dealership(db, payload.dealership, owner=u)
    u.role = payload.role
    db.flush()
    logger.info("admin %s changed role of %s to %s", admin.id, u.id, payload.role)


@router.post("/bulk/role", response_model=BulkResultOut)
def bulk_change_role(payload: BulkRoleIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if payload.role == "dealer":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Promoting to dealer needs dealership details and cannot be done in bulk.")

    def _apply(session: Session, user_id):
        u = session.get(User, user_id)
        if u is None:
            raise LookupError("User not found")
        try:
            change_role(session, u, RoleChangeIn(role=payload.role), admin)
        except RoleTransitionError as e:
            raise BulkItemError(str(e))

    try:
        result = run_bulk(db, payload.ids, _apply, label="users.role")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return BulkResultOut(**result.as_dict())


@router.post("/{user_id}/role", response_model=UserOut)
def set_role(user_id: uuid.UUID, payload: RoleChangeIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    u = load_user(db, user_id)
    try:
        change_role(db, u, payload, admin)
    except RoleTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    db.refresh(u)
    return user_out(u)


@router.post("/{user_id}/ban", response_model=UserOut)
def ban_user(user_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    u = load_user(db, user_id)
    if u.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot ban yourself.")
    u.banned_until = BAN_UNTIL
    db.flush()
    logger.info("admin %s banned %s", admin.id, u.id)
    return user_out(u)


@router.post("/{user_id}/unban", response_model=UserOut)
def unban_user(user_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    u = load_user(db, user_id)
    u.banned_until = None
    db.flush()
    logger.info("admin %s unbanned %s", admin.id, u.id)
    return user_out(u)
