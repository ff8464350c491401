import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..auth import DEV_USERS, create_access_token, ensure_dev_user, get_current_user, hash_password, verify_password
from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import DevLoginIn, LoginIn, RegisterIn, TokenOut, UserOut
from fleetmarket_shared import digits_only, is_valid_phone, mask_phone


router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger("fleetmarket.auth")


def user_status(u: User) -> str:
    if u.locked:
        return "locked"
    if u.is_banned:
        return "banned"
    return "active"


def user_out(u: User) -> UserOut:
    d = u.dealership
    return UserOut(
        id=str(u.id), email=u.email, name=u.name, phone_number=u.phone_number, role=u.role,
        status=user_status(u), locked=bool(u.locked), banned_until=u.banned_until,
        dealership_id=str(d.id) if d else None, created_at=u.created_at,
    )


@router.post("/register", response_model=TokenOut)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_email")
    if db.query(User).filter(User.email == email).one_or_none():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email_taken")
    phone = digits_only(payload.phone_number) or None
    if payload.phone_number and not is_valid_phone(phone):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_phone")
    u = User(
        email=email,
        name=payload.name,
        phone_number=phone,
        password_hash=hash_password(payload.password),
        role="user",
    )
    db.add(u)
    db.flush()
    logger.info("registered user %s (%s)", u.id, mask_phone(phone))
    return TokenOut(access_token=create_access_token(str(u.id)))


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    u = db.query(User).filter(User.email == payload.email.strip().lower()).one_or_none()
    if not u or not verify_password(payload.password, u.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_credentials")
    if u.locked or u.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="account_disabled")
    return TokenOut(access_token=create_access_token(str(u.id)))


@router.post("/dev_login", response_model=TokenOut)
def dev_login(payload: DevLoginIn, db: Session = Depends(get_db)):
    if settings.ENV.lower() != "dev":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    username = payload.username.lower()
    account = DEV_USERS.get(username)
    if not account or payload.password != account["password"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    u = ensure_dev_user(db, username)
    return TokenOut(access_token=create_access_token(str(u.id)))


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user_out(user)
