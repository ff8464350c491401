import uuid
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, status, Header
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import Dealership, User


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# Fixed accounts for /auth/dev_login (ENV=dev only)
DEV_USERS = {
    "admin": {"password": "admin", "email": "admin@fleetmarket.dev", "name": "Admin", "role": "admin"},
    "dealer": {"password": "dealer", "email": "dealer@fleetmarket.dev", "name": "Demo Dealer", "role": "dealer"},
    "user": {"password": "user", "email": "user@fleetmarket.dev", "name": "Demo User", "role": "user"},
}


def create_access_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + settings.jwt_delta).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def ensure_dev_user(db: Session, username: str) -> User:
    account = DEV_USERS[username]
    u = db.query(User).filter(User.email == account["email"]).one_or_none()
    if u is None:
        u = User(email=account["email"], name=account["name"], role=account["role"])
        db.add(u)
        db.flush()
    if account["role"] == "dealer" and u.dealership is None:
        d = Dealership(
            user_id=u.id,
            name="Demo Motors",
            location="Damascus",
            phone="0911000000",
            subscription_end_date=(datetime.utcnow() + timedelta(days=365)).date(),
        )
        db.add(d)
        db.flush()
    return u


def _check_account(u: User) -> None:
    if u.locked or u.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="account_disabled")


def get_current_user(authorization: str | None = Header(default=None, alias="Authorization"), db: Session = Depends(get_db)) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        uid = uuid.UUID(str(payload.get("sub")))
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    u = db.get(User, uid)
    if u is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    _check_account(u)
    return u


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user


def require_dealer(user: User = Depends(get_current_user)) -> User:
    if user.role != "dealer":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Dealer role required")
    return user
