import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError
from passlib.context import CryptContext
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .config import JWT_SECRET, JWT_EXPIRE_MIN, ADMIN_EMAILS
from .database import get_db
from .errors import Forbidden, Unauthorized
from .models import User
from . import repository

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# PBKDF2 has no 72-byte password limit (unlike bcrypt)
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(data: Dict[str, Any], expires_minutes: int = JWT_EXPIRE_MIN) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALGORITHM)


def token_for(user: User) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token")


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_token(token)
    sub: Optional[str] = payload.get("sub")
    if not sub or not str(sub).isdigit():
        raise Unauthorized("Invalid token payload")

    user = repository.get_user(db, int(sub))
    if not user:
        raise Unauthorized("User not found")

    request.state.user_id = user.id
    return user


def require_owner(current_user: User, owner_id: int) -> None:
    if current_user.id != owner_id:
        logger.warning("User %s denied access to resources of user %s", current_user.id, owner_id)
        raise Forbidden("Access denied")


def require_admin(current_user: User) -> None:
    if (current_user.email or "").lower() not in ADMIN_EMAILS:
        raise Forbidden("Admin privileges required")
