"""Authentication: password hashing, session tokens and role dependencies."""
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from toolroom.clock import utcnow
from toolroom.config import settings
from toolroom.database import get_db
from toolroom.errors import Forbidden, Unauthorized
from toolroom.logging_config import get_logger
from toolroom.models.user import User, UserRole

logger = get_logger("auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return generate_password_hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return check_password_hash(hashed_password, plain_password)


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Return the user when username and password match, otherwise None."""
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": UserRole(user.role).value,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_user_from_token(token: str, db: Session) -> Optional[User]:
    """Resolve a session token to a user; None when invalid or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.debug("Rejected session token", extra={"reason": str(exc)})
        return None
    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        return None
    return db.get(User, int(user_id))


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Load the caller once per request from the session cookie or bearer token."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise Unauthorized()

    user = get_user_from_token(token, db)
    if user is None:
        raise Unauthorized()
    return user


def require_role(*roles: UserRole):
    """Dependency factory that only lets the given roles through."""
    allowed = {UserRole(role) for role in roles}

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if UserRole(current_user.role) not in allowed:
            raise Forbidden()
        return current_user

    return role_checker


require_admin = require_role(UserRole.ADMIN)
require_operator = require_role(UserRole.ADMIN, UserRole.OPERATOR)


def is_staff(user: User) -> bool:
    """Operators and administrators see every loan; users only their own."""
    return UserRole(user.role) in (UserRole.ADMIN, UserRole.OPERATOR)
