"""
Authentication helpers and FastAPI dependencies.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from smartbook.config import get_settings
from smartbook.db import get_db
from smartbook.models import User, UserRole
from smartbook.services.storage import UserRepository
from smartbook.utils.session import SessionManager, get_session_manager

logger = logging.getLogger(__name__)
settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AuthenticationError(Exception):
    """Raised when credentials do not match a user."""
    pass


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(plain_password, password_hash)
    except ValueError:
        # Unknown or malformed hash
        return False


def authenticate_user(db: Session, username: str, password: str) -> User:
    """
    Check a username/password pair.

    Raises:
        AuthenticationError: If the user does not exist or the password is wrong
    """
    user = UserRepository.get_user_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        logger.info(f"Failed login attempt for {username}")
        raise AuthenticationError("Invalid username or password")
    return user


def get_session_id(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
) -> Optional[User]:
    """User of the current session, or None."""
    session_id = get_session_id(request)
    if not session_id:
        return None

    session = sessions.get_session(session_id)
    if not session:
        return None

    return UserRepository.get_user(db, session.user_id)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Logged in user; 401 otherwise."""
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_roles(*roles: UserRole):
    """Dependency factory allowing only the given roles."""

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"User {user.id} ({user.role.value}) denied, requires {[r.value for r in roles]}")
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return checker


require_admin = require_roles(UserRole.ADMIN)
