"""
Login session routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from smartbook.config import get_settings
from smartbook.db import get_db
from smartbook.deps import (
    AuthenticationError, authenticate_user, get_optional_user, get_session_id
)
from smartbook.schemas import LoginRequest, UserPublic, SessionInfo, MessageResponse
from smartbook.utils.session import SessionError, SessionManager, get_session_manager

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=UserPublic)
async def login(
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Check credentials and start a cookie session."""
    try:
        user = authenticate_user(db, credentials.username, credentials.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    try:
        session = sessions.create_session(user.id, user.role.value)
    except SessionError:
        raise HTTPException(status_code=500, detail="Login failed")

    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.session_id,
        max_age=sessions.expiry_seconds,
        httponly=True,
        samesite="lax",
    )
    logger.info(f"User {user.username} logged in")
    return user


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    session_id = get_session_id(request)
    if session_id:
        sessions.clear_session(session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"message": "Logged out successfully"}


@router.get("/session", response_model=SessionInfo, response_model_exclude_none=True)
async def session_info(user=Depends(get_optional_user)):
    """Who is logged in, if anyone."""
    if user is None:
        return {"isAuthenticated": False}
    return {"isAuthenticated": True, "user": UserPublic.model_validate(user)}
