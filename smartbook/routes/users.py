"""
User administration routes.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from smartbook.db import get_db
from smartbook.deps import hash_password, require_admin
from smartbook.models import User, UserRole
from smartbook.schemas import UserCreate, UserPublic
from smartbook.services.storage import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=List[UserPublic])
async def list_users(
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        return UserRepository.list_users(db, role=role)
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve users")


@router.post("", response_model=UserPublic, status_code=201)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if UserRepository.get_user_by_username(db, user_data.username):
        raise HTTPException(status_code=400, detail="Username already exists")

    try:
        fields = user_data.model_dump(exclude={"password"})
        user = UserRepository.create_user(db, password_hash=hash_password(user_data.password), **fields)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating user {user_data.username}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create user")

    logger.info(f"Admin {admin.id} created {user.role.value} user {user.username}")
    return user
