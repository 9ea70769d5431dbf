"""
Redis-based login session management.

The browser holds an opaque session id in a cookie; Redis maps it to the
authenticated user until the session expires.
"""
import json
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from dataclasses import dataclass

from fastapi import Depends
from redis import Redis

from smartbook.config import get_settings
from smartbook.db import get_redis

logger = logging.getLogger(__name__)
settings = get_settings()


class SessionError(Exception):
    """Raised when a session cannot be stored."""
    pass


@dataclass
class SessionState:
    """Login session."""
    session_id: str
    user_id: int
    role: str
    created_at: datetime
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'session_id': self.session_id,
            'user_id': self.user_id,
            'role': self.role,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionState':
        """Create from dictionary."""
        return cls(
            session_id=data['session_id'],
            user_id=int(data['user_id']),
            role=data['role'],
            created_at=datetime.fromisoformat(data['created_at']),
            expires_at=datetime.fromisoformat(data['expires_at'])
        )


class SessionManager:
    """Manages login sessions in Redis."""

    def __init__(self, redis_conn: Redis, expiry_seconds: Optional[int] = None):
        self.redis = redis_conn
        self.key_prefix = "smartbook_session:"
        self.expiry_seconds = expiry_seconds or settings.session_expiry_seconds

    def _get_key(self, session_id: str) -> str:
        """Get Redis key for a session id."""
        return f"{self.key_prefix}{session_id}"

    def create_session(self, user_id: int, role: str) -> SessionState:
        """
        Start a new session for an authenticated user.

        Args:
            user_id: Authenticated user id
            role: User role at login time

        Returns:
            SessionState: Created session

        Raises:
            SessionError: If the session could not be stored
        """
        now = datetime.now()
        session = SessionState(
            session_id=secrets.token_urlsafe(32),
            user_id=user_id,
            role=role,
            created_at=now,
            expires_at=now + timedelta(seconds=self.expiry_seconds)
        )

        try:
            self.redis.setex(
                self._get_key(session.session_id),
                self.expiry_seconds,
                json.dumps(session.to_dict())
            )
        except Exception as e:
            logger.error(f"Error creating session for user {user_id}: {e}")
            raise SessionError("Could not create session") from e

        logger.info(f"Created session for user {user_id} ({role})")
        return session

    def get_session(self, session_id: str) -> Optional[SessionState]:
        """
        Get session state for a session id.

        Returns:
            SessionState or None if not found/expired
        """
        try:
            data = self.redis.get(self._get_key(session_id))
            if not data:
                return None

            session = SessionState.from_dict(json.loads(data))

            # Check if expired
            if datetime.now() > session.expires_at:
                self.clear_session(session_id)
                return None

            return session

        except Exception as e:
            logger.error(f"Error getting session {session_id[:8]}...: {e}")
            return None

    def clear_session(self, session_id: str) -> bool:
        """
        Clear a session.

        Returns:
            bool: True if session was cleared
        """
        try:
            result = self.redis.delete(self._get_key(session_id))
            logger.info(f"Cleared session {session_id[:8]}...")
            return bool(result)
        except Exception as e:
            logger.error(f"Error clearing session {session_id[:8]}...: {e}")
            return False


def get_session_manager(redis_conn: Redis = Depends(get_redis)) -> SessionManager:
    """FastAPI dependency returning a session manager bound to Redis."""
    return SessionManager(redis_conn)
