"""
Database configuration and session management.
"""
import logging
from typing import Generator
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
import redis
from redis import Redis

from smartbook.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _engine_options(database_url: str) -> dict:
    """Engine keyword arguments for the configured backend."""
    options = {"echo": settings.debug}  # Log SQL queries in debug mode
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Share the single in-memory database across threads
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
        options["pool_recycle"] = 300
    return options


# SQLAlchemy setup
engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Redis setup
redis_client: Redis = redis.from_url(settings.redis_url, decode_responses=True)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def get_redis() -> Redis:
    """
    Get Redis client instance.
    """
    return redis_client


def init_db() -> None:
    """Create all tables that do not exist yet."""
    import smartbook.models  # noqa: F401  register models on Base.metadata
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


def test_db_connection() -> bool:
    """
    Test database connection.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def test_redis_connection() -> bool:
    """
    Test Redis connection.
    """
    try:
        redis_client.ping()
        logger.info("Redis connection successful")
        return True
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        return False
