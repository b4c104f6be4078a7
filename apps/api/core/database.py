"""
Engine, session factory and the request-scoped session dependency.

Services own their transactions (conversation exchanges, usage increments and
entitlement updates each commit on their own). The dependency only guarantees
that whatever is left over is committed or rolled back, and that the
connection goes back to the pool.
"""
import logging
import time
from typing import Any, Dict, Iterator

from fastapi import HTTPException
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL or (
    f"postgresql://{settings.POSTGRES_USER}:{settings.POSTGRES_PASSWORD}"
    f"@{settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
)

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_S = 0.1


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, echo=settings.DEBUG, **_engine_options(DATABASE_URL))

# Rows stay readable after commit; the orchestrator reads ids from them
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def _open_session() -> Session:
    """A session whose connection answered a ping, with short exponential backoff."""
    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except OperationalError as e:
            db.close()
            if attempt == CONNECT_ATTEMPTS:
                logger.error(f"Database unreachable after {attempt} attempts: {e}")
                raise
            logger.warning(f"Database connect attempt {attempt} failed, retrying")
            time.sleep(CONNECT_BACKOFF_S * 2 ** (attempt - 1))
    raise RuntimeError("unreachable")


def get_db() -> Iterator[Session]:
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        if not isinstance(e, HTTPException):
            logger.error(f"Request transaction rolled back: {e}")
        raise
    finally:
        db.close()


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
