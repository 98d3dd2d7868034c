import logging
import time
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from reelestate.config import get_settings
from reelestate.models.base import Base

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> Engine:
    """Engine shared by the worker loop and the webhook bridge.

    Each worker process keeps a small pool; the claim protocol only needs
    short single-statement transactions.
    """
    settings = get_settings()
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=2,
        max_overflow=0,
        pool_pre_ping=True,  # Check connection health before use
        pool_recycle=1800,
    )


@lru_cache
def get_session_maker() -> sessionmaker[Session]:
    return sessionmaker(get_engine(), class_=Session, expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create tables, retrying while the database comes up."""
    engine = engine or get_engine()
    max_retries = 5
    retry_delay = 2  # seconds

    for attempt in range(max_retries):
        try:
            Base.metadata.create_all(engine)
            return  # Success
        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(
                    f"DB connection attempt {attempt + 1}/{max_retries} failed: {e}. "
                    f"Retrying in {retry_delay} seconds..."
                )
                time.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.error(f"Failed to connect to database after {max_retries} attempts")
                raise
