import logging
from functools import lru_cache
from typing import Optional

from aqm_core.config.environments import get_settings
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

log = logging.getLogger(__name__)

Base = declarative_base()


def create_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    """Create a session factory for *database_url* (defaults to settings)."""
    settings = get_settings()
    url = database_url or settings.DATABASE_URL

    log.info("Initializing database connection for %s environment", settings.ENVIRONMENT.value)
    log.info("Database URL: %s", url)

    engine = create_engine(url, future=True, echo=False)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return create_session_factory()
