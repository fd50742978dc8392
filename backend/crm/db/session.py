"""Database session. SQLite compatible with connection pooling."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from crm.core.config import settings


def make_engine(url: str) -> Engine:
    """Build an engine with pooling suited to the backend behind ``url``."""
    if url.startswith("sqlite"):
        # SQLite: NullPool for thread-safety; writers wait on each other
        # for up to the busy timeout instead of failing immediately
        from sqlalchemy.pool import NullPool
        return create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
            },
            poolclass=NullPool,
        )

    # PostgreSQL/MySQL: Use QueuePool with sensible defaults
    return create_engine(
        url,
        pool_size=5,  # Number of persistent connections
        max_overflow=10,  # Max temporary connections
        pool_timeout=30,  # Seconds to wait for connection
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True  # Verify connection health
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(settings.DATABASE_URL)

SessionLocal = make_session_factory(engine)
