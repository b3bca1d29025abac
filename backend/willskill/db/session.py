"""
Database Session Management Module
==================================

Responsible for:
- Creating the database engine
- Providing the session factory used by the session store
- Request-scoped sessions for the authentication routes
- Development-time table creation
- Connection health checks
"""

from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from willskill.core.config import settings
from willskill.core.logging import get_logger
from willskill.db.base import Base

# Initialize logger
logger = get_logger(__name__)


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections are shared across the event loop's worker
    threads, so same-thread checking is disabled for them.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(
        url,
        pool_pre_ping=True,  # Validate connections before use
        echo=settings.DB_ECHO,
        connect_args=connect_args,
    )


# ==========================
# Database Engine
# ==========================

engine = build_engine(settings.DATABASE_URL)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection, connection_record):
    """Log new database connections."""
    logger.debug("db_connect")


# ==========================
# Session Factory
# ==========================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Access objects after commit
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    The session is closed after the request and rolled back on error.

    Usage:
        @router.post("/login")
        def login(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(
            "Database session error",
            extra={"error": str(e)}
        )
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine = engine) -> None:
    """
    Create tables from model metadata.

    Schema migrations are managed outside this service; this is only
    for development and tests.
    """
    # Import models so they register with Base.metadata
    import willskill.models  # noqa: F401

    Base.metadata.create_all(bind=bind)


# ==========================
# Database Health Check
# ==========================

def check_database_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "Database health check failed",
            extra={"error": str(e)}
        )
        return False

