"""
Database connection and session management.
"""
from typing import Generator
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from config.settings import settings
from .models import Base


def _ensure_database_exists():
    """Create the MySQL database if it does not already exist."""
    from urllib.parse import urlparse

    parsed = urlparse(settings.database_url)
    db_name = parsed.path.lstrip("/")
    # Build a URL without the database name so we can connect to the server
    server_url = settings.database_url.rsplit("/", 1)[0]
    tmp_engine = create_engine(server_url, pool_pre_ping=True)
    with tmp_engine.connect() as conn:
        conn.execute(text(f"CREATE DATABASE IF NOT EXISTS `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"))
        conn.commit()
    tmp_engine.dispose()


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite ignores ON DELETE clauses unless each connection opts in."""
    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _engine_options(url: str) -> dict:
    """Engine keyword arguments for the configured backend."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": 3600}


if settings.database_url.startswith("mysql"):
    _ensure_database_exists()

# Create engine
engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url)
)

if settings.database_url.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Initialize database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.
    Use as dependency injection in FastAPI.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

