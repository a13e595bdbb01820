"""Database configuration and session management for SQLite.

This module configures the SQLite database engine with settings suited
to the draw workflow: WAL mode for concurrent access and foreign key
enforcement so participants and assignments disappear with their event.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Allows concurrent readers while writing.
      Participants keep looking up their assignment while the notification
      fan-out is recording outcomes on the assignment rows.

    - **Foreign Keys**: SQLite has foreign key support but it's disabled by
      default for backwards compatibility. We enable it so that deleting an
      Event cascades to its Participants and Assignments.

    - **check_same_thread=False**: Required for FastAPI. Sync endpoints run
      in a threadpool, and the background retry job runs outside the
      request thread altogether.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from secret_santa.core.config import settings

connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


@sa_event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    # Enforces Participant.event_id / Assignment.giver_id references and
    # the ON DELETE CASCADE rules.
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
