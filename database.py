"""
Database connection and transaction scope.

Uses DATABASE_URL when set, otherwise builds a MySQL (PyMySQL) URL from the
DB_* variables.
"""
import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from dotenv import load_dotenv

from errors import Conflict

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Database configuration
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_NAME = os.getenv("DB_NAME")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "3306"))

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# Pool tuning only applies to server databases (SQLite uses its own pool class)
_engine_options = {} if DATABASE_URL.startswith("sqlite") else {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
    "pool_recycle": 3600,
}

# Engine is lazy: no connection is opened until the first query
engine = create_engine(
    DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    **_engine_options,
)

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def get_db():
    """
    Dependency function to get database session.
    Use this in FastAPI endpoints with Depends(get_db).

    Example:
        @app.get("/tutorias")
        def get_sessions(db: Session = Depends(get_db)):
            return db.query(TutoringSession).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, conflict_message: str = "Dato duplicado") -> Iterator[Session]:
    """
    Run a multi-step mutation as one unit of work.

    Commits when the block exits normally. Any exception rolls the whole
    session back before propagating, so partial writes are never visible.
    Unique-constraint violations are surfaced as Conflict.

    Usage:
        with atomic(db, "El tutor ya tiene una cita en ese horario"):
            ...checks and writes...
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info("Integrity violation rolled back: %s", e.orig)
        raise Conflict(conflict_message) from e
    except Exception:
        db.rollback()
        raise
