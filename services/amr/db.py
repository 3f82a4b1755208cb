import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from services.amr import models

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./amr_assessment.db")

# SQLite connections are shared across the request threadpool.
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def init_db(bind=None) -> None:
    """Create the assessment tables (dev-only; production schemas are migrated)."""
    models.Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(db: Session | None = None):
    """Yield a session for background jobs; only sessions opened here are closed here."""
    owned = db is None
    if owned:
        db = SessionLocal()
    try:
        yield db
    finally:
        if owned:
            db.close()
