import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from services.amr import models
from services.amr.catalog import build_catalog


@pytest.fixture
def anyio_backend():
    # Force asyncio backend so tests don't require trio.
    return "asyncio"


@pytest.fixture
def catalog():
    return build_catalog()


@pytest.fixture
def test_db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    models.Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    db = Session()
    try:
        yield db
    finally:
        db.close()



@pytest.fixture
def open_db(tmp_path):
    """Open independent sessions on one file-backed database, like two processes would."""
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'amr.db'}", future=True)
    models.Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    opened = []

    def _open():
        db = Session()
        opened.append(db)
        return db

    try:
        yield _open
    finally:
        for db in opened:
            db.close()
        engine.dispose()
