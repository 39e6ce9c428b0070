"""Point the app at a throwaway SQLite file before anything imports settings."""

import os
import tempfile

import pytest

_tmp_dir = tempfile.mkdtemp(prefix="setup_screener_tests_")
os.environ["SETUP_DATA_DIR"] = _tmp_dir
os.environ["SETUP_DB_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"


@pytest.fixture
def db():
    """Fresh tables for each test."""
    from setup_screener.db import Base, engine, init_db

    init_db()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def add_snapshot(db):
    """Insert one snapshot row; keyword arguments map to Snapshot columns."""
    from setup_screener.db import get_session
    from setup_screener.models.snapshot import Snapshot

    def _add(ticker, day, **columns):
        session = get_session()
        try:
            session.add(Snapshot(ticker=ticker, date=day, **columns))
            session.commit()
        finally:
            session.close()

    return _add
