# tests/test_db.py
import os
import tempfile

import pytest
from sqlalchemy import inspect, select

import relsync.db as db

from domain import Pet


@pytest.fixture(scope="function")
def temp_db(monkeypatch):
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    url = f"sqlite:///{path}"
    old_engine = db.engine
    monkeypatch.setattr(db, "DATABASE_URL", url)
    db.engine = db.create_engine(url, echo=False, future=True)
    db.SessionLocal.configure(bind=db.engine)

    yield path

    # Cleanup: close engine/connection pool first, then point back
    db.engine.dispose()
    db.engine = old_engine
    db.SessionLocal.configure(bind=old_engine)
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def test_init_db_creates_tables(temp_db):
    db.init_db()

    tables = inspect(db.engine).get_table_names()
    assert "pets" in tables
    assert "toys" in tables
    assert "pet_tags" in tables
    assert "labelables" in tables


def test_session_scope_commits(temp_db):
    db.init_db()

    with db.session_scope() as s:
        s.add(Pet(name="Rex"))

    with db.SessionLocal() as s:
        assert s.execute(select(Pet.name)).scalars().all() == ["Rex"]


def test_session_scope_rolls_back_on_error(temp_db):
    db.init_db()

    with pytest.raises(RuntimeError):
        with db.session_scope() as s:
            s.add(Pet(name="Rex"))
            s.flush()
            raise RuntimeError("boom")

    with db.SessionLocal() as s:
        assert s.execute(select(Pet)).scalars().all() == []


def test_init_db_creates_missing_sqlite_directory(tmp_path, monkeypatch):
    target = tmp_path / "nested" / "data" / "relsync.db"
    monkeypatch.setattr(db, "engine", db.create_engine(f"sqlite:///{target.as_posix()}", future=True))
    assert not target.parent.exists()

    try:
        db.init_db()
        assert target.exists()
    finally:
        db.engine.dispose()


def test_default_url_is_relative_to_working_directory():
    assert db.DB_PATH == db.DATA_DIR / "relsync.db"
    assert not db.DB_PATH.is_absolute()
