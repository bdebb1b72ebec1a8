# tests/conftest.py
from __future__ import annotations

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from relsync.config import WriterConfig
from relsync.models import Base
from relsync.writer import CrudWriter

from domain import Pet, build_registry, pet_fields


# ----------------------------
# Test DB session_factory fixture
# ----------------------------
@pytest.fixture(scope="function")
def session_factory():
    """
    In-memory SQLite, fresh per test.
    """
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    SessionFactory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,   # keep instances usable after commit
    )
    yield SessionFactory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def make_writer(session_factory, registry):
    def _make(fields=None, **config) -> CrudWriter:
        return CrudWriter(
            Pet,
            pet_fields() if fields is None else fields,
            registry=registry,
            session_factory=session_factory,
            config=WriterConfig(**config),
        )
    return _make


@pytest.fixture
def writer(make_writer):
    return make_writer()


@pytest.fixture
def add(session_factory):
    """Insert rows directly and hand them back with their ids populated."""
    def _add(*objs):
        with session_factory() as s:
            s.add_all(objs)
            s.commit()
        return objs if len(objs) > 1 else objs[0]
    return _add


@pytest.fixture
def fetch(session_factory):
    """Read rows of a model back from the database, ordered by id."""
    def _fetch(model, *where):
        with session_factory() as s:
            stmt = select(model).where(*where).order_by(model.id)
            return list(s.execute(stmt).scalars().all())
    return _fetch


@pytest.fixture
def count(session_factory):
    def _count(model_or_table, *where):
        with session_factory() as s:
            stmt = select(func.count()).select_from(model_or_table).where(*where)
            return s.execute(stmt).scalar_one()
    return _count
