from __future__ import annotations
import os
from contextlib import contextmanager
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from .models import Base

# ---------------------------------------------------------------------------
# Database URL
# ---------------------------------------------------------------------------
# Default: ./data/relsync.db under the current working directory.
# Override via DATABASE_URL env (e.g., for tests). Nothing touches the
# filesystem until init_db() or the first connection.
# ---------------------------------------------------------------------------

DATA_DIR = Path("data")
DB_PATH = DATA_DIR / "relsync.db"

# DATABASE_URL is the URL of the database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH.as_posix()}")

# engine is the database engine (lazy: no connection is opened here)
engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)

# SessionLocal is a factory for creating new database sessions
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def _ensure_sqlite_dir() -> None:
    url = engine.url
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def init_db() -> None:
    """Create all tables registered on Base (idempotent)."""
    _ensure_sqlite_dir()
    Base.metadata.create_all(bind=engine)


# --- Session scope -------------------------------------------------------------

@contextmanager
def session_scope(session_factory=SessionLocal):
    """One transaction: commit on success, roll back and re-raise on failure."""
    s: Session = session_factory()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
