from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase

"""
Declarative base for models written through RelSync.

Applications declare their tables on this Base (or on their own
DeclarativeBase; the writer only needs mapped classes) and describe
the relations to reconcile in a RelationRegistry.

author: Cole McGregor
date: 2025-12-02
version: 0.1.0
"""


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass
