"""
RelSync package initialization.

Saves a record together with everything submitted for its relations
(one-to-one, one-to-many, many-to-many and their polymorphic variants)
in one call.

author: Cole McGregor
date: 2025-12-02
version: 0.1.0
"""

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

# Re-export commonly used components
from .config import WriterConfig, load_config
from .db import SessionLocal, engine, init_db, session_scope
from .errors import (
    MalformedSubmission,
    NestingTooDeep,
    RecordNotFound,
    RelSyncError,
    UnknownRelationType,
)
from .fields import FieldDescriptor, InputSplitter, get_relation_fields
from .relations import (
    RelationDescriptor,
    RelationKind,
    RelationRegistry,
    belongs_to_many,
    has_many,
    has_one,
    morph_many,
    morph_one,
    morph_to_many,
)
from .submission import RelationOptions, RelationSubmission
from .writer import CrudWriter

__all__ = [
    # DB
    "SessionLocal",
    "engine",
    "init_db",
    "session_scope",
    # Writer
    "CrudWriter",
    "FieldDescriptor",
    "InputSplitter",
    "MalformedSubmission",
    "NestingTooDeep",
    "RecordNotFound",
    "RelSyncError",
    "RelationDescriptor",
    "RelationKind",
    "RelationOptions",
    "RelationRegistry",
    "RelationSubmission",
    "UnknownRelationType",
    "WriterConfig",
    "belongs_to_many",
    "get_relation_fields",
    "has_many",
    "has_one",
    "load_config",
    "morph_many",
    "morph_one",
    "morph_to_many",
]
