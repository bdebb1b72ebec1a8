from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from .config import WriterConfig, load_config
from .db import SessionLocal
from .errors import RecordNotFound
from .fields import FieldDescriptor, InputSplitter, get_relation_fields
from .logging import logger
from .reconcile import ReconcileContext, reconcile_all
from .relations import RelationRegistry
from .submission import RelationSubmission

"""
CrudWriter: the write entry point.

One call saves a record and everything submitted for its relations:

    writer = CrudWriter(Pet, PET_FIELDS, registry=registry)
    pet = writer.create({
        "name": "Rex",
        "passport": [{"number": "P-1"}],
        "toys": [{"name": "ball"}, {"name": "rope"}],
        "tags": [1, 2],
    })

Transactions:
  - on (config or per-call `use_transactions=True`): the record and all of
    its relations are written in one transaction; any failure rolls the
    whole write back
  - off: the record, then each top-level relation, is committed as its own
    step; a failure keeps the steps already committed and still raises

author: Cole McGregor
date: 2025-12-02
version: 0.1.0
"""

log = logger.getChild("writer")


class CrudWriter:
    """
    Write boundary for one model and its form fields.
    - create(): new record + relations
    - update(): existing record (by primary key) + relations
    """

    def __init__(
        self,
        model: type,
        fields: Optional[Sequence[FieldDescriptor]] = None,
        *,
        registry: RelationRegistry,
        session_factory=SessionLocal,
        config: Optional[WriterConfig] = None,
    ):
        self._model = model
        self._fields: List[FieldDescriptor] = list(fields or [])
        self._splitter = InputSplitter(registry)
        self._session_factory = session_factory
        self._config = config or load_config()

    @property
    def config(self) -> WriterConfig:
        return self._config

    # -- fields -----------------------------------------------------------------

    def get_create_fields(self) -> List[FieldDescriptor]:
        return list(self._fields)

    def get_relation_fields(self, fields: Optional[Sequence[FieldDescriptor]] = None) -> List[FieldDescriptor]:
        return get_relation_fields(fields or self._fields)

    # -- writes -----------------------------------------------------------------

    def create(self, data: Dict[str, Any], *, use_transactions: Optional[bool] = None) -> Any:
        direct, relations = self._splitter.split(self._model, data, self._fields)

        def load(s: Session) -> Any:
            item = self._model(**direct)
            s.add(item)
            return item

        item = self._write(load, relations, use_transactions)
        log.info("created %s id=%s (%d relation(s))", self._model.__name__, self._key_of(item), len(relations))
        return item

    def update(self, key: Any, data: Dict[str, Any], *, use_transactions: Optional[bool] = None) -> Any:
        direct, relations = self._splitter.split(self._model, data, self._fields)

        def load(s: Session) -> Any:
            item = s.get(self._model, key)
            if item is None:
                raise RecordNotFound(f"{self._model.__name__} {key} not found")
            for col, value in direct.items():
                setattr(item, col, value)
            return item

        item = self._write(load, relations, use_transactions)
        log.info("updated %s id=%s (%d relation(s))", self._model.__name__, key, len(relations))
        return item

    # -- internals --------------------------------------------------------------

    def _use_transactions(self, override: Optional[bool]) -> bool:
        return self._config.use_transactions if override is None else bool(override)

    def _key_of(self, item: Any) -> Any:
        identity = inspect(item).identity
        return identity[0] if identity and len(identity) == 1 else identity

    def _write(self, load, relations: Dict[str, RelationSubmission], use_transactions: Optional[bool]) -> Any:
        transactional = self._use_transactions(use_transactions)

        s: Session = self._session_factory()
        try:
            item = self._persist(s, load, relations, commit_each=not transactional)
            s.commit()
            # reload columns a factory with expire_on_commit=True just expired
            s.refresh(item)
            return item
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def _persist(self, s: Session, load, relations: Dict[str, RelationSubmission], *, commit_each: bool) -> Any:
        item = load(s)
        s.flush()  # PK needed before relations can point at it
        if commit_each:
            s.commit()

        ctx = ReconcileContext(session=s, splitter=self._splitter, config=self._config)
        for name, submission in relations.items():
            reconcile_all(ctx, item, {name: submission})
            if commit_each:
                s.commit()

        return item
