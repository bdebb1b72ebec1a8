from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import Select
from sqlalchemy.orm import Session

from . import schema
from .config import WriterConfig
from .errors import MalformedSubmission, NestingTooDeep, UnknownRelationType
from .fields import InputSplitter
from .logging import logger
from .relations import RelationDescriptor, RelationKind
from .storage import RelationAccessor
from .submission import RelationSubmission, is_multidimensional

"""
Relation reconciliation.

Given a saved owner record and the relation submissions split out of
its input, bring every relation in storage in line with what was sent:

- one-to-one:   upsert the single related row, or delete it when the
                relation was submitted as None
- one-to-many:  either attach a flat list of existing keys (removing the
                rest per the removal policy) or create/update a list of
                attribute mappings (deleting the rest)
- many-to-many: sync the association set, with extra pivot attributes;
                or, with duplicate pivots allowed, manage pivot rows one
                by one so the same related key can appear more than once

Nested relations of a related row are reconciled recursively with the
same context, one level deeper.

author: Cole McGregor
date: 2025-12-02
version: 0.1.0
"""

log = logger.getChild("reconcile")

PIVOT_KEY_META = "pivot_key_name"


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReconcileContext:
    session: Session
    splitter: InputSplitter
    config: WriterConfig
    depth: int = 0

    def deeper(self) -> "ReconcileContext":
        if self.depth + 1 > self.config.max_depth:
            raise NestingTooDeep(self.config.max_depth)
        return replace(self, depth=self.depth + 1)

    def malformed(self, message: str) -> None:
        """Raise in strict mode; otherwise log and let the caller fall back."""
        if self.config.strict:
            raise MalformedSubmission(message)
        log.debug("lenient: %s", message)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def reconcile_all(
    ctx: ReconcileContext,
    owner: object,
    relations: Mapping[str, RelationSubmission],
) -> None:
    """Reconcile every submitted relation of `owner`, in submission order."""
    if not relations:
        return

    for name, submission in relations.items():
        accessor = RelationAccessor(ctx.session, owner, submission.descriptor)
        kind = submission.kind

        if kind is RelationKind.ONE_TO_ONE:
            reconcile_one_to_one(ctx, accessor, submission)
        elif kind is RelationKind.ONE_TO_MANY:
            reconcile_one_to_many(ctx, accessor, submission)
        elif kind is RelationKind.MANY_TO_MANY:
            reconcile_many_to_many(ctx, accessor, submission)
        else:
            if ctx.config.strict:
                raise UnknownRelationType(f"no reconciler for relation {name!r} of kind {kind!r}")
            log.debug("skipping relation %r: unknown kind %r", name, kind)


# ---------------------------------------------------------------------------
# One-to-one
# ---------------------------------------------------------------------------

def reconcile_one_to_one(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
) -> Optional[object]:
    """
    Values can look like:
      {"number": 1315}                    one attribute field (dotted entity)
      {"slug": None}                      clear an attribute of the related row
      {"passport": [{"number": 1314}]}    whole row from a repeatable field
      {"passport": None}                  whole row removed -> delete it
    """
    name = submission.name
    values = submission.values
    attributes: Any = None

    if name in values:
        value = values[name]

        if value is None and submission.entity == name:
            existing = accessor.first()
            if existing is not None:
                accessor.delete(existing)
                log.debug("one-to-one %r: deleted related row", name)
            return None

        if isinstance(value, list) and is_multidimensional(value):
            value = value[0]
        attributes = value

    if attributes is not None and not isinstance(attributes, Mapping):
        ctx.malformed(f"one-to-one {name!r} expects a mapping, got {type(attributes).__name__}")
        attributes = None

    if attributes is None:
        # attribute fields only; the relation-name key is not a column
        attributes = {k: v for k, v in values.items() if k != name}
        if not attributes:
            log.debug("one-to-one %r: nothing to write", name)
            return None

    direct, nested = ctx.splitter.split(submission.descriptor.related, dict(attributes), submission.nested_fields)
    item = accessor.update_or_create({}, direct)
    log.debug("one-to-one %r: saved related row", name)

    if nested:
        reconcile_all(ctx.deeper(), item, nested)
    return item


# ---------------------------------------------------------------------------
# One-to-many
# ---------------------------------------------------------------------------

def reconcile_one_to_many(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
) -> None:
    values = submission.relation_values
    if isinstance(values, Mapping):
        values = list(values.values())

    if values is None or not is_multidimensional(values):
        attach_many(ctx, accessor, submission, values)
    else:
        create_many_entries(ctx, accessor, submission, values)


def attach_many(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
    values: Optional[Sequence[Any]],
) -> int:
    """
    Point the rows whose keys were sent at the owner, then run the removal
    policy on the owner's other rows. Nothing sent clears the relation.
    Returns the number of rows the removal policy touched.
    """
    d = submission.descriptor

    if not values:
        return remove_many(ctx, accessor, submission, accessor.query())

    if isinstance(values, (str, int)):
        ctx.malformed(f"one-to-many {d.name!r} expects a list of keys")
        values = [values]

    related_key = d.related_key_name
    keys = schema.coerce_keys(d.related, related_key, values)

    attached = accessor.update_where(accessor.where_in(related_key, keys), accessor.owner_attributes())
    log.debug("one-to-many %r: attached %d row(s)", d.name, attached)

    removed = accessor.where_not_in(related_key, keys)
    return remove_many(ctx, accessor, submission, removed)


def remove_many(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
    removed: Select,
) -> int:
    """
    Detach rows dropped from a one-to-many submission. In order:
      1. fallback_id set  -> re-point the foreign key at it
      2. force_delete     -> delete the rows
      3. foreign key NOT NULL without a default -> delete the rows
         otherwise        -> set the foreign key to its default (maybe NULL)
    """
    d = submission.descriptor
    opts = submission.options
    fk = d.foreign_key

    if opts.has_fallback:
        count = accessor.update_where(removed, {fk: opts.fallback_id})
        log.debug("one-to-many %r: %d row(s) moved to fallback %r", d.name, count, opts.fallback_id)
        return count

    if opts.force_delete:
        count = accessor.delete_each(removed)
        log.debug("one-to-many %r: force-deleted %d row(s)", d.name, count)
        return count

    default = schema.cast_default(d.related, fk, schema.get_column_default(d.related, fk))

    if not schema.is_column_nullable(d.related, fk) and default is None:
        count = accessor.delete_each(removed)
        log.debug("one-to-many %r: deleted %d row(s) (%s is NOT NULL)", d.name, count, fk)
        return count

    count = accessor.update_where(removed, {fk: default})
    log.debug("one-to-many %r: reset %s to %r on %d row(s)", d.name, fk, default, count)
    return count


def create_many_entries(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
    items: Sequence[Any],
) -> List[Any]:
    """
    Create or update one related row per submitted mapping (matched on the
    related key), reconcile its own relations, then delete the owner's
    rows that were not sent. Returns the keys of the rows that were kept.
    """
    d = submission.descriptor
    related_key = d.related_key_name
    sent: List[Any] = []

    for item in items:
        if not isinstance(item, Mapping):
            ctx.malformed(f"one-to-many {d.name!r} item is not a mapping: {item!r}")
            continue

        direct, nested = ctx.splitter.split(d.related, dict(item), submission.nested_fields)
        key_value = direct.pop(related_key, None)
        if key_value == "":
            key_value = None
        if key_value is not None:
            key_value = schema.coerce_keys(d.related, related_key, [key_value])[0]

        row = accessor.update_or_create({related_key: key_value}, direct)
        sent.append(getattr(row, related_key))

        if nested:
            reconcile_all(ctx.deeper(), row, nested)

    if sent:
        deleted = accessor.delete_each(accessor.where_not_in(related_key, sent))
        log.debug("one-to-many %r: saved %d row(s), deleted %d", d.name, len(sent), deleted)
    return sent


# ---------------------------------------------------------------------------
# Many-to-many
# ---------------------------------------------------------------------------

def _decode_values(ctx: ReconcileContext, name: str, values: Any) -> List[Any]:
    if values is None:
        return []
    if isinstance(values, str):
        try:
            values = json.loads(values)
        except ValueError:
            ctx.malformed(f"many-to-many {name!r}: values are not valid JSON")
            return []
        if values is None:
            return []
    if isinstance(values, Mapping):
        return list(values.values())
    if isinstance(values, (list, tuple)):
        return list(values)
    ctx.malformed(f"many-to-many {name!r} expects a list, got {type(values).__name__}")
    return []


def _pivot_columns(ctx: ReconcileContext, d: RelationDescriptor, attrs: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys that are not pivot columns."""
    unknown = [k for k in attrs if k not in d.pivot.c]
    if unknown:
        ctx.malformed(f"many-to-many {d.name!r}: unknown pivot column(s) {unknown}")
    return {k: v for k, v in attrs.items() if k in d.pivot.c}


def reconcile_many_to_many(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
) -> Dict[str, List[Any]]:
    """
    Values are a list of related keys, or a list of mappings carrying the
    related key under the relation name plus extra pivot attributes.
    Returns the sync change summary.
    """
    d = submission.descriptor
    name = submission.name
    values = _decode_values(ctx, name, submission.relation_values)

    if is_multidimensional(values):
        if submission.options.allow_duplicate_pivots:
            return sync_duplicate_pivots(ctx, accessor, submission, values)

        mapping: Dict[Any, Dict[str, Any]] = {}
        for value in values:
            if not isinstance(value, Mapping) or value.get(name) is None:
                ctx.malformed(f"many-to-many {name!r} item without a {name!r} key: {value!r}")
                continue
            extra = {k: v for k, v in value.items() if k != name}
            mapping[value[name]] = _pivot_columns(ctx, d, extra)

        changes = accessor.sync(mapping)
    else:
        changes = accessor.sync(values)

    log.debug(
        "many-to-many %r: +%d -%d ~%d",
        name, len(changes["attached"]), len(changes["detached"]), len(changes["updated"]),
    )
    return changes


def sync_duplicate_pivots(
    ctx: ReconcileContext,
    accessor: RelationAccessor,
    submission: RelationSubmission,
    values: Sequence[Any],
) -> Dict[str, List[Any]]:
    """
    Manage pivot rows individually, keyed by the pivot's own key column,
    so one related key can be linked several times with different data.
    Items carrying a pivot key update that row; the others become new rows;
    pivot rows of the owner that were not sent are deleted.
    """
    d = submission.descriptor
    key_name = submission.options.pivot_key_name
    items = [v for v in values if isinstance(v, Mapping)]
    if len(items) != len(values):
        ctx.malformed(f"many-to-many {d.name!r}: non-mapping items ignored")

    sent_ids = schema.coerce_pivot_keys(d.pivot, key_name, [v[key_name] for v in items if v.get(key_name)])
    db_values = [row[key_name] for row in accessor.pivot_rows()]
    to_delete = [v for v in db_values if v not in sent_ids]

    if to_delete:
        accessor.pivot_delete(key_name, to_delete)

    changes: Dict[str, List[Any]] = {"attached": [], "detached": to_delete, "updated": []}
    for value in items:
        if value.get(key_name):
            pivot_id = schema.coerce_pivot_keys(d.pivot, key_name, [value[key_name]])[0]
            attrs = prepare_pivot_attributes_for_update(value, d, key_name)
            accessor.pivot_update(key_name, pivot_id, _pivot_columns(ctx, d, attrs))
            changes["updated"].append(pivot_id)
        elif value.get(d.name) is None:
            ctx.malformed(f"many-to-many {d.name!r} item without a {d.name!r} key: {value!r}")
        else:
            attrs = prepare_pivot_attributes_for_create(value, d, accessor.owner_key, key_name)
            accessor.pivot_create(_pivot_columns(ctx, d, attrs))
            changes["attached"].append(attrs.get(d.related_pivot_key))

    log.debug(
        "many-to-many %r (duplicates allowed): +%d -%d ~%d",
        d.name, len(changes["attached"]), len(to_delete), len(changes["updated"]),
    )
    return changes


def _strip_meta(attrs: Dict[str, Any], d: RelationDescriptor, key_name: str) -> Dict[str, Any]:
    pivot_key = attrs.get(PIVOT_KEY_META) or key_name
    for k in (d.name, PIVOT_KEY_META, pivot_key):
        attrs.pop(k, None)
    return attrs


def prepare_pivot_attributes_for_create(
    attributes: Mapping[str, Any],
    d: RelationDescriptor,
    owner_key: Any,
    key_name: str = "id",
) -> Dict[str, Any]:
    attrs = dict(attributes)
    related_value = attrs.get(d.name)
    attrs = _strip_meta(attrs, d, key_name)
    attrs[d.foreign_key] = owner_key
    attrs[d.related_pivot_key] = related_value
    if d.polymorphic:
        attrs[d.morph_type] = d.morph_class
    return attrs


def prepare_pivot_attributes_for_update(
    attributes: Mapping[str, Any],
    d: RelationDescriptor,
    key_name: str = "id",
) -> Dict[str, Any]:
    # the owning side of an existing pivot row never changes
    attrs = dict(attributes)
    related_value = attrs.get(d.name)
    attrs = _strip_meta(attrs, d, key_name)
    if related_value is not None:
        attrs[d.related_pivot_key] = related_value
    attrs.pop(d.foreign_key, None)
    if d.morph_type:
        attrs.pop(d.morph_type, None)
    return attrs
