from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import Select, delete, insert, select, update
from sqlalchemy.orm import Session

from .relations import RelationDescriptor
from .schema import coerce_pivot_keys

"""
Storage operations on one relation of one owner record.

RelationAccessor binds (session, owner, descriptor) and exposes the
primitives the reconcilers are written against:

  related rows (one-to-one / one-to-many):
    query, first, all, create, update_or_create, delete,
    where_in, where_not_in, update_where, delete_each

  associations (many-to-many), via the pivot Table with Core statements:
    pivot_rows, related_keys, sync,
    pivot_create, pivot_update, pivot_delete

Everything runs on the caller's session; nothing here commits. Writes
are flushed right away because sessions are created with autoflush off
and later reads in the same reconciliation must see them.
"""


class RelationAccessor:
    def __init__(self, session: Session, owner: object, descriptor: RelationDescriptor):
        self.session = session
        self.owner = owner
        self.descriptor = descriptor

    @property
    def owner_key(self) -> Any:
        return getattr(self.owner, self.descriptor.local_key)

    @property
    def related(self) -> type:
        return self.descriptor.related

    def _col(self, name: str):
        return getattr(self.related, name)

    def owner_attributes(self) -> Dict[str, Any]:
        """Columns that point a related row at the owner."""
        d = self.descriptor
        attrs = {d.foreign_key: self.owner_key}
        if d.polymorphic:
            attrs[d.morph_type] = d.morph_class
        return attrs

    # -- related rows -----------------------------------------------------------

    def query(self) -> Select:
        """Related rows currently pointing at the owner."""
        stmt = select(self.related)
        for col, value in self.owner_attributes().items():
            stmt = stmt.where(self._col(col) == value)
        return stmt

    def first(self) -> Optional[object]:
        return self.session.execute(self.query().limit(1)).scalars().first()

    def all(self) -> List[object]:
        return list(self.session.execute(self.query()).scalars().all())

    def create(self, attrs: Mapping[str, Any]) -> object:
        obj = self.related(**{**attrs, **self.owner_attributes()})
        self.session.add(obj)
        self.session.flush()
        return obj

    def update_or_create(self, match: Mapping[str, Any], attrs: Mapping[str, Any]) -> object:
        """
        Update the first owned row matching `match` with `attrs`, or create
        one from both. An empty `match` targets the owner's sole related row.
        """
        stmt = self.query()
        for col, value in match.items():
            stmt = stmt.where(self._col(col) == value)
        obj = self.session.execute(stmt.limit(1)).scalars().first()

        if obj is None:
            return self.create({**match, **attrs})

        for col, value in attrs.items():
            setattr(obj, col, value)
        self.session.flush()
        return obj

    def delete(self, obj: object) -> None:
        self.session.delete(obj)
        self.session.flush()

    def where_in(self, key: str, values: Sequence[Any]) -> Select:
        """Related rows (owned or not) whose `key` is in `values`."""
        return select(self.related).where(self._col(key).in_(list(values)))

    def where_not_in(self, key: str, values: Sequence[Any]) -> Select:
        """Owned related rows whose `key` is not in `values`."""
        return self.query().where(self._col(key).not_in(list(values)))

    def update_where(self, rows: Select, values: Mapping[str, Any]) -> int:
        """Set `values` on every row selected by `rows` in one UPDATE."""
        stmt = update(self.related).values(**values)
        if rows.whereclause is not None:
            stmt = stmt.where(rows.whereclause)
        result = self.session.execute(stmt)
        self.session.flush()
        return result.rowcount or 0

    def delete_each(self, rows: Select) -> int:
        """ORM-delete each selected row so mapper cascades still apply."""
        objs = list(self.session.execute(rows).scalars().all())
        for obj in objs:
            self.session.delete(obj)
        self.session.flush()
        return len(objs)

    # -- pivot rows -------------------------------------------------------------

    @property
    def pivot(self):
        return self.descriptor.pivot

    def _pivot_owned(self) -> list:
        return [self.pivot.c[col] == value for col, value in self.owner_attributes().items()]

    def pivot_rows(self) -> List[Mapping[str, Any]]:
        stmt = select(self.pivot).where(*self._pivot_owned())
        return list(self.session.execute(stmt).mappings().all())

    def related_keys(self) -> List[Any]:
        rpk = self.descriptor.related_pivot_key
        return [row[rpk] for row in self.pivot_rows()]

    def pivot_create(self, attrs: Mapping[str, Any]) -> None:
        self.session.execute(insert(self.pivot).values(**attrs))

    def pivot_update(self, key_name: str, key_value: Any, attrs: Mapping[str, Any]) -> int:
        if not attrs:
            return 0
        stmt = (
            update(self.pivot)
            .where(self.pivot.c[key_name] == key_value, *self._pivot_owned())
            .values(**attrs)
        )
        return self.session.execute(stmt).rowcount or 0

    def pivot_delete(self, key_name: str, values: Iterable[Any]) -> int:
        stmt = delete(self.pivot).where(
            self.pivot.c[key_name].in_(list(values)), *self._pivot_owned()
        )
        return self.session.execute(stmt).rowcount or 0

    def sync(self, ids: Any) -> Dict[str, List[Any]]:
        """
        Make the owner's associations exactly `ids`.

        `ids` is either a sequence of related keys or a mapping of related
        key -> extra pivot attributes. Missing associations are inserted,
        kept ones get their extra attributes updated when they differ, and
        the rest are deleted.
        """
        rpk = self.descriptor.related_pivot_key

        if isinstance(ids, Mapping):
            keys = coerce_pivot_keys(self.pivot, rpk, ids.keys())
            wanted = dict(zip(keys, ids.values()))
        else:
            wanted = {k: {} for k in coerce_pivot_keys(self.pivot, rpk, ids)}

        current = {row[rpk]: row for row in self.pivot_rows()}
        changes: Dict[str, List[Any]] = {"attached": [], "detached": [], "updated": []}

        detach = [k for k in current if k not in wanted]
        if detach:
            self.pivot_delete(rpk, detach)
            changes["detached"] = detach

        for key, extra in wanted.items():
            extra = dict(extra or {})
            row = current.get(key)
            if row is None:
                self.pivot_create({**extra, **self.owner_attributes(), rpk: key})
                changes["attached"].append(key)
            elif any(row.get(col) != value for col, value in extra.items()):
                self.pivot_update(rpk, key, extra)
                changes["updated"].append(key)

        return changes
