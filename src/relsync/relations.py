from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional

from sqlalchemy import Table, inspect
from sqlalchemy.orm import MANYTOMANY, ONETOMANY, configure_mappers

"""
Relation descriptors for RelSync.

A RelationDescriptor says everything the reconcilers need to know about
one relation of an owner model: its kind, the related model, which
columns link the two sides and, for polymorphic ("morph") relations, the
type column and the value identifying the owner's type.

Descriptors live in a RelationRegistry keyed by owner model and relation
name, built up front (by hand or from the SQLAlchemy mapper), so nothing
is looked up by calling methods on the model at write time.

Column naming follows the usual conventions:
  - one-to-one / one-to-many: `foreign_key` is on the related table
  - many-to-many: `foreign_key` and `related_pivot_key` are on the pivot
  - morph relations: `<morph_name>_id` / `<morph_name>_type`

author: Cole McGregor
date: 2025-12-02
version: 0.1.0
"""


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------

class RelationKind(Enum):
    """Relation kinds the dispatcher knows how to reconcile."""

    ONE_TO_ONE = auto()
    ONE_TO_MANY = auto()
    MANY_TO_MANY = auto()


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RelationDescriptor:
    name: str
    kind: RelationKind
    related: type
    foreign_key: str
    local_key: str = "id"

    # polymorphic relations only
    morph_type: Optional[str] = None
    morph_class: Optional[str] = None

    # many-to-many only
    pivot: Optional[Table] = None
    related_pivot_key: Optional[str] = None
    related_key: Optional[str] = None

    @property
    def polymorphic(self) -> bool:
        return self.morph_type is not None

    @property
    def related_key_name(self) -> str:
        """Key column of the related model (its primary key unless overridden)."""
        if self.related_key:
            return self.related_key
        return inspect(self.related).primary_key[0].name

    def __repr__(self) -> str:
        return (
            f"<RelationDescriptor(name={self.name!r}, kind={self.kind.name}, "
            f"related={self.related.__name__})>"
        )


# --- builders ------------------------------------------------------------------

def has_one(name: str, related: type, foreign_key: str, local_key: str = "id") -> RelationDescriptor:
    return RelationDescriptor(name, RelationKind.ONE_TO_ONE, related, foreign_key, local_key)


def morph_one(
    name: str,
    related: type,
    morph_name: str,
    morph_class: str,
    local_key: str = "id",
) -> RelationDescriptor:
    return RelationDescriptor(
        name,
        RelationKind.ONE_TO_ONE,
        related,
        foreign_key=f"{morph_name}_id",
        local_key=local_key,
        morph_type=f"{morph_name}_type",
        morph_class=morph_class,
    )


def has_many(name: str, related: type, foreign_key: str, local_key: str = "id") -> RelationDescriptor:
    return RelationDescriptor(name, RelationKind.ONE_TO_MANY, related, foreign_key, local_key)


def morph_many(
    name: str,
    related: type,
    morph_name: str,
    morph_class: str,
    local_key: str = "id",
) -> RelationDescriptor:
    return RelationDescriptor(
        name,
        RelationKind.ONE_TO_MANY,
        related,
        foreign_key=f"{morph_name}_id",
        local_key=local_key,
        morph_type=f"{morph_name}_type",
        morph_class=morph_class,
    )


def belongs_to_many(
    name: str,
    related: type,
    pivot: Table,
    foreign_pivot_key: str,
    related_pivot_key: str,
    local_key: str = "id",
    related_key: Optional[str] = None,
) -> RelationDescriptor:
    return RelationDescriptor(
        name,
        RelationKind.MANY_TO_MANY,
        related,
        foreign_key=foreign_pivot_key,
        local_key=local_key,
        pivot=pivot,
        related_pivot_key=related_pivot_key,
        related_key=related_key,
    )


def morph_to_many(
    name: str,
    related: type,
    pivot: Table,
    morph_name: str,
    morph_class: str,
    related_pivot_key: str,
    local_key: str = "id",
    related_key: Optional[str] = None,
) -> RelationDescriptor:
    return RelationDescriptor(
        name,
        RelationKind.MANY_TO_MANY,
        related,
        foreign_key=f"{morph_name}_id",
        local_key=local_key,
        morph_type=f"{morph_name}_type",
        morph_class=morph_class,
        pivot=pivot,
        related_pivot_key=related_pivot_key,
        related_key=related_key,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class RelationRegistry:
    """
    Owner model -> relation name -> RelationDescriptor.

    - register(): add hand-written descriptors (required for morph relations)
    - from_mapper(): derive plain one-to-one / one-to-many / many-to-many
      descriptors from the model's SQLAlchemy relationship() properties
    """

    def __init__(self):
        self._relations: Dict[type, Dict[str, RelationDescriptor]] = {}

    def register(self, model: type, *descriptors: RelationDescriptor) -> None:
        bucket = self._relations.setdefault(model, {})
        for d in descriptors:
            bucket[d.name] = d

    def get(self, model: type, name: str) -> RelationDescriptor:
        try:
            return self._relations[model][name]
        except KeyError:
            raise KeyError(f"{model.__name__} has no registered relation {name!r}") from None

    def find(self, model: type, name: str) -> Optional[RelationDescriptor]:
        return self._relations.get(model, {}).get(name)

    def relations_for(self, model: type) -> Dict[str, RelationDescriptor]:
        return dict(self._relations.get(model, {}))

    def from_mapper(self, model: type) -> Dict[str, RelationDescriptor]:
        """
        Register a descriptor for every one-to-many and many-to-many
        relationship() on `model`. Many-to-one relationships are skipped:
        their foreign key is a direct attribute of the owner.
        Returns the descriptors that were registered.
        """
        configure_mappers()
        found: Dict[str, RelationDescriptor] = {}

        for prop in inspect(model).relationships:
            related = prop.mapper.class_

            if prop.direction is ONETOMANY:
                local_col, remote_col = prop.local_remote_pairs[0]
                kind = RelationKind.ONE_TO_MANY if prop.uselist else RelationKind.ONE_TO_ONE
                found[prop.key] = RelationDescriptor(
                    prop.key, kind, related,
                    foreign_key=remote_col.name,
                    local_key=local_col.name,
                )
            elif prop.direction is MANYTOMANY:
                owner_col, pivot_owner_col = prop.synchronize_pairs[0]
                related_col, pivot_related_col = prop.secondary_synchronize_pairs[0]
                found[prop.key] = belongs_to_many(
                    prop.key, related, prop.secondary,
                    foreign_pivot_key=pivot_owner_col.name,
                    related_pivot_key=pivot_related_col.name,
                    local_key=owner_col.name,
                    related_key=related_col.name,
                )

        self.register(model, *found.values())
        return found
