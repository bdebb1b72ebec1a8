from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from .relations import RelationDescriptor, RelationKind

if TYPE_CHECKING:
    from .fields import FieldDescriptor

"""
The per-write shape of one relation's submitted data.

A RelationSubmission is built by the InputSplitter for the duration of
one write and thrown away after; only its effects persist.
"""


@dataclass
class RelationOptions:
    """Per-relation policy flags, taken from the relation's field."""
    force_delete: bool = False
    fallback_id: Any = None
    allow_duplicate_pivots: bool = False
    pivot_key_name: str = "id"

    @property
    def has_fallback(self) -> bool:
        return self.fallback_id is not None and self.fallback_id is not False


@dataclass
class RelationSubmission:
    descriptor: RelationDescriptor
    values: Dict[str, Any] = field(default_factory=dict)
    options: RelationOptions = field(default_factory=RelationOptions)
    nested_fields: List["FieldDescriptor"] = field(default_factory=list)
    entity: Optional[str] = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def kind(self) -> RelationKind:
        return self.descriptor.kind

    @property
    def relation_values(self) -> Any:
        """The payload stored under the relation's own name, if any."""
        return self.values.get(self.name)


def is_multidimensional(value: Any) -> bool:
    """True for a list whose items include a mapping or a nested list."""
    if isinstance(value, Mapping):
        value = list(value.values())
    if not isinstance(value, (list, tuple)):
        return False
    return any(isinstance(item, (Mapping, list, tuple)) for item in value)
