from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .logging import logger
from .relations import RelationRegistry
from .submission import RelationOptions, RelationSubmission

"""
Form field descriptors and the input splitter.

A FieldDescriptor is the write-side view of one form field: its input
name, the relation it writes to (`entity`, e.g. "passport" or the dotted
"passport.number" for one attribute of a related row), and the relation
options set on it.

InputSplitter turns a submitted mapping into:
    (direct attributes of the record, {relation name: RelationSubmission})

Keys that do not belong to a relation field of a registered relation are
direct attributes. The same splitter is used again on every related
record's own input, with the relation field's subfields.
"""

log = logger.getChild("fields")


# ---------------------------------------------------------------------------
# FieldDescriptor
# ---------------------------------------------------------------------------

@dataclass
class FieldDescriptor:
    name: Union[str, Sequence[str]]
    entity: Union[str, bool, None] = None
    model: Union[type, bool, None] = None
    subfields: List["FieldDescriptor"] = field(default_factory=list)

    # relation options
    force_delete: bool = False
    fallback_id: Any = None
    allow_duplicate_pivots: bool = False
    pivot_key_name: str = "id"

    @property
    def relation_name(self) -> Optional[str]:
        if not isinstance(self.entity, str) or not self.entity:
            return None
        return self.entity.split(".", 1)[0]

    @property
    def attribute(self) -> str:
        """Key under which this field's value lands in the relation values."""
        if isinstance(self.entity, str) and "." in self.entity:
            return self.entity.split(".", 1)[1]
        return self.name if isinstance(self.name, str) else self.relation_name

    def options(self) -> RelationOptions:
        return RelationOptions(
            force_delete=self.force_delete,
            fallback_id=self.fallback_id,
            allow_duplicate_pivots=self.allow_duplicate_pivots,
            pivot_key_name=self.pivot_key_name or "id",
        )


def holds_multiple_inputs(name: Any) -> bool:
    """A field whose name is a list of names writes several inputs."""
    return isinstance(name, (list, tuple))


def _has_model(f: FieldDescriptor) -> bool:
    return f.model is not None and f.model is not False


def get_relation_fields(fields: Sequence[FieldDescriptor]) -> List[FieldDescriptor]:
    """
    Keep the fields that carry a relation (model set, entity not disabled).
    Subfields of multi-input fields are checked too, one level deep.
    """
    relation_fields: List[FieldDescriptor] = []

    for f in fields:
        if _has_model(f) and f.entity is not False:
            relation_fields.append(f)

        if holds_multiple_inputs(f.name) and f.subfields:
            for sub in f.subfields:
                if _has_model(sub):
                    relation_fields.append(sub)

    return relation_fields


# ---------------------------------------------------------------------------
# InputSplitter
# ---------------------------------------------------------------------------

class InputSplitter:
    def __init__(self, registry: RelationRegistry):
        self._registry = registry

    @staticmethod
    def _fields_by_name(fields: Sequence[FieldDescriptor]) -> Dict[str, FieldDescriptor]:
        by_name: Dict[str, FieldDescriptor] = {}
        for f in fields:
            if holds_multiple_inputs(f.name):
                for sub in f.subfields:
                    if isinstance(sub.name, str):
                        by_name[sub.name] = sub
            else:
                by_name[f.name] = f
        return by_name

    def split(
        self,
        model: type,
        data: Dict[str, Any],
        fields: Sequence[FieldDescriptor],
    ) -> Tuple[Dict[str, Any], Dict[str, RelationSubmission]]:
        direct: Dict[str, Any] = {}
        relations: Dict[str, RelationSubmission] = {}
        by_name = self._fields_by_name(fields)

        for key, value in data.items():
            f = by_name.get(key)
            rel_name = f.relation_name if f else None
            descriptor = self._registry.find(model, rel_name) if rel_name else None

            if descriptor is None:
                direct[key] = value
                continue

            submission = relations.get(rel_name)
            if submission is None:
                submission = RelationSubmission(
                    descriptor=descriptor,
                    options=f.options(),
                    nested_fields=list(f.subfields),
                    entity=f.entity,
                )
                relations[rel_name] = submission
            elif f.entity == rel_name:
                # the whole-relation field decides entity, options and subfields
                submission.entity = f.entity
                submission.options = f.options()
                submission.nested_fields = list(f.subfields)

            submission.values[f.attribute] = value

        log.debug(
            "split %s: %d direct, relations=%s",
            model.__name__, len(direct), list(relations),
        )
        return direct, relations
