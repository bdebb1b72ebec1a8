from __future__ import annotations

from typing import Any, Iterable, List, Optional

from sqlalchemy import Column, Table, inspect

"""
Column introspection used by the reconcilers.

Answers three questions about a column of a mapped model, straight from
its SQLAlchemy Column metadata:
  - is it nullable?
  - what is its database (server-side) default?
  - what Python type does it cast to?

Plus two small helpers built on top: integer coercion of a default and
of submitted key values (form input often sends "3" for 3).
"""


def _column(model: type, column: str) -> Column:
    return inspect(model).columns[column]


def is_column_nullable(model: type, column: str) -> bool:
    return bool(_column(model, column).nullable)


def get_column_default(model: type, column: str) -> Any:
    """
    Database default of `column`, or None when it has none.
    Only server defaults count; Python-side `default=` values never
    reach rows written with a bulk UPDATE.
    """
    sd = _column(model, column).server_default
    arg = getattr(sd, "arg", None)
    if arg is None:
        return None

    text = arg if isinstance(arg, str) else getattr(arg, "text", str(arg))
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        text = text[1:-1]
    if text.upper() == "NULL":
        return None
    return text


def _python_type(column: Column) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def get_cast_type(model: type, column: str) -> Optional[type]:
    return _python_type(_column(model, column))


def cast_default(model: type, column: str, value: Any) -> Any:
    # integer is the only cast applied; None stays None
    if value is None:
        return None
    if get_cast_type(model, column) is int:
        return int(value)
    return value


def _coerce(ptype: Optional[type], value: Any) -> Any:
    if ptype is int and isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return value


def coerce_keys(model: type, column: str, values: Iterable[Any]) -> List[Any]:
    ptype = get_cast_type(model, column)
    return [_coerce(ptype, v) for v in values]


def coerce_pivot_keys(pivot: Table, column: str, values: Iterable[Any]) -> List[Any]:
    ptype = _python_type(pivot.c[column])
    return [_coerce(ptype, v) for v in values]
