"""Conversion between domain dataclasses and plain records"""

from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Literal, Type, TypeVar
from pydantic import TypeAdapter

T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(model: Type[T]) -> TypeAdapter:
    return TypeAdapter(model)


def load_entity(model: Type[T], data: Dict[str, Any]) -> T:
    """Validate a stored record (enum values, ISO dates, nested dicts) into a dataclass"""
    return _adapter(model).validate_python(data)


def dump_entity(entity: Any, mode: Literal["python", "json"] = "python") -> Dict[str, Any]:
    """
    Flatten a dataclass into a record.

    python mode keeps datetimes for SQL columns; enums become their values and
    sets become sorted lists in both modes.
    """
    data = _adapter(type(entity)).dump_python(entity, mode=mode)
    return {key: _plain(value) for key, value in data.items()}


def dump_changes(changes: Dict[str, Any], mode: Literal["python", "json"] = "python") -> Dict[str, Any]:
    """Flatten the values of a partial update"""
    result = {}
    for key, value in changes.items():
        if hasattr(value, "__dataclass_fields__"):
            value = dump_entity(value, mode=mode)
        elif mode == "json" and hasattr(value, "isoformat"):
            value = value.isoformat()
        result[key] = _plain(value)
    return result


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, tuple):
        return list(value)
    return value
