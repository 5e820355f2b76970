"""Nested value store addressed by :class:`~xsd_form_api.paths.Path`.

The store is a plain nested structure: dictionaries for elements (attribute
values live under ``@name`` keys) and lists for repeating elements. Writes
never mutate their input; :func:`set_value` returns a new store that shares
untouched branches with the old one.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .paths import Index, Path, PathLike, Segment

ValueStore = Dict[str, Any]


def is_empty(value: Any) -> bool:
    """Return True for ``None``, ``""`` and empty lists."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, list):
        return len(value) == 0
    return False


def get_value(store: Optional[ValueStore], path: PathLike) -> Any:
    """Descend ``store`` along ``path``; ``None`` when any level is missing."""
    current: Any = store
    for segment in Path.parse(path).segments:
        if current is None:
            return None
        if isinstance(segment, Index):
            if isinstance(current, list):
                if 0 <= segment.index < len(current):
                    current = current[segment.index]
                else:
                    return None
            elif isinstance(current, dict):
                current = current.get(str(segment.index))
            else:
                return None
        elif isinstance(current, dict):
            current = current.get(str(segment))
        else:
            return None
    return current


def set_value(store: Optional[ValueStore], path: PathLike, value: Any) -> ValueStore:
    """Return a copy of ``store`` with ``value`` written at ``path``.

    Intermediate dictionaries and lists are created as needed. An index
    segment may address an existing position or the position just past the
    end of the list (append); anything further raises :class:`IndexError`.
    """
    parsed = Path.parse(path)
    if not parsed:
        raise ValueError("Cannot set a value at an empty path")
    return _assign(store if store is not None else {}, parsed.segments, value)


def remove_index(store: Optional[ValueStore], path: PathLike, index: int) -> ValueStore:
    """Return a copy of ``store`` with one entry removed from the list at ``path``."""
    items = get_value(store, path)
    if not isinstance(items, list):
        items = []
    return set_value(store, path, [item for i, item in enumerate(items) if i != index])


def _assign(container: Any, segments: Sequence[Segment], value: Any) -> Any:
    head, rest = segments[0], segments[1:]
    if isinstance(head, Index):
        items: List[Any] = list(container) if isinstance(container, list) else []
        if head.index > len(items):
            raise IndexError(
                f"Cannot write index {head.index} of a list with {len(items)} item(s)"
            )
        current = items[head.index] if head.index < len(items) else None
        new = value if not rest else _assign(_container_for(current, rest[0]), rest, value)
        if head.index == len(items):
            items.append(new)
        else:
            items[head.index] = new
        return items

    mapping: Dict[str, Any] = dict(container) if isinstance(container, dict) else {}
    key = str(head)
    if rest:
        mapping[key] = _assign(_container_for(mapping.get(key), rest[0]), rest, value)
    else:
        mapping[key] = value
    return mapping


def _container_for(current: Any, next_segment: Segment) -> Any:
    if isinstance(next_segment, Index):
        return current if isinstance(current, list) else []
    return current if isinstance(current, dict) else {}


def nest_flat(flat: Dict[str, Any]) -> ValueStore:
    """Build a nested store from a ``{path: value}`` mapping."""
    store: ValueStore = {}
    for path, value in flat.items():
        store = set_value(store, path, value)
    return store


def flatten_values(value: Any, prefix: str = "") -> Dict[str, Any]:
    """Flatten a store into ``{path: leaf}`` including array indices."""
    flat: Dict[str, Any] = {}
    if isinstance(value, dict):
        for key, child in value.items():
            flat.update(flatten_values(child, f"{prefix}.{key}" if prefix else key))
    elif isinstance(value, list):
        for position, child in enumerate(value):
            flat.update(
                flatten_values(child, f"{prefix}.{position}" if prefix else str(position))
            )
    elif prefix:
        flat[prefix] = value
    return flat
