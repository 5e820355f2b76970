"""Field validation of a value store against the schema tree.

The validator walks the :class:`~xsd_form_api.models.SchemaNode` tree in
lockstep with the value store and returns a ``{path: message}`` mapping. It
never raises for invalid data: an empty mapping means the store is valid.

Leaf rules are applied in a fixed order and the first failing rule wins, so
each path carries at most one message:

1. required-and-empty (``None``, ``""`` or an empty list)
2. empty optional values are accepted without further checks
3. ``pattern`` (whole-string match)
4. ``minLength`` / ``maxLength``
5. ``fractionDigits`` (length of the part after the first ``.``)
6. ``minInclusive`` / ``maxInclusive`` (non-numeric text compares as NaN and
     therefore fails any bound that is present)
7. base type shape for the integer and decimal families

Enumerations are presentational (select widgets) and are not enforced here.

Example::

        from xsd_form_api.validation import validate

        errors = validate(schema, {"Invoice": {"Total": "abc"}})
        # {'Invoice.@id': 'id is required', 'Invoice.Total': 'Total must be a decimal number', ...}
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional, Union

from .models import DECIMAL_TYPES, INTEGER_TYPES, AttributeNode, SchemaNode
from .paths import Path
from .store import ValueStore, get_value, is_empty

MESSAGES = {
    "required": "{field} is required",
    "pattern": "{field} does not match the required pattern ({pattern})",
    "bad_pattern": "{field} has an invalid pattern ({pattern})",
    "min_length": "{field} must be at least {min} characters",
    "max_length": "{field} must be no more than {max} characters",
    "fraction_digits": "{field} can have at most {digits} decimal places",
    "min_value": "{field} must be at least {min}",
    "max_value": "{field} must be at most {max}",
    "integer": "{field} must be an integer",
    "decimal": "{field} must be a decimal number",
    "at_least_one": "At least one {field} is required",
}

_INTEGER_RE = re.compile(r"-?\d+")
_DECIMAL_RE = re.compile(r"-?\d*\.?\d*")
_NUMBER_RE = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*")

Field = Union[SchemaNode, AttributeNode]


def validate(schema: SchemaNode, store: Optional[ValueStore]) -> Dict[str, str]:
    """Validate ``store`` against ``schema`` starting at the root path.

    Returns:
        Mapping of path string to message; empty when everything is valid.
    """
    errors: Dict[str, str] = {}
    _validate_node(schema, Path.root(schema.name), store or {}, errors)
    return errors


def _validate_node(
    node: SchemaNode, path: Path, store: ValueStore, errors: Dict[str, str]
) -> None:
    if not node.is_complex:
        _record(errors, path, validate_value(get_value(store, path), node))
        return

    for attr in node.attributes:
        attr_path = path.attr(attr.name)
        _record(errors, attr_path, validate_value(get_value(store, attr_path), attr))

    for child in node.children:
        child_path = path.child(child.name)
        if child.multiple:
            items = get_value(store, child_path)
            if not isinstance(items, list):
                items = []
            if child.required and not items:
                errors[str(child_path)] = MESSAGES["at_least_one"].format(
                    field=child.name
                )
            for position in range(len(items)):
                _validate_node(child, child_path.index(position), store, errors)
        elif child.is_complex:
            _validate_node(child, child_path, store, errors)
        else:
            _record(
                errors, child_path, validate_value(get_value(store, child_path), child)
            )


def _record(errors: Dict[str, str], path: Path, message: Optional[str]) -> None:
    if message:
        errors[str(path)] = message


def validate_value(value: Any, field: Field) -> Optional[str]:
    """Return the first failing rule's message for one leaf value, if any."""
    name = field.name
    if is_empty(value):
        if field.required:
            return MESSAGES["required"].format(field=name)
        return None

    restrictions = field.restrictions
    if restrictions is not None:
        if restrictions.pattern and isinstance(value, str):
            try:
                matched = re.fullmatch(restrictions.pattern, value) is not None
            except re.error:
                return MESSAGES["bad_pattern"].format(
                    field=name, pattern=restrictions.pattern
                )
            if not matched:
                return MESSAGES["pattern"].format(
                    field=name, pattern=restrictions.pattern
                )

        if restrictions.min_length and isinstance(value, str):
            if len(value) < restrictions.min_length:
                return MESSAGES["min_length"].format(
                    field=name, min=restrictions.min_length
                )

        if restrictions.max_length and isinstance(value, str):
            if len(value) > restrictions.max_length:
                return MESSAGES["max_length"].format(
                    field=name, max=restrictions.max_length
                )

        if restrictions.fraction_digits is not None and isinstance(value, str):
            parts = value.split(".")
            if len(parts) > 1 and len(parts[1]) > restrictions.fraction_digits:
                return MESSAGES["fraction_digits"].format(
                    field=name, digits=restrictions.fraction_digits
                )

        if restrictions.min_inclusive is not None:
            if not to_number(value) >= restrictions.min_inclusive:
                return MESSAGES["min_value"].format(
                    field=name, min=format_number(restrictions.min_inclusive)
                )

        if restrictions.max_inclusive is not None:
            if not to_number(value) <= restrictions.max_inclusive:
                return MESSAGES["max_value"].format(
                    field=name, max=format_number(restrictions.max_inclusive)
                )

    base_type = field.base_type
    text = value if isinstance(value, str) else str(value)
    if base_type in INTEGER_TYPES and not _INTEGER_RE.fullmatch(text):
        return MESSAGES["integer"].format(field=name)
    if base_type in DECIMAL_TYPES and not _DECIMAL_RE.fullmatch(text):
        return MESSAGES["decimal"].format(field=name)
    return None


def to_number(value: Any) -> float:
    """Convert a leaf value to a number, NaN when it is not numeric text."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMBER_RE.fullmatch(value):
        return float(value)
    return math.nan


def format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return str(value)
