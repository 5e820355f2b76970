"""Editing session that threads form state through the engine.

A :class:`FormSession` owns the three mutable pieces of one form: the value
store, the CDATA override map and the latest validation errors. All engine
functions it calls are pure; the session only decides which result replaces
which piece of state. Sessions are independent of one another, so separate
sessions can be used concurrently as long as each is used from one thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import FormValidationError
from .models import AttributeNode, SchemaNode
from .paths import Attr, Index, Name, Path, PathLike
from .serialization import XMLSerializer, is_cdata_enabled
from .store import ValueStore, get_value, is_empty, remove_index, set_value
from .validation import validate

logger = logging.getLogger(__name__)


@dataclass
class FormSession:
    """Form state for one schema.

    Attributes:
        schema: Root schema node (immutable for the session).
        values: Nested value store.
        cdata_overrides: ``{path: bool}`` user overrides of ``use_cdata``.
        errors: ``{path: message}`` from the last validation run.
    """

    schema: SchemaNode
    values: ValueStore = field(default_factory=dict)
    cdata_overrides: Dict[str, bool] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._serializer = XMLSerializer(self.schema)

    def node_at(self, path: PathLike) -> Optional[Union[SchemaNode, AttributeNode]]:
        """Resolve the schema node addressed by ``path`` (indices are skipped)."""
        segments = Path.parse(path).segments
        if not segments or segments[0] != Name(self.schema.name):
            return None
        current: Union[SchemaNode, AttributeNode] = self.schema
        for segment in segments[1:]:
            if isinstance(segment, Index):
                continue
            if not isinstance(current, SchemaNode):
                return None
            if isinstance(segment, Attr):
                found: Optional[Union[SchemaNode, AttributeNode]] = current.attribute(
                    segment.name
                )
            else:
                found = current.child(segment.name)
            if found is None:
                return None
            current = found
        return current

    def get(self, path: PathLike) -> Any:
        return get_value(self.values, path)

    def update(self, path: PathLike, value: Any) -> None:
        """Write one value and drop any error recorded at that path."""
        self.values = set_value(self.values, path, value)
        self.errors.pop(str(Path.parse(path)), None)

    def add_array_item(self, path: PathLike) -> int:
        """Append an empty entry to the repeating element at ``path``.

        Returns:
            Index of the new entry.
        """
        node = self.node_at(path)
        items = self.get(path)
        items = list(items) if isinstance(items, list) else []
        new_item: Any = {} if isinstance(node, SchemaNode) and node.is_complex else ""
        self.update(path, items + [new_item])
        return len(items)

    def remove_array_item(self, path: PathLike, index: int) -> None:
        self.values = remove_index(self.values, path, index)
        self.errors.pop(str(Path.parse(path)), None)

    def is_cdata_enabled(self, path: PathLike) -> bool:
        node = self.node_at(path)
        if not isinstance(node, SchemaNode):
            return False
        return is_cdata_enabled(path, node, self.cdata_overrides)

    def toggle_cdata(self, path: PathLike) -> bool:
        """Flip the effective CDATA setting for ``path`` and return it."""
        key = str(Path.parse(path))
        enabled = not self.is_cdata_enabled(key)
        self.cdata_overrides[key] = enabled
        return enabled

    def validate(self) -> bool:
        self.errors = validate(self.schema, self.values)
        if self.errors:
            logger.debug(f"Validation found {len(self.errors)} error(s)")
        return not self.errors

    def generate_xml(self, strict: bool = True) -> str:
        """Render the current values as XML.

        Args:
            strict: Validate first and raise :class:`FormValidationError` if
                any error is found. With ``strict=False`` a best-effort
                document is produced from whatever values are present.
        """
        if strict and not self.validate():
            raise FormValidationError(self.errors)
        return self._serializer.generate(self.values, self.cdata_overrides)

    def import_xml(self, xml_text: Union[str, bytes]) -> None:
        """Replace the values with those read from ``xml_text``.

        The session is untouched when the import fails.
        """
        values = self._serializer.import_xml(xml_text)
        self.values = values
        self.errors = {}

    def apply_bulk_import(
        self, path: PathLike, items: List[Any], cdata_columns: Iterable[str] = ()
    ) -> None:
        """Replace the array at ``path`` and force CDATA on the given columns."""
        self.update(path, list(items))
        base = Path.parse(path)
        columns = list(cdata_columns)
        for position in range(len(items)):
            for column in columns:
                self.cdata_overrides[f"{base.index(position)}.{column}"] = True

    def clear(self) -> None:
        self.values = {}
        self.cdata_overrides = {}
        self.errors = {}

    def has_data(self) -> bool:
        return any(not is_empty(value) for value in self.values.values())
