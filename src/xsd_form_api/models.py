"""Core data structures for the schema tree produced from an XSD.

These lightweight dataclasses are produced by the XSD parser and consumed by
every other layer (path resolution, validation, XML generation and import,
bulk CSV helpers, REST endpoints). They intentionally avoid framework
dependencies so they can be pickled, cached, or serialized to JSON easily.

Overview:
        * ``SchemaNode`` represents one XSD ``element``. Its ``kind`` is exactly
            one of :class:`ComplexType` (attributes + ordered children) or
            :class:`SimpleType` (a primitive base type + restrictions).
        * ``AttributeNode`` represents one ``attribute`` declared directly on a
            complex type.
        * ``Restrictions`` collects the facets the engine understands.

Typical construction (simplified)::

        from xsd_form_api.models import (
                ComplexType, Occurs, Restrictions, SchemaNode, SimpleType,
        )

        sku = SchemaNode(
                name="Sku",
                kind=SimpleType(base_type="string", restrictions=Restrictions(max_length=12)),
        )
        items = SchemaNode(
                name="Items",
                occurs=Occurs(min=1, max=None),
                kind=ComplexType(children=[sku]),
        )

        items.multiple          # True, max is unbounded
        [n.name for n in items.iter_nodes()]   # ['Items', 'Sku']

Design notes:
        * Children and attributes are plain lists in document order; that order
            drives both form rendering and element emission order.
        * ``Occurs.max`` is ``None`` for ``unbounded``.
        * The tree is treated as immutable once parsing completes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

INTEGER_TYPES = frozenset(
    {
        "integer",
        "int",
        "long",
        "short",
        "byte",
        "nonNegativeInteger",
        "positiveInteger",
        "nonPositiveInteger",
        "negativeInteger",
        "unsignedLong",
        "unsignedInt",
        "unsignedShort",
        "unsignedByte",
    }
)
DECIMAL_TYPES = frozenset({"decimal", "float", "double"})

CDATA_PATTERN = ".*[^\\s].*"


@dataclass
class Occurs:
    """Occurrence bounds of an element (``max=None`` means unbounded)."""

    min: int = 1
    max: Optional[int] = 1

    @property
    def unbounded(self) -> bool:
        return self.max is None

    @property
    def required(self) -> bool:
        return self.min != 0

    @property
    def multiple(self) -> bool:
        return self.max is None or self.max > 1

    def to_dict(self) -> dict:
        return {"min": self.min, "max": "unbounded" if self.max is None else self.max}


@dataclass
class Restrictions:
    """Facets of an ``xs:restriction`` understood by the validator.

    Attributes:
        pattern: Regular expression the whole value must match.
        min_length: Minimum string length.
        max_length: Maximum string length.
        fraction_digits: Maximum digits after the decimal point.
        min_inclusive: Lower numeric bound (inclusive).
        max_inclusive: Upper numeric bound (inclusive).
        enumeration: Allowed values in document order (used for select widgets).
    """

    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    fraction_digits: Optional[int] = None
    min_inclusive: Optional[float] = None
    max_inclusive: Optional[float] = None
    enumeration: Optional[List[str]] = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.__dict__.values())

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "fraction_digits": self.fraction_digits,
            "min_inclusive": self.min_inclusive,
            "max_inclusive": self.max_inclusive,
            "enumeration": list(self.enumeration) if self.enumeration is not None else None,
        }


def input_type_for(base_type: Optional[str]) -> str:
    """Return the HTML input type hint for an XSD primitive type."""
    if base_type in INTEGER_TYPES or base_type in DECIMAL_TYPES:
        return "number"
    if base_type == "date":
        return "date"
    if base_type == "dateTime":
        return "datetime-local"
    if base_type == "boolean":
        return "checkbox"
    return "text"


@dataclass
class AttributeNode:
    """An attribute declared directly on a complex type."""

    name: str
    base_type: str = "string"
    required: bool = False
    restrictions: Optional[Restrictions] = None

    @property
    def input_type(self) -> str:
        return input_type_for(self.base_type)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "base_type": self.base_type,
            "required": self.required,
            "input_type": self.input_type,
            "restrictions": self.restrictions.to_dict() if self.restrictions else None,
        }


@dataclass
class ComplexType:
    """Element content made of attributes and an ordered child sequence."""

    attributes: List[AttributeNode] = field(default_factory=list)
    children: List["SchemaNode"] = field(default_factory=list)


@dataclass
class SimpleType:
    """Element content holding a single scalar value."""

    base_type: str = "string"
    restrictions: Restrictions = field(default_factory=Restrictions)


@dataclass
class SchemaNode:
    """One XSD element along with its occurrence bounds and content model.

    Attributes:
        name: Local element name, unique among its siblings.
        kind: Either :class:`ComplexType` or :class:`SimpleType`.
        occurs: Occurrence bounds (``minOccurs``/``maxOccurs``).
        use_cdata: Default CDATA wrapping for the element text.
        type_name: Raw ``type`` attribute from the XSD, if any.

    Example:
        >>> node = SchemaNode(name="Total", kind=SimpleType(base_type="decimal"))
        >>> node.required, node.multiple, node.input_type
        (True, False, 'number')
    """

    name: str
    kind: Union[ComplexType, SimpleType] = field(default_factory=SimpleType)
    occurs: Occurs = field(default_factory=Occurs)
    use_cdata: bool = False
    type_name: Optional[str] = None

    @property
    def required(self) -> bool:
        return self.occurs.required

    @property
    def multiple(self) -> bool:
        return self.occurs.multiple

    @property
    def is_complex(self) -> bool:
        return isinstance(self.kind, ComplexType)

    @property
    def children(self) -> List["SchemaNode"]:
        if isinstance(self.kind, ComplexType):
            return self.kind.children
        return []

    @property
    def attributes(self) -> List[AttributeNode]:
        if isinstance(self.kind, ComplexType):
            return self.kind.attributes
        return []

    @property
    def base_type(self) -> Optional[str]:
        if isinstance(self.kind, SimpleType):
            return self.kind.base_type
        return None

    @property
    def restrictions(self) -> Optional[Restrictions]:
        if isinstance(self.kind, SimpleType):
            return self.kind.restrictions
        return None

    @property
    def input_type(self) -> str:
        return input_type_for(self.base_type)

    @property
    def step(self) -> Optional[str]:
        """Numeric input step derived from the base type and fraction digits."""
        if self.base_type in INTEGER_TYPES:
            return "1"
        if self.base_type in DECIMAL_TYPES:
            digits = self.restrictions.fraction_digits if self.restrictions else None
            if digits:
                return "0." + "0" * (digits - 1) + "1"
            return "0.01"
        return None

    @property
    def placeholder(self) -> Optional[str]:
        # Digit-and-dash patterns are custom date formats typed as text.
        pattern = self.restrictions.pattern if self.restrictions else None
        if pattern and "[0-9]" in pattern and "-" in pattern:
            return "DD-MM-YYYY"
        return None

    def child(self, name: str) -> Optional["SchemaNode"]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def attribute(self, name: str) -> Optional[AttributeNode]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def iter_nodes(self) -> "List[SchemaNode]":
        """Return a depth-first list of this node and all descendants.

        Example:
            >>> leaf = SchemaNode(name="B")
            >>> parent = SchemaNode(name="A", kind=ComplexType(children=[leaf]))
            >>> [n.name for n in parent.iter_nodes()]
            ['A', 'B']
        """
        nodes: List[SchemaNode] = [self]
        for child in self.children:
            nodes.extend(child.iter_nodes())
        return nodes

    def to_dict(self) -> Dict[str, Any]:
        """Convert the node (recursively) into a JSON-serializable dictionary."""
        data: Dict[str, Any] = {
            "name": self.name,
            "kind": "complex" if self.is_complex else "simple",
            "occurs": self.occurs.to_dict(),
            "required": self.required,
            "multiple": self.multiple,
            "type_name": self.type_name,
            "use_cdata": self.use_cdata,
            "input_type": self.input_type,
        }
        if isinstance(self.kind, ComplexType):
            data["attributes"] = [attr.to_dict() for attr in self.kind.attributes]
            data["children"] = [child.to_dict() for child in self.kind.children]
        else:
            data["base_type"] = self.kind.base_type
            data["restrictions"] = self.kind.restrictions.to_dict()
            data["step"] = self.step
            data["placeholder"] = self.placeholder
        return data
