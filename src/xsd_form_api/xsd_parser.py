"""Utilities to parse XSD definitions into a typed schema tree.

This module converts a restricted subset of XML Schema (XSD) into the
:class:`~xsd_form_api.models.SchemaNode` tree used throughout the package
(validation, XML generation/import, bulk helpers, REST endpoints).

Supported subset:
* The first top-level ``element`` of the ``schema`` is the document root.
* Inline ``complexType`` with direct ``attribute`` declarations and one
    ``sequence`` of direct ``element`` children (document order preserved).
* Inline ``simpleType`` with a ``restriction`` carrying ``pattern``,
    ``minLength``, ``maxLength``, ``fractionDigits``, ``minInclusive``,
    ``maxInclusive`` and ``enumeration`` facets.
* Bare ``type`` attributes (``xs:decimal``) become simple types whose base is
    the local part of the type name.
* ``element ref`` pointing at another top-level element.

Not modeled: namespaces, imports, ``choice``/``all`` groups, abstract types,
substitution groups and inheritance through ``complexContent``. Named global
types are only resolved when ``ParserConfig.resolve_named_types`` is set.

Typical usage:
        from xsd_form_api.xsd_parser import parse_xsd_string

        root = parse_xsd_string(xsd_text)
        print(root.name)                    # Invoice
        for node in root.iter_nodes():
                print(node.name, node.base_type, node.use_cdata)

Notes:
* Names are matched by local name; ``xs:element`` and ``element`` are the same.
* Numeric facet or occurrence values that do not parse raise
    :class:`~xsd_form_api.errors.SchemaParseError` naming the offending attribute.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from .errors import SchemaParseError
from .models import (
    CDATA_PATTERN,
    AttributeNode,
    ComplexType,
    Occurs,
    Restrictions,
    SchemaNode,
    SimpleType,
)

logger = logging.getLogger(__name__)

UNBOUNDED = "unbounded"


@dataclass
class ParserConfig:
    """Configuration for XSD parsing behavior.

    Args:
        max_depth: Hard limit on element nesting depth. Recursive schemas are
            unsupported and fail once this depth is exceeded.
        resolve_named_types: When True, a ``type`` attribute naming a global
            ``complexType``/``simpleType`` is expanded instead of being taken
            as a primitive base type.
        strict_names: When True, duplicate sibling element or attribute names
            raise :class:`SchemaParseError`.
    """

    max_depth: int = 32
    resolve_named_types: bool = False
    strict_names: bool = True


class XSDParser:
    """Parse XSD text into a tree of :class:`SchemaNode`.

    Example:
        from xsd_form_api.xsd_parser import XSDParser, ParserConfig

        parser = XSDParser(xsd_text, config=ParserConfig(resolve_named_types=True))
        root = parser.parse()
        items = root.child("Items")
        if items is not None and items.multiple:
            print("Items is a repeating section")
    """

    def __init__(
        self, xsd_text: Union[str, bytes], config: Optional[ParserConfig] = None
    ) -> None:
        self.config = config or ParserConfig()
        try:
            self.root = ET.fromstring(xsd_text)
        except ET.ParseError as exc:
            raise SchemaParseError(f"Invalid XML/XSD format: {exc}") from exc
        self.schema = self._find_schema()
        self.elements: Dict[str, ET.Element] = {}
        self.simple_types: Dict[str, ET.Element] = {}
        self.complex_types: Dict[str, ET.Element] = {}
        self._index_globals()

    @classmethod
    def from_path(
        cls, xsd_path: Path, config: Optional[ParserConfig] = None
    ) -> "XSDParser":
        return cls(Path(xsd_path).read_bytes(), config=config)

    def parse(self) -> SchemaNode:
        """Parse the schema and return the tree rooted at its first element.

        Raises:
            SchemaParseError: If the schema declares no top-level element or
                any declaration is outside the supported subset.
        """
        root_element = next(_children(self.schema, "element"), None)
        if root_element is None:
            raise SchemaParseError("No root element found in the schema")
        node = self._build_node(root_element, depth=0, ref_chain=set())
        logger.debug(
            f"Parsed schema root '{node.name}' with {len(node.iter_nodes())} elements"
        )
        return node

    # ---------------- Internal helpers ---------------- #

    def _find_schema(self) -> ET.Element:
        if _local_name(self.root.tag) == "schema":
            return self.root
        for element in self.root.iter():
            if _local_name(element.tag) == "schema":
                return element
        raise SchemaParseError("No schema element found in the XSD file")

    def _index_globals(self) -> None:
        for node in self.schema:
            if not isinstance(node.tag, str):
                continue
            name = node.get("name")
            if not name:
                continue
            tag = _local_name(node.tag)
            if tag == "element":
                self.elements.setdefault(name, node)
            elif tag == "simpleType":
                self.simple_types[name] = node
            elif tag == "complexType":
                self.complex_types[name] = node

    def _build_node(
        self, element: ET.Element, depth: int, ref_chain: Set[str]
    ) -> SchemaNode:
        """Build a :class:`SchemaNode` for one ``element`` declaration.

        This is the core recursive routine. It resolves references, reads the
        occurrence bounds and dispatches on the nested content model.
        """
        if depth > self.config.max_depth:
            raise SchemaParseError(
                f"Maximum nesting depth ({self.config.max_depth}) exceeded; "
                "recursive schemas are not supported"
            )

        occurs = _parse_occurs(element)
        ref = element.get("ref")
        if ref:
            ref_name = _local_name(ref)
            if ref_name in ref_chain:
                raise SchemaParseError(f"Recursive element reference '{ref_name}'")
            target = self.elements.get(ref_name)
            if target is None:
                raise SchemaParseError(f"Referenced element '{ref_name}' not found")
            # Occurrence bounds come from the referencing declaration.
            node = self._build_node(target, depth, ref_chain | {ref_name})
            node.occurs = occurs
            return node

        name = element.get("name")
        if not name:
            raise SchemaParseError("Encountered anonymous element in XSD")

        type_name = element.get("type")
        complex_type = _first_child(element, "complexType")
        simple_type = _first_child(element, "simpleType")

        named_complex = self._named_complex(type_name) if type_name else None
        named_simple = self._named_simple(type_name) if type_name else None

        kind: Union[ComplexType, SimpleType]
        if complex_type is not None:
            kind = self._build_complex(complex_type, name, depth, ref_chain)
        elif simple_type is not None:
            kind = self._build_simple(simple_type)
        elif named_complex is not None:
            kind = self._build_complex(named_complex, name, depth, ref_chain)
        elif named_simple is not None:
            kind = self._build_simple(named_simple)
        elif type_name:
            kind = SimpleType(base_type=_local_name(type_name) or "string")
        else:
            kind = SimpleType(base_type="string")

        return SchemaNode(
            name=name,
            kind=kind,
            occurs=occurs,
            use_cdata=_wants_cdata(kind),
            type_name=type_name,
        )

    def _build_complex(
        self, node: ET.Element, owner: str, depth: int, ref_chain: Set[str]
    ) -> ComplexType:
        attributes: List[AttributeNode] = []
        for attr in _children(node, "attribute"):
            attribute = self._build_attribute(attr)
            if self.config.strict_names and any(
                a.name == attribute.name for a in attributes
            ):
                raise SchemaParseError(
                    f"Duplicate attribute '{attribute.name}' on element '{owner}'"
                )
            attributes.append(attribute)

        children: List[SchemaNode] = []
        sequence = _first_child(node, "sequence")
        if sequence is not None:
            for child in _children(sequence, "element"):
                child_node = self._build_node(child, depth + 1, ref_chain)
                if self.config.strict_names and any(
                    c.name == child_node.name for c in children
                ):
                    raise SchemaParseError(
                        f"Duplicate child element '{child_node.name}' in '{owner}'"
                    )
                children.append(child_node)
        return ComplexType(attributes=attributes, children=children)

    def _build_simple(self, node: ET.Element) -> SimpleType:
        base, restrictions = self._resolve_simple(node, seen=set())
        return SimpleType(base_type=base, restrictions=restrictions)

    def _resolve_simple(
        self, node: ET.Element, seen: Set[str]
    ) -> Tuple[str, Restrictions]:
        """Return base type and facets of a ``simpleType`` definition.

        With named type resolution enabled, a restriction whose base is another
        global simple type inherits that type's facets; facets declared on the
        derived type win.
        """
        restriction = _first_child(node, "restriction")
        if restriction is None:
            # list/union content collapses to plain text
            return "string", Restrictions()
        raw_base = restriction.get("base") or "xs:string"
        base = _local_name(raw_base) or "string"
        restrictions = _parse_restrictions(restriction)

        parent = self._named_simple(raw_base)
        if parent is not None and base not in seen:
            parent_base, parent_restrictions = self._resolve_simple(
                parent, seen | {base}
            )
            for key, value in restrictions.__dict__.items():
                if value is not None:
                    setattr(parent_restrictions, key, value)
            return parent_base, parent_restrictions
        return base, restrictions

    def _build_attribute(self, attr: ET.Element) -> AttributeNode:
        name = attr.get("name")
        if not name:
            raise SchemaParseError("Encountered anonymous attribute in XSD")
        type_name = attr.get("type") or "xs:string"
        simple_type = _first_child(attr, "simpleType")
        named_simple = self._named_simple(type_name)
        restrictions: Optional[Restrictions] = None
        if simple_type is not None and _first_child(simple_type, "restriction") is not None:
            base, restrictions = self._resolve_simple(simple_type, seen=set())
        elif named_simple is not None:
            base, restrictions = self._resolve_simple(named_simple, seen=set())
        else:
            base = _local_name(type_name) or "string"
        return AttributeNode(
            name=name,
            base_type=base,
            required=attr.get("use", "optional") == "required",
            restrictions=restrictions,
        )

    def _named_complex(self, type_name: str) -> Optional[ET.Element]:
        if not self.config.resolve_named_types:
            return None
        return self.complex_types.get(_local_name(type_name) or "")

    def _named_simple(self, type_name: str) -> Optional[ET.Element]:
        if not self.config.resolve_named_types:
            return None
        return self.simple_types.get(_local_name(type_name) or "")


def _parse_restrictions(restriction: ET.Element) -> Restrictions:
    restrictions = Restrictions()
    for facet in restriction:
        if not isinstance(facet.tag, str):
            continue
        tag = _local_name(facet.tag)
        value = facet.get("value")
        if value is None:
            continue
        if tag == "pattern":
            restrictions.pattern = value
        elif tag == "minLength":
            restrictions.min_length = _parse_int(value, tag)
        elif tag == "maxLength":
            restrictions.max_length = _parse_int(value, tag)
        elif tag == "fractionDigits":
            restrictions.fraction_digits = _parse_int(value, tag)
        elif tag == "minInclusive":
            restrictions.min_inclusive = _parse_float(value, tag)
        elif tag == "maxInclusive":
            restrictions.max_inclusive = _parse_float(value, tag)
        elif tag == "enumeration":
            if restrictions.enumeration is None:
                restrictions.enumeration = []
            restrictions.enumeration.append(value)
    return restrictions


def _wants_cdata(kind: Union[ComplexType, SimpleType]) -> bool:
    # Free-text fields that must not be blank default to CDATA output.
    if not isinstance(kind, SimpleType):
        return False
    return (
        kind.base_type == "string"
        and kind.restrictions.pattern == CDATA_PATTERN
        and kind.restrictions.min_length == 1
    )


def _parse_occurs(element: ET.Element) -> Occurs:
    raw_min = element.get("minOccurs", "1")
    raw_max = element.get("maxOccurs", "1")
    min_occurs = _parse_int(raw_min, "minOccurs")
    max_occurs = None if raw_max.strip() == UNBOUNDED else _parse_int(raw_max, "maxOccurs")
    if min_occurs < 0 or (max_occurs is not None and max_occurs < 0):
        raise SchemaParseError(
            f"Negative occurrence bound on element '{element.get('name') or element.get('ref')}'"
        )
    if max_occurs is not None and min_occurs > max_occurs:
        raise SchemaParseError(
            f"minOccurs ({min_occurs}) exceeds maxOccurs ({max_occurs}) on element "
            f"'{element.get('name') or element.get('ref')}'"
        )
    return Occurs(min=min_occurs, max=max_occurs)


def _parse_int(value: str, attribute: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise SchemaParseError(
            f"Invalid integer value '{value}' for {attribute}"
        ) from None


def _parse_float(value: str, attribute: str) -> float:
    try:
        return float(value.strip())
    except ValueError:
        raise SchemaParseError(
            f"Invalid numeric value '{value}' for {attribute}"
        ) from None


def _children(element: ET.Element, local: str) -> Iterator[ET.Element]:
    for child in element:
        if isinstance(child.tag, str) and _local_name(child.tag) == local:
            yield child


def _first_child(element: ET.Element, local: str) -> Optional[ET.Element]:
    return next(_children(element, local), None)


def _local_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if value.startswith("{"):
        value = value.split("}", 1)[1]
    if ":" in value:
        return value.split(":", 1)[1]
    return value


def parse_xsd_string(
    xsd_text: Union[str, bytes], config: Optional[ParserConfig] = None
) -> SchemaNode:
    """Parse XSD text and return the schema tree.

    This is a convenience wrapper around :class:`XSDParser` for callers that
    already hold the schema in memory (uploads, saved-schema storage).

    Args:
        xsd_text: Complete XSD document.
        config: Optional :class:`ParserConfig` instance to adjust behavior.

    Returns:
        Root :class:`SchemaNode` for the parsed schema.

    Raises:
        SchemaParseError: On malformed XML, a missing ``schema`` or root
            ``element``, or an unparsable numeric attribute.

    Example:
        from xsd_form_api.xsd_parser import parse_xsd_string

        root = parse_xsd_string(Path("invoice.xsd").read_text())
        print("Top-level children:", [c.name for c in root.children])
    """
    return XSDParser(xsd_text, config=config).parse()


def parse_xsd(xsd_path: Path, config: Optional[ParserConfig] = None) -> SchemaNode:
    """Parse an XSD file and return the schema tree."""
    return XSDParser.from_path(Path(xsd_path), config=config).parse()
