"""XML generation and import driven by the schema tree.

This module converts between:
* a nested value store (see :mod:`xsd_form_api.store`) plus a CDATA override map
* XML text suitable for download or persistence

Use cases:
        1. A client fills a form rendered from the schema tree
        2. The store is validated (:mod:`xsd_form_api.validation`)
        3. XML is generated here; previously generated XML can be imported back

Example round-trip::

        from xsd_form_api.serialization import XMLSerializer

        serializer = XMLSerializer(schema)
        xml_text = serializer.generate(store, cdata_overrides={"Invoice.Note": True})
        assert serializer.import_xml(xml_text) == store

Design notes:
* Absent and empty-string values are omitted entirely (no empty tags or
    attributes), so "never filled" and "cleared" produce the same output.
* Output is indented by two spaces per depth level and is stable, which makes
    it safe to diff in tests.
* Leaf text outside CDATA is written verbatim without XML escaping; values
    containing ``<`` or ``&`` should be sent with CDATA enabled.
* Empty entries of a repeating simple element are omitted too, so later
    entries shift down one index when the document is imported again.
* Import is best-effort: the first element anywhere in the document whose
    local name matches the schema root is used, and only direct children are
    matched by name below it.
* Imported plain text is trimmed; CDATA section content is kept verbatim.
    Import uses ``xml.dom.minidom`` because ElementTree merges CDATA sections
    into plain text.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union
from xml.dom import minidom
from xml.parsers.expat import ExpatError

from .errors import XMLImportError
from .models import SchemaNode
from .paths import Path, PathLike
from .store import ValueStore, get_value, is_empty

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
INDENT = "  "
CDATA_START = "<![CDATA["
CDATA_END = "]]>"

_CDATA_RE = re.compile(r"^\s*<!\[CDATA\[(.*?)\]\]>\s*$", re.DOTALL)

CdataOverrides = Mapping[str, bool]


def wrap_cdata(text: str) -> str:
    return f"{CDATA_START}{text}{CDATA_END}"


def unwrap_cdata(text: str) -> Optional[str]:
    """Return the content of a literal CDATA wrapper, or None if unwrapped."""
    match = _CDATA_RE.match(text)
    return match.group(1) if match else None


def is_cdata_enabled(
    path: PathLike, node: SchemaNode, overrides: Optional[CdataOverrides] = None
) -> bool:
    """User override for ``path`` when present, else the node's default."""
    if overrides:
        override = overrides.get(str(path))
        if override is not None:
            return bool(override)
    return bool(node.use_cdata)


def _is_present(value: Any) -> bool:
    return not is_empty(value)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class XMLSerializer:
    """Generate and import XML documents for one schema tree.

    Args:
        schema: Root schema node; its name is the document element name and
            the first segment of every path.
    """

    def __init__(self, schema: SchemaNode):
        self.schema = schema

    # ---------------- Generation ---------------- #

    def generate(
        self,
        store: Optional[ValueStore],
        cdata_overrides: Optional[CdataOverrides] = None,
    ) -> str:
        """Render the document for ``store``.

        The store is not validated here; invalid input still yields output
        following the omission rule. Call the validator first when strict
        guarantees are required.
        """
        root_path = Path.root(self.schema.name)
        root_value = get_value(store, root_path)
        if self.schema.is_complex and not isinstance(root_value, dict):
            root_value = {}
        lines: List[str] = [XML_DECLARATION]
        self._render(self.schema, root_value, 0, root_path, cdata_overrides or {}, lines)
        return "\n".join(lines) + "\n"

    def _render(
        self,
        node: SchemaNode,
        value: Any,
        depth: int,
        path: Path,
        overrides: CdataOverrides,
        lines: List[str],
    ) -> None:
        indent = INDENT * depth
        if not node.is_complex:
            lines.append(indent + self._leaf(node, value, path, overrides))
            return

        data = value if isinstance(value, dict) else {}
        opening = f"{indent}<{node.name}"
        for attr in node.attributes:
            attr_value = data.get(f"@{attr.name}")
            if _is_present(attr_value):
                opening += f' {attr.name}="{_format_value(attr_value)}"'
        lines.append(opening + ">")

        for child in node.children:
            child_path = path.child(child.name)
            child_value = data.get(child.name)
            if child.multiple:
                items = child_value if isinstance(child_value, list) else []
                for position, item in enumerate(items):
                    if not child.is_complex and not _is_present(item):
                        continue
                    self._render(
                        child, item, depth + 1, child_path.index(position), overrides, lines
                    )
            elif _is_present(child_value):
                self._render(child, child_value, depth + 1, child_path, overrides, lines)

        lines.append(f"{indent}</{node.name}>")

    def _leaf(
        self, node: SchemaNode, value: Any, path: Path, overrides: CdataOverrides
    ) -> str:
        text = _format_value(value) if value is not None else ""
        if is_cdata_enabled(path, node, overrides):
            text = wrap_cdata(text)
        return f"<{node.name}>{text}</{node.name}>"

    # ---------------- Import ---------------- #

    def import_xml(self, xml_text: Union[str, bytes]) -> ValueStore:
        """Rebuild a value store from XML text.

        Raises:
            XMLImportError: If the text is not well-formed XML or contains no
                element named like the schema root.
        """
        try:
            document = minidom.parseString(xml_text)
        except ExpatError as exc:
            raise XMLImportError(f"Invalid XML format: {exc}") from exc

        # getElementsByTagName("*") walks the whole document in order.
        root = next(
            (
                element
                for element in document.getElementsByTagName("*")
                if _local_name(element) == self.schema.name
            ),
            None,
        )
        if root is None:
            raise XMLImportError(
                "The uploaded XML structure doesn't match the current schema "
                f"(no '{self.schema.name}' element found)"
            )
        value = self._read(root, self.schema)
        logger.debug(f"Imported '{self.schema.name}' document")
        return {self.schema.name: value}

    def _read(self, element: minidom.Element, node: SchemaNode) -> Any:
        if not node.is_complex:
            return element_text(element)

        data: Dict[str, Any] = {}
        for attr in node.attributes:
            attr_value = _get_attribute(element, attr.name)
            if attr_value is not None:
                data[f"@{attr.name}"] = attr_value

        for child in node.children:
            matches = [
                sub
                for sub in element.childNodes
                if sub.nodeType == sub.ELEMENT_NODE and _local_name(sub) == child.name
            ]
            if not matches:
                continue
            if child.multiple:
                data[child.name] = [self._read(sub, child) for sub in matches]
            else:
                data[child.name] = self._read(matches[0], child)
        return data


def element_text(element: minidom.Element) -> str:
    """Text content of a leaf element.

    CDATA section content is returned verbatim and whitespace-only text
    around it is dropped. Plain text is trimmed, after removing a literal
    CDATA wrapper that arrived as escaped text.
    """
    nodes = list(_text_nodes(element))
    if any(text_node.nodeType == text_node.CDATA_SECTION_NODE for text_node in nodes):
        return "".join(
            text_node.data
            for text_node in nodes
            if text_node.nodeType == text_node.CDATA_SECTION_NODE
            or text_node.data.strip()
        )
    text = "".join(text_node.data for text_node in nodes)
    unwrapped = unwrap_cdata(text)
    if unwrapped is not None:
        return unwrapped
    return text.strip()


def _text_nodes(element: minidom.Element) -> Iterator[minidom.CharacterData]:
    for node in element.childNodes:
        if node.nodeType in (node.TEXT_NODE, node.CDATA_SECTION_NODE):
            yield node
        elif node.nodeType == node.ELEMENT_NODE:
            yield from _text_nodes(node)


def _get_attribute(element: minidom.Element, name: str) -> Optional[str]:
    if element.hasAttribute(name):
        return element.getAttribute(name)
    for attr in element.attributes.values():
        if attr.localName == name:
            return attr.value
    return None


def _local_name(element: minidom.Element) -> str:
    return element.localName or element.tagName.rsplit(":", 1)[-1]


def generate_xml(
    schema: SchemaNode,
    store: Optional[ValueStore],
    cdata_overrides: Optional[CdataOverrides] = None,
) -> str:
    """Render ``store`` as XML text for ``schema``.

    Example:
        from xsd_form_api.serialization import generate_xml

        xml_text = generate_xml(schema, {"Invoice": {"@id": "A1", "Total": "99.50"}})
    """
    return XMLSerializer(schema).generate(store, cdata_overrides)


def import_xml(schema: SchemaNode, xml_text: Union[str, bytes]) -> ValueStore:
    """Rebuild a value store for ``schema`` from XML text."""
    return XMLSerializer(schema).import_xml(xml_text)
