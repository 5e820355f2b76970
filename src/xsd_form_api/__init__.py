"""XSD Form API
================

Toolkit and service layer that turns an XSD document into an editable form
model: a tree of :class:`~xsd_form_api.models.SchemaNode` objects, a nested
value store addressed by dotted paths, validation against the schema's
facets, and XML generation and import with per-field CDATA control.

Key capabilities
----------------
- Parse an XSD subset (element, complexType, simpleType, sequence,
  attribute, restriction facets, occurrence bounds) into a schema tree.
- Address values with paths such as ``Invoice.Items.0.Sku`` or ``Invoice.@id``.
- Validate a value store and report one message per failing path.
- Generate indented XML, wrapping selected leaves in CDATA, and import XML
  back into a value store.
- CSV templates and row conversion for repeating sections.
- In-process and optional Redis-backed caching of parsed trees.

Minimal quick start
-------------------
>>> from xsd_form_api import FormSession, parse_xsd
>>> session = FormSession(parse_xsd("invoice.xsd"))
>>> session.update("Invoice.@id", "A1")
>>> session.update("Invoice.Total", "99.50")
>>> print(session.generate_xml(strict=False))

FastAPI application instance (for ASGI servers like uvicorn):
>>> from xsd_form_api.app import app  # noqa: F401
"""

__version__ = "0.1.0"

from .cache import get_cached_parser
from .models import AttributeNode, SchemaNode
from .serialization import generate_xml, import_xml
from .session import FormSession
from .validation import validate
from .xsd_parser import parse_xsd, parse_xsd_string

__all__ = [
    "AttributeNode",
    "FormSession",
    "SchemaNode",
    "generate_xml",
    "get_cached_parser",
    "import_xml",
    "parse_xsd",
    "parse_xsd_string",
    "validate",
]
