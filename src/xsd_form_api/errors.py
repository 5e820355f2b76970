"""Exception hierarchy shared by the schema-tree engine and its collaborators.

Parser and importer failures are terminal for the one call that raised them.
Validation problems are never raised by the validator itself; they are returned
as a ``{path: message}`` mapping. :class:`FormValidationError` only exists so
that callers asking for *strict* generation can abort with that mapping.
"""

from __future__ import annotations

from typing import Dict, Optional


class XSDFormError(Exception):
    """Base class for every error raised by :mod:`xsd_form_api`."""


class SchemaParseError(XSDFormError, ValueError):
    """Raised when XSD text is malformed or outside the supported subset."""


class XMLImportError(XSDFormError, ValueError):
    """Raised when instance XML cannot be mapped back onto a schema tree."""


class FormValidationError(XSDFormError):
    """Raised by strict generation when the value store does not validate.

    Attributes:
        errors: Mapping of path string to human-readable message.
    """

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(
            message or f"Form has {len(self.errors)} validation error(s)"
        )


class BulkImportError(XSDFormError, ValueError):
    """Raised when tabular bulk data cannot be read."""


class SchemaStorageError(XSDFormError):
    """Base class for saved-schema storage failures."""


class SchemaNotFoundError(SchemaStorageError, FileNotFoundError):
    pass


class SchemaExistsError(SchemaStorageError, FileExistsError):
    pass


class InvalidSchemaNameError(SchemaStorageError, ValueError):
    pass
