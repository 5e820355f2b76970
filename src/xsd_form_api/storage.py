"""File-system storage for saved XSD schemas.

Schemas are kept as individual ``.xsd``/``.xml`` files in one directory. The
engine never touches storage itself; the REST layer and the CLI read schema
text from here and hand it to the parser.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Union

from .errors import InvalidSchemaNameError, SchemaExistsError, SchemaNotFoundError

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".xsd", ".xml")


class SchemaStorage:
    """Store, list, rename and delete schema files in ``directory``.

    Example:
        storage = SchemaStorage(Path("saved-schemas"))
        storage.write_schema("invoice.xsd", xsd_text)
        storage.rename_schema("invoice.xsd", "invoice_v2")   # -> invoice_v2.xsd
        [entry["name"] for entry in storage.list_schemas()]   # ['invoice_v2']
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, filename: str) -> Path:
        if (
            not filename
            or "/" in filename
            or "\\" in filename
            or filename in (".", "..")
            or filename.startswith(".")
        ):
            raise InvalidSchemaNameError(f"Invalid schema filename: {filename!r}")
        if not filename.endswith(SCHEMA_EXTENSIONS):
            raise InvalidSchemaNameError(
                f"Schema filename must end with .xsd or .xml: {filename!r}"
            )
        return self.directory / filename

    def list_schemas(self) -> List[Dict[str, Union[str, int]]]:
        """Return ``{filename, name, size}`` for every stored schema, sorted by name."""
        if not self.directory.exists():
            return []
        entries: List[Dict[str, Union[str, int]]] = []
        for path in sorted(self.directory.iterdir()):
            if path.is_file() and path.suffix in SCHEMA_EXTENSIONS:
                entries.append(
                    {
                        "filename": path.name,
                        "name": path.stem,
                        "size": len(path.read_bytes()),
                    }
                )
        return entries

    def read_schema(self, filename: str) -> str:
        path = self._path_for(filename)
        if not path.is_file():
            raise SchemaNotFoundError(f"Schema file not found: {filename}")
        return path.read_text(encoding="utf-8")

    def write_schema(self, filename: str, content: str) -> str:
        """Write (or overwrite) a schema file and return its filename."""
        path = self._path_for(filename)
        self._ensure_directory()
        path.write_text(content, encoding="utf-8")
        logger.info(f"Saved schema {filename} ({len(content)} chars)")
        return path.name

    def rename_schema(self, old_filename: str, new_filename: str) -> str:
        """Rename a schema, keeping the old extension if the new name lacks one.

        Returns:
            The final filename.
        """
        old_path = self._path_for(old_filename)
        extension = old_path.suffix
        if not new_filename.endswith(extension):
            new_filename = f"{new_filename}{extension}"
        new_path = self._path_for(new_filename)
        if not old_path.is_file():
            raise SchemaNotFoundError(f"Original file not found: {old_filename}")
        if new_path.exists():
            raise SchemaExistsError(f"A file with this name already exists: {new_filename}")
        old_path.rename(new_path)
        logger.info(f"Renamed schema {old_filename} -> {new_path.name}")
        return new_path.name

    def delete_schema(self, filename: str) -> None:
        path = self._path_for(filename)
        if not path.is_file():
            raise SchemaNotFoundError(f"Schema file not found: {filename}")
        path.unlink()
        logger.info(f"Deleted schema {filename}")
