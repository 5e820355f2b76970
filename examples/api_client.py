#!/usr/bin/env python3
"""
Example client for the XSD Form API.

This script demonstrates how to save a schema, explore its tree, validate a
value store, generate XML (with CDATA overrides), import it back and fill a
repeating section from CSV.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx


class XSDFormClient:
    """Client for interacting with the XSD Form API."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize the client with the API base URL."""
        self.base_url = base_url
        self.client = httpx.Client(base_url=base_url, timeout=30.0)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close the client."""
        self.client.close()

    def get_health(self) -> Dict:
        """Check API health status."""
        response = self.client.get("/health")
        response.raise_for_status()
        return response.json()

    def save_schema(self, path: Path) -> Dict:
        """Upload a local XSD file under its own filename."""
        response = self.client.post(
            "/schemas", json={"filename": path.name, "content": path.read_text()}
        )
        response.raise_for_status()
        return response.json()

    def list_schemas(self) -> List[Dict]:
        response = self.client.get("/schemas")
        response.raise_for_status()
        return response.json()["schemas"]

    def get_tree(self, filename: str) -> Dict:
        """Get the parsed schema tree of a saved schema."""
        response = self.client.get(f"/schemas/{filename}/tree")
        response.raise_for_status()
        return response.json()["node"]

    def validate(self, filename: str, values: Dict[str, Any]) -> Dict:
        """
        Validate a value store.

        Returns:
            ``{valid, errors, error_count}``
        """
        response = self.client.post(
            "/validate", json={"filename": filename, "values": values}
        )
        response.raise_for_status()
        return response.json()

    def generate(
        self,
        filename: str,
        values: Dict[str, Any],
        cdata_overrides: Optional[Dict[str, bool]] = None,
    ) -> str:
        """
        Generate XML for a value store.

        Raises:
            httpx.HTTPStatusError: With status 422 when the values do not validate.
        """
        response = self.client.post(
            "/generate",
            json={
                "filename": filename,
                "values": values,
                "cdata_overrides": cdata_overrides or {},
            },
        )
        response.raise_for_status()
        return response.json()["xml"]

    def import_xml(self, filename: str, xml_text: str) -> Dict[str, Any]:
        response = self.client.post("/import", json={"filename": filename, "xml": xml_text})
        response.raise_for_status()
        return response.json()["values"]

    def bulk_rows(self, filename: str, path: str, csv_text: str) -> Dict:
        """Convert CSV text into entries for the repeating element at ``path``."""
        response = self.client.post(
            "/bulk/rows", json={"filename": filename, "path": path, "csv": csv_text}
        )
        response.raise_for_status()
        return response.json()


def print_tree(node: Dict[str, Any], indent: int = 0) -> None:
    prefix = "  " * indent
    occurs = node["occurs"]
    line = f"{prefix}{node['name']} [{occurs['min']}..{occurs['max']}]"
    if node["kind"] == "simple":
        line += f" ({node['input_type']})"
    print(line)
    for attr in node.get("attributes", []):
        print(f"{prefix}  @{attr['name']}")
    for child in node.get("children", []):
        print_tree(child, indent + 1)


def main():
    """Run a short tour against a running server."""
    if len(sys.argv) < 2:
        print("usage: api_client.py SCHEMA.xsd [BASE_URL]")
        return 1
    schema_path = Path(sys.argv[1])
    base_url = sys.argv[2] if len(sys.argv) > 2 else "http://localhost:8000"

    with XSDFormClient(base_url) as client:
        print("Health:", client.get_health())
        saved = client.save_schema(schema_path)
        filename = saved["filename"]
        print(f"Saved {filename} (root: {saved['root']})")

        print("\nSchema tree:")
        print_tree(client.get_tree(filename))

        values: Dict[str, Any] = {saved["root"]: {}}
        result = client.validate(filename, values)
        print(f"\nEmpty form has {result['error_count']} error(s):")
        print(json.dumps(result["errors"], indent=2))

        try:
            xml_text = client.generate(filename, values)
        except httpx.HTTPStatusError as exc:
            print(f"\nGeneration refused ({exc.response.status_code})")
        else:
            print("\nGenerated XML:\n" + xml_text)
            print("Imported back:", client.import_xml(filename, xml_text))
    return 0


if __name__ == "__main__":
    sys.exit(main())
