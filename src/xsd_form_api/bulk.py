"""CSV helpers for filling and exporting repeating sections.

Rows are flat ``{column: text}`` mappings whose column names use the path
addressing scheme relative to one repeating element (``@id``, ``Sku``,
``Address.City``). Nested repeating children are not representable as
columns and are skipped in both directions.

Example::

        from xsd_form_api.bulk import read_csv_rows, rows_to_items

        items_node = schema.child("Items")
        rows = read_csv_rows("Sku,Qty\\nX1,2\\nX2,5\\n")
        items = rows_to_items(items_node, rows)   # [{'Sku': 'X1', 'Qty': '2'}, ...]
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Dict, List, Sequence, Tuple

from .errors import BulkImportError
from .models import SchemaNode
from .paths import join
from .store import ValueStore, set_value

logger = logging.getLogger(__name__)

ROW_NUMBER_COLUMN = "#"


def expected_columns(node: SchemaNode, prefix: str = "") -> List[str]:
    """Column names for one item of ``node``, attributes first."""
    if not node.is_complex:
        return [prefix or node.name]
    columns = [join(prefix, f"@{attr.name}") for attr in node.attributes]
    for child in node.children:
        if child.multiple:
            continue
        if child.is_complex:
            columns.extend(expected_columns(child, join(prefix, child.name)))
        else:
            columns.append(join(prefix, child.name))
    return columns


def _is_string_like(node: SchemaNode) -> bool:
    return node.base_type in (None, "string") or node.input_type == "text"


def cdata_eligible_columns(
    node: SchemaNode, prefix: str = ""
) -> Tuple[List[str], List[str]]:
    """Return string-like leaf columns and those defaulting to CDATA."""
    columns: List[str] = []
    defaults: List[str] = []
    if not node.is_complex:
        if _is_string_like(node):
            column = prefix or node.name
            columns.append(column)
            if node.use_cdata:
                defaults.append(column)
        return columns, defaults

    for child in node.children:
        if child.multiple:
            continue
        child_prefix = join(prefix, child.name)
        if child.is_complex:
            child_columns, child_defaults = cdata_eligible_columns(child, child_prefix)
            columns.extend(child_columns)
            defaults.extend(child_defaults)
        elif _is_string_like(child):
            columns.append(child_prefix)
            if child.use_cdata:
                defaults.append(child_prefix)
    return columns, defaults


def read_csv_rows(text: str) -> List[Dict[str, str]]:
    """Parse CSV text with a header row into row mappings.

    Raises:
        BulkImportError: If the text has no header or no data rows.
    """
    records = [
        record
        for record in csv.reader(io.StringIO(text))
        if any(cell.strip() for cell in record)
    ]
    if len(records) < 2:
        raise BulkImportError(
            "CSV data must contain a header row and at least one data row"
        )
    header = [column.strip() for column in records[0]]
    rows: List[Dict[str, str]] = []
    for values in records[1:]:
        rows.append(
            {
                column: values[position].strip() if position < len(values) else ""
                for position, column in enumerate(header)
            }
        )
    return rows


def check_columns(
    node: SchemaNode, rows: Sequence[Dict[str, Any]]
) -> Tuple[List[str], List[str]]:
    """Return ``(missing, extra)`` columns of ``rows`` compared to the schema."""
    expected = expected_columns(node)
    present = list(rows[0].keys()) if rows else []
    missing = [column for column in expected if column not in present]
    extra = [column for column in present if column not in expected]
    if missing:
        logger.warning(f"Missing columns: {missing}")
    if extra:
        logger.warning(f"Extra columns (will be ignored): {extra}")
    return missing, extra


def rows_to_items(node: SchemaNode, rows: Sequence[Dict[str, Any]]) -> List[Any]:
    """Convert flat rows into array entries for the repeating ``node``."""
    columns = expected_columns(node)
    items: List[Any] = []
    for row in rows:
        if not node.is_complex:
            items.append(row.get(columns[0], ""))
            continue
        item: ValueStore = {}
        for column in columns:
            value = row.get(column)
            if value is not None and value != "":
                item = set_value(item, column, value)
        items.append(item)
    return items


def csv_template(node: SchemaNode) -> str:
    """CSV header plus one empty row for ``node``."""
    columns = expected_columns(node)
    return rows_to_csv([{column: "" for column in columns}], columns)


def flatten_item(item: Any, prefix: str = "") -> Dict[str, Any]:
    """Flatten one array entry, skipping nested arrays."""
    flat: Dict[str, Any] = {}
    if not isinstance(item, dict):
        flat[prefix or "value"] = "" if item is None else item
        return flat
    for key, value in item.items():
        column = join(prefix, key)
        if isinstance(value, dict):
            flat.update(flatten_item(value, column))
        elif not isinstance(value, list):
            flat[column] = "" if value is None else value
    return flat


def export_rows(items: Sequence[Any]) -> List[Dict[str, Any]]:
    """Flattened rows with a leading 1-based row number column."""
    rows = []
    for position, item in enumerate(items):
        row: Dict[str, Any] = {ROW_NUMBER_COLUMN: position + 1}
        row.update(flatten_item(item))
        rows.append(row)
    return rows


def rows_to_csv(rows: Sequence[Dict[str, Any]], columns: Sequence[str] = ()) -> str:
    """Serialize rows to CSV text; columns default to first-seen order."""
    header = list(columns)
    if not header:
        for row in rows:
            for column in row:
                if column not in header:
                    header.append(column)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=header, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: row.get(column, "") for column in header})
    return buffer.getvalue()
