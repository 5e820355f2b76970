"""FastAPI application exposing the schema-tree engine.

This module provides REST access to saved XSD schemas, their parsed trees,
value validation, XML generation and XML import, plus CSV helpers for
repeating sections and lightweight performance metrics.

Quick start (run the server)::

    uvicorn xsd_form_api.app:app --reload

Core endpoints (REST):

    GET    /health                     Basic health probe
    GET    /schemas                    List saved schemas
    POST   /schemas                    Save a schema ({filename, content})
    GET    /schemas/{filename}         Raw schema text
    DELETE /schemas/{filename}         Delete a saved schema
    POST   /schemas/rename             Rename ({old_filename, new_filename})
    GET    /schemas/{filename}/tree    Parsed schema tree
    POST   /parse                      Parse inline XSD text
    POST   /validate                   Validate a value store
    POST   /generate                   Generate XML from a value store
    POST   /import                     Import XML into a value store
    POST   /bulk/template              CSV template for a repeating element
    POST   /bulk/rows                  Convert CSV rows into array entries
    GET    /metrics/performance        Performance counters

Every engine request names its schema either inline (``xsd``) or by a saved
``filename``.

Example: generate XML for an inline schema::

    curl -X POST http://localhost:8000/generate \\
         -H "Content-Type: application/json" \\
         -d '{"filename": "invoice.xsd",
              "values": {"Invoice": {"@id": "A1", "Total": "99.50"}},
              "cdata_overrides": {"Invoice.Note": true}}'

Error handling:
    * Schema parse and XML import failures return 400 with the message as ``detail``.
    * Missing saved schemas return 404, rename conflicts 409.
    * ``/generate`` returns 422 with the error map when validation fails.

Configuration (environment):
    XSD_FORMS_SCHEMA_DIR     Directory for saved schemas (default ``saved-schemas``)
    XSD_FORMS_PARSER_CONFIG  ``key=value`` pairs for :class:`ParserConfig`
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .bulk import (
    cdata_eligible_columns,
    check_columns,
    csv_template,
    expected_columns,
    read_csv_rows,
    rows_to_items,
)
from .cache import CachedSchemaParser, get_cached_parser
from .errors import (
    SchemaExistsError,
    SchemaNotFoundError,
    XSDFormError,
)
from .models import SchemaNode
from .monitoring import get_monitor
from .serialization import generate_xml, import_xml
from .session import FormSession
from .storage import SchemaStorage
from .validation import validate as validate_store

logger = logging.getLogger(__name__)

app = FastAPI(
    title="XSD Form API",
    version=__version__,
    description="Parse XSD schemas into form trees, validate values and generate or import XML",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def monitor_requests(request: Request, call_next):
    """Middleware to monitor API request performance."""
    start_time = time.time()
    response = await call_next(request)
    response_time = time.time() - start_time

    endpoint = f"{request.method} {request.url.path}"
    get_monitor().record_endpoint_request(endpoint, response_time, response.status_code)

    response.headers["X-Response-Time"] = f"{response_time:.3f}s"
    response.headers["X-API-Version"] = __version__
    return response


@app.exception_handler(XSDFormError)
async def engine_error_handler(request: Request, exc: XSDFormError):
    if isinstance(exc, SchemaNotFoundError):
        status_code = 404
    elif isinstance(exc, SchemaExistsError):
        status_code = 409
    else:
        status_code = 400
    logger.info(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


class SchemaSource(BaseModel):
    """Inline XSD text or the filename of a saved schema."""

    xsd: Optional[str] = Field(None, description="Inline XSD document")
    filename: Optional[str] = Field(None, description="Saved schema filename")


class SaveSchemaRequest(BaseModel):
    filename: str = Field(..., description="Target filename (.xsd or .xml)")
    content: str = Field(..., description="XSD document text")


class RenameSchemaRequest(BaseModel):
    old_filename: str = Field(..., description="Existing filename")
    new_filename: str = Field(..., description="New name (extension optional)")


class ValidateRequest(SchemaSource):
    values: Dict[str, Any] = Field(default_factory=dict, description="Value store")


class ValidateResponse(BaseModel):
    valid: bool = Field(..., description="Whether the store has no errors")
    errors: Dict[str, str] = Field(
        default_factory=dict, description="Error message per path"
    )
    error_count: int = Field(0, description="Number of paths with errors")


class GenerateRequest(SchemaSource):
    values: Dict[str, Any] = Field(default_factory=dict, description="Value store")
    cdata_overrides: Dict[str, bool] = Field(
        default_factory=dict, description="CDATA override per path"
    )
    validate_first: bool = Field(
        True, alias="validate", description="Reject invalid stores with 422"
    )

    model_config = {"populate_by_name": True}


class ImportRequest(SchemaSource):
    xml: str = Field(..., description="XML document to import")


class BulkTemplateRequest(SchemaSource):
    path: str = Field(..., description="Path of the repeating element")


class BulkRowsRequest(BulkTemplateRequest):
    csv: str = Field(..., description="CSV text with a header row")


def get_storage() -> SchemaStorage:
    return SchemaStorage(Path(os.getenv("XSD_FORMS_SCHEMA_DIR", "saved-schemas")))


def get_parser() -> CachedSchemaParser:
    return get_cached_parser(os.getenv("XSD_FORMS_PARSER_CONFIG") or None)


def _load_schema(
    source: SchemaSource, storage: SchemaStorage, parser: CachedSchemaParser
) -> SchemaNode:
    if source.xsd:
        return parser.parse(source.xsd)
    if source.filename:
        return parser.parse(storage.read_schema(source.filename))
    raise HTTPException(
        status_code=400, detail="Either 'xsd' or 'filename' must be provided"
    )


def _repeating_node(schema: SchemaNode, path: str) -> SchemaNode:
    node = FormSession(schema).node_at(path)
    if not isinstance(node, SchemaNode):
        raise HTTPException(status_code=404, detail=f"Element not found: {path}")
    if not node.multiple:
        raise HTTPException(
            status_code=400, detail=f"Element is not repeating: {path}"
        )
    return node


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "healthy", "version": __version__}


@app.get("/schemas")
def list_schemas(storage: SchemaStorage = Depends(get_storage)) -> Dict[str, Any]:
    return {"schemas": storage.list_schemas()}


@app.post("/schemas")
def save_schema(
    request: SaveSchemaRequest,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> Dict[str, Any]:
    """Save a schema after checking that it parses."""
    root = parser.parse(request.content)
    filename = storage.write_schema(request.filename, request.content)
    return {
        "success": True,
        "filename": filename,
        "root": root.name,
        "message": "Schema saved successfully",
    }


@app.post("/schemas/rename")
def rename_schema(
    request: RenameSchemaRequest, storage: SchemaStorage = Depends(get_storage)
) -> Dict[str, Any]:
    new_filename = storage.rename_schema(request.old_filename, request.new_filename)
    return {
        "success": True,
        "old_filename": request.old_filename,
        "new_filename": new_filename,
        "message": "Schema renamed successfully",
    }


@app.get("/schemas/{filename}")
def read_schema(
    filename: str, storage: SchemaStorage = Depends(get_storage)
) -> Dict[str, str]:
    return {"filename": filename, "content": storage.read_schema(filename)}


@app.delete("/schemas/{filename}")
def delete_schema(
    filename: str, storage: SchemaStorage = Depends(get_storage)
) -> Dict[str, Any]:
    storage.delete_schema(filename)
    return {"success": True, "message": "Schema deleted successfully"}


@app.get("/schemas/{filename}/tree")
def schema_tree(
    filename: str,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> Dict[str, Any]:
    root = parser.parse(storage.read_schema(filename))
    return {"filename": filename, "node": root.to_dict()}


@app.post("/parse")
def parse_schema(
    source: SchemaSource,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> Dict[str, Any]:
    root = _load_schema(source, storage, parser)
    return {"node": root.to_dict()}


@app.post("/validate", response_model=ValidateResponse)
def validate(
    request: ValidateRequest,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> ValidateResponse:
    schema = _load_schema(request, storage, parser)
    errors = validate_store(schema, request.values)
    get_monitor().record_operation("validate")
    return ValidateResponse(valid=not errors, errors=errors, error_count=len(errors))


@app.post("/generate")
def generate(
    request: GenerateRequest,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
):
    schema = _load_schema(request, storage, parser)
    if request.validate_first:
        errors = validate_store(schema, request.values)
        if errors:
            get_monitor().record_operation("generate", failed=True)
            return JSONResponse(
                status_code=422,
                content={
                    "detail": f"Form has {len(errors)} validation error(s)",
                    "errors": errors,
                },
            )
    xml_text = generate_xml(schema, request.values, request.cdata_overrides)
    get_monitor().record_operation("generate")
    return {"xml": xml_text}


@app.post("/import")
def import_document(
    request: ImportRequest,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> Dict[str, Any]:
    schema = _load_schema(request, storage, parser)
    try:
        values = import_xml(schema, request.xml)
    except XSDFormError:
        get_monitor().record_operation("import", failed=True)
        raise
    get_monitor().record_operation("import")
    return {"values": values}


@app.post("/bulk/template")
def bulk_template(
    request: BulkTemplateRequest,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> Dict[str, Any]:
    node = _repeating_node(_load_schema(request, storage, parser), request.path)
    columns, defaults = cdata_eligible_columns(node)
    return {
        "columns": expected_columns(node),
        "cdata_columns": columns,
        "default_cdata_columns": defaults,
        "csv": csv_template(node),
    }


@app.post("/bulk/rows")
def bulk_rows(
    request: BulkRowsRequest,
    storage: SchemaStorage = Depends(get_storage),
    parser: CachedSchemaParser = Depends(get_parser),
) -> Dict[str, Any]:
    node = _repeating_node(_load_schema(request, storage, parser), request.path)
    rows = read_csv_rows(request.csv)
    missing, extra = check_columns(node, rows)
    _, defaults = cdata_eligible_columns(node)
    items: List[Any] = rows_to_items(node, rows)
    return {
        "items": items,
        "missing_columns": missing,
        "extra_columns": extra,
        "default_cdata_columns": defaults,
    }


@app.get("/metrics/performance")
def get_performance_metrics() -> Dict[str, Any]:
    return get_monitor().get_performance_summary()


@app.post("/metrics/reset")
def reset_metrics() -> Dict[str, str]:
    get_monitor().reset_metrics()
    return {"message": "Performance metrics reset successfully"}
