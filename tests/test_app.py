from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from xsd_form_api.app import app, get_parser, get_storage
from xsd_form_api.cache import CachedSchemaParser, SchemaCache
from xsd_form_api.monitoring import get_monitor
from xsd_form_api.storage import SchemaStorage

FIXTURE = Path(__file__).resolve().parent / "fixtures" / "schema" / "invoice.xsd"
INVOICE_XSD = FIXTURE.read_text()

VALID_VALUES = {
    "Invoice": {
        "@id": "A1",
        "Total": "99.50",
        "Note": "Handle with care",
        "Customer": {"Name": "ACME"},
        "Items": [{"Sku": "X1"}, {"Sku": "X2"}],
    }
}


@pytest.fixture
def client(tmp_path):
    storage = SchemaStorage(tmp_path / "schemas")
    storage.write_schema("invoice.xsd", INVOICE_XSD)
    parser = CachedSchemaParser(cache=SchemaCache())
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_parser] = lambda: parser
    get_monitor().reset_metrics()
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert response.headers["X-Response-Time"].endswith("s")


def test_schema_crud(client):
    listing = client.get("/schemas").json()["schemas"]
    assert [entry["filename"] for entry in listing] == ["invoice.xsd"]

    response = client.post("/schemas", json={"filename": "copy.xsd", "content": INVOICE_XSD})
    assert response.status_code == 200
    assert response.json()["root"] == "Invoice"

    response = client.get("/schemas/copy.xsd")
    assert response.json()["content"] == INVOICE_XSD

    response = client.post(
        "/schemas/rename", json={"old_filename": "copy.xsd", "new_filename": "renamed"}
    )
    assert response.json()["new_filename"] == "renamed.xsd"

    response = client.delete("/schemas/renamed.xsd")
    assert response.status_code == 200
    assert client.get("/schemas/renamed.xsd").status_code == 404


def test_save_rejects_unparsable_schema(client):
    response = client.post("/schemas", json={"filename": "bad.xsd", "content": "<nope"})
    assert response.status_code == 400
    assert "Invalid XML/XSD format" in response.json()["detail"]


def test_rename_conflict_and_bad_name(client):
    client.post("/schemas", json={"filename": "other.xsd", "content": INVOICE_XSD})
    response = client.post(
        "/schemas/rename", json={"old_filename": "other.xsd", "new_filename": "invoice"}
    )
    assert response.status_code == 409

    response = client.post("/schemas", json={"filename": "bad.txt", "content": INVOICE_XSD})
    assert response.status_code == 400


def test_tree_endpoint(client):
    response = client.get("/schemas/invoice.xsd/tree")
    assert response.status_code == 200
    node = response.json()["node"]
    assert node["name"] == "Invoice"
    items = next(child for child in node["children"] if child["name"] == "Items")
    assert items["multiple"] is True


def test_parse_inline_and_missing_source(client):
    response = client.post("/parse", json={"xsd": INVOICE_XSD})
    assert response.json()["node"]["attributes"][0]["name"] == "id"

    response = client.post("/parse", json={})
    assert response.status_code == 400


def test_validate_endpoint(client):
    response = client.post(
        "/validate",
        json={"filename": "invoice.xsd", "values": {"Invoice": {"Total": "abc"}}},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is False
    assert data["errors"]["Invoice.@id"] == "id is required"
    assert data["errors"]["Invoice.Total"] == "Total must be a decimal number"
    assert data["error_count"] == len(data["errors"])


def test_generate_endpoint(client):
    response = client.post(
        "/generate",
        json={
            "filename": "invoice.xsd",
            "values": VALID_VALUES,
            "cdata_overrides": {"Invoice.Items.0.Sku": True},
        },
    )
    assert response.status_code == 200
    xml_text = response.json()["xml"]
    assert '<Invoice id="A1">' in xml_text
    assert "<Note><![CDATA[Handle with care]]></Note>" in xml_text
    assert "<Sku><![CDATA[X1]]></Sku>" in xml_text
    assert "<Sku>X2</Sku>" in xml_text


def test_generate_rejects_invalid_values(client):
    response = client.post(
        "/generate", json={"filename": "invoice.xsd", "values": {"Invoice": {}}}
    )
    assert response.status_code == 422
    assert "Invoice.@id" in response.json()["errors"]

    response = client.post(
        "/generate",
        json={"filename": "invoice.xsd", "values": {"Invoice": {}}, "validate": False},
    )
    assert response.status_code == 200
    assert "<Invoice>" in response.json()["xml"]


def test_import_endpoint_round_trip(client):
    xml_text = client.post(
        "/generate", json={"filename": "invoice.xsd", "values": VALID_VALUES}
    ).json()["xml"]

    response = client.post("/import", json={"filename": "invoice.xsd", "xml": xml_text})
    assert response.status_code == 200
    assert response.json()["values"] == VALID_VALUES


def test_import_errors(client):
    response = client.post("/import", json={"filename": "invoice.xsd", "xml": "<Order/>"})
    assert response.status_code == 400
    assert "no 'Invoice' element found" in response.json()["detail"]

    response = client.post("/import", json={"filename": "missing.xsd", "xml": "<Invoice/>"})
    assert response.status_code == 404


def test_bulk_template_and_rows(client):
    response = client.post(
        "/bulk/template", json={"filename": "invoice.xsd", "path": "Invoice.Items"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["columns"] == ["@code", "Sku", "Qty"]
    assert data["cdata_columns"] == ["Sku"]
    assert data["csv"] == "@code,Sku,Qty\n,,\n"

    response = client.post(
        "/bulk/rows",
        json={
            "filename": "invoice.xsd",
            "path": "Invoice.Items",
            "csv": "Sku,Qty,Colour\nX1,2,red\nX2,,blue\n",
        },
    )
    data = response.json()
    assert data["items"] == [{"Sku": "X1", "Qty": "2"}, {"Sku": "X2"}]
    assert data["missing_columns"] == ["@code"]
    assert data["extra_columns"] == ["Colour"]


def test_bulk_rejects_non_repeating_paths(client):
    response = client.post(
        "/bulk/template", json={"filename": "invoice.xsd", "path": "Invoice.Total"}
    )
    assert response.status_code == 400

    response = client.post(
        "/bulk/template", json={"filename": "invoice.xsd", "path": "Invoice.Nope"}
    )
    assert response.status_code == 404

    response = client.post(
        "/bulk/rows",
        json={"filename": "invoice.xsd", "path": "Invoice.Items", "csv": "Sku\n"},
    )
    assert response.status_code == 400


def test_performance_metrics(client):
    client.get("/health")
    client.post("/validate", json={"xsd": INVOICE_XSD, "values": {}})

    data = client.get("/metrics/performance").json()
    assert data["api"]["total_requests"] >= 2
    assert data["operations"]["validate"] == 1

    assert client.post("/metrics/reset").status_code == 200
    data = client.get("/metrics/performance").json()
    assert data["operations"] == {}
