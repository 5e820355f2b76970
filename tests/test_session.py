from pathlib import Path

import pytest

from xsd_form_api.errors import FormValidationError, XMLImportError
from xsd_form_api.models import AttributeNode, SchemaNode
from xsd_form_api.session import FormSession
from xsd_form_api.xsd_parser import parse_xsd

FIXTURE = Path(__file__).resolve().parent / "fixtures" / "schema" / "invoice.xsd"


@pytest.fixture
def session():
    return FormSession(parse_xsd(FIXTURE))


def _fill(session):
    session.update("Invoice.@id", "A1")
    session.update("Invoice.Total", "99.50")
    session.update("Invoice.Customer.Name", "ACME")
    session.add_array_item("Invoice.Items")
    session.update("Invoice.Items.0.Sku", "X1")


def test_node_at_resolves_elements_and_attributes(session):
    assert session.node_at("Invoice").name == "Invoice"
    assert session.node_at("Invoice.Items.3.Sku").name == "Sku"
    assert isinstance(session.node_at("Invoice.@id"), AttributeNode)
    assert session.node_at("Invoice.Missing") is None
    assert session.node_at("Order.Total") is None
    assert session.node_at("Invoice.@id.deeper") is None


def test_update_clears_error_for_that_path(session):
    assert session.validate() is False
    assert "Invoice.@id" in session.errors

    session.update("Invoice.@id", "A1")
    assert "Invoice.@id" not in session.errors
    assert "Invoice.Total" in session.errors


def test_array_item_management(session):
    assert session.add_array_item("Invoice.Items") == 0
    assert session.add_array_item("Invoice.Items") == 1
    assert session.add_array_item("Invoice.Tag") == 0

    assert session.get("Invoice.Items") == [{}, {}]
    assert session.get("Invoice.Tag") == [""]

    session.update("Invoice.Items.1.Sku", "X2")
    session.remove_array_item("Invoice.Items", 0)
    assert session.get("Invoice.Items") == [{"Sku": "X2"}]


def test_toggle_cdata_flips_effective_setting(session):
    assert session.is_cdata_enabled("Invoice.Note") is True
    assert session.toggle_cdata("Invoice.Note") is False
    assert session.cdata_overrides == {"Invoice.Note": False}
    assert session.toggle_cdata("Invoice.Note") is True

    assert session.is_cdata_enabled("Invoice.Items.0.Sku") is False
    session.toggle_cdata("Invoice.Items.0.Sku")
    assert session.is_cdata_enabled("Invoice.Items.0.Sku") is True
    assert session.is_cdata_enabled("Invoice.Items.1.Sku") is False


def test_attributes_never_use_cdata(session):
    assert session.is_cdata_enabled("Invoice.@id") is False


def test_strict_generation_raises_with_errors(session):
    with pytest.raises(FormValidationError) as excinfo:
        session.generate_xml()
    assert "Invoice.@id" in excinfo.value.errors
    assert excinfo.value.errors == session.errors


def test_lenient_generation_produces_preview(session):
    session.update("Invoice.Total", "5")
    xml_text = session.generate_xml(strict=False)
    assert "<Total>5</Total>" in xml_text


def test_generate_and_import_round_trip(session):
    _fill(session)
    session.update("Invoice.Note", "Fragile")
    xml_text = session.generate_xml()
    assert "<Note><![CDATA[Fragile]]></Note>" in xml_text

    other = FormSession(session.schema)
    other.import_xml(xml_text)
    assert other.values == session.values
    assert other.errors == {}


def test_failed_import_leaves_session_untouched(session):
    _fill(session)
    before = session.values

    with pytest.raises(XMLImportError):
        session.import_xml("<Order/>")
    assert session.values is before


def test_apply_bulk_import_sets_cdata_overrides(session):
    items = [{"Sku": "X1"}, {"Sku": "X2"}]
    session.apply_bulk_import("Invoice.Items", items, cdata_columns=["Sku"])

    assert session.get("Invoice.Items") == items
    assert session.cdata_overrides == {
        "Invoice.Items.0.Sku": True,
        "Invoice.Items.1.Sku": True,
    }
    assert "<Sku><![CDATA[X2]]></Sku>" in session.generate_xml(strict=False)


def test_has_data_and_clear(session):
    assert session.has_data() is False
    _fill(session)
    session.toggle_cdata("Invoice.Note")
    assert session.has_data() is True

    session.clear()
    assert session.values == {}
    assert session.cdata_overrides == {}
    assert session.errors == {}


def test_sessions_are_independent(session):
    other = FormSession(session.schema)
    session.update("Invoice.@id", "A1")
    assert other.get("Invoice.@id") is None
    assert isinstance(other.schema, SchemaNode)
