from pathlib import Path
from xml.dom import minidom

import pytest

from xsd_form_api.errors import XMLImportError
from xsd_form_api.serialization import (
    XMLSerializer,
    element_text,
    generate_xml,
    import_xml,
    unwrap_cdata,
    wrap_cdata,
)
from xsd_form_api.validation import validate
from xsd_form_api.xsd_parser import parse_xsd, parse_xsd_string

FIXTURE = Path(__file__).resolve().parent / "fixtures" / "schema" / "invoice.xsd"

SIMPLE_INVOICE_XSD = """<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema">
  <xs:element name="Invoice">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="Total" type="xs:decimal"/>
        <xs:element name="Items" maxOccurs="unbounded">
          <xs:complexType>
            <xs:sequence>
              <xs:element name="Sku" type="xs:string"/>
            </xs:sequence>
          </xs:complexType>
        </xs:element>
      </xs:sequence>
      <xs:attribute name="id" type="xs:string" use="required"/>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""


@pytest.fixture
def schema():
    return parse_xsd(FIXTURE)


def test_end_to_end_invoice():
    schema = parse_xsd_string(SIMPLE_INVOICE_XSD)
    store = {
        "Invoice": {
            "@id": "A1",
            "Total": "99.50",
            "Items": [{"Sku": "X1"}, {"Sku": "X2"}],
        }
    }
    assert validate(schema, store) == {}

    xml_text = generate_xml(schema, store)

    assert xml_text == (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<Invoice id="A1">\n'
        "  <Total>99.50</Total>\n"
        "  <Items>\n"
        "    <Sku>X1</Sku>\n"
        "  </Items>\n"
        "  <Items>\n"
        "    <Sku>X2</Sku>\n"
        "  </Items>\n"
        "</Invoice>\n"
    )
    assert import_xml(schema, xml_text) == store


def test_round_trip_preserves_present_values(schema):
    store = {
        "Invoice": {
            "@id": "INV-7",
            "IssueDate": "2024-01-15",
            "Total": "10",
            "Note": "Deliver <after> 5pm & call",
            "Customer": {"Name": "ACME", "City": "Ottawa"},
            "Items": [{"@code": "c1", "Sku": "X1", "Qty": "2"}, {"Sku": "X2"}],
            "Tag": ["urgent", "paper"],
        }
    }
    assert validate(schema, store) == {}

    xml_text = generate_xml(schema, store)
    assert import_xml(schema, xml_text) == store


def test_omission_rule(schema):
    store = {
        "Invoice": {
            "@id": "A1",
            "Total": "",
            "Note": None,
            "Customer": {"Name": "", "City": "Ottawa"},
            "Items": [{"@code": "", "Sku": "X1"}],
            "Tag": ["", "kept"],
        }
    }
    xml_text = generate_xml(schema, store)

    assert "<Total" not in xml_text
    assert "<Note" not in xml_text
    assert "<Name" not in xml_text
    assert "<City>Ottawa</City>" in xml_text
    assert "code=" not in xml_text
    assert xml_text.count("<Tag>") == 1
    assert "<Tag>kept</Tag>" in xml_text


def test_empty_store_renders_bare_root(schema):
    assert generate_xml(schema, {}) == (
        '<?xml version="1.0" encoding="UTF-8"?>\n<Invoice>\n</Invoice>\n'
    )


def test_cdata_default_and_overrides(schema):
    store = {"Invoice": {"@id": "A1", "Note": "a < b", "Customer": {"Name": "ACME"}}}

    xml_text = generate_xml(schema, store)
    assert "<Note><![CDATA[a < b]]></Note>" in xml_text
    assert "<Name>ACME</Name>" in xml_text

    xml_text = generate_xml(
        schema, store, {"Invoice.Note": False, "Invoice.Customer.Name": True}
    )
    assert "<Note>a < b</Note>" in xml_text
    assert "<Name><![CDATA[ACME]]></Name>" in xml_text


def test_cdata_override_uses_array_index_path(schema):
    store = {"Invoice": {"Items": [{"Sku": "X1"}, {"Sku": "X2"}]}}
    xml_text = generate_xml(schema, store, {"Invoice.Items.1.Sku": True})

    assert "<Sku>X1</Sku>" in xml_text
    assert "<Sku><![CDATA[X2]]></Sku>" in xml_text


def test_non_cdata_text_is_written_verbatim(schema):
    xml_text = generate_xml(schema, {"Invoice": {"Customer": {"Name": "A & B"}}})
    assert "<Name>A & B</Name>" in xml_text


def test_boolean_values_render_lowercase(schema):
    xml_text = generate_xml(schema, {"Invoice": {"Customer": {"Name": True}}})
    assert "<Name>true</Name>" in xml_text


@pytest.mark.parametrize("content", ["", "plain", "a < b & c", "  spaced  ", "multi\nline"])
def test_cdata_wrap_unwrap_identity(content):
    assert unwrap_cdata(wrap_cdata(content)) == content


def test_unwrap_cdata_without_wrapper():
    assert unwrap_cdata("plain") is None


def test_element_text_unwraps_literal_cdata_marker():
    element = minidom.parseString("<Note>&lt;![CDATA[ keep  inner ]]&gt;</Note>").documentElement
    assert element_text(element) == " keep  inner "

    element = minidom.parseString("<Note>\n   padded  \n</Note>").documentElement
    assert element_text(element) == "padded"


def test_element_text_keeps_cdata_section_whitespace():
    element = minidom.parseString("<Note>\n  <![CDATA[  keep me  ]]>\n</Note>").documentElement
    assert element_text(element) == "  keep me  "


def test_cdata_padding_survives_round_trip(schema):
    store = {"Invoice": {"@id": "A1", "Note": "  keep me  "}}

    xml_text = generate_xml(schema, store)
    assert "<Note><![CDATA[  keep me  ]]></Note>" in xml_text
    assert import_xml(schema, xml_text) == store


def test_empty_simple_array_entries_shift_on_reimport(schema):
    store = {"Invoice": {"Tag": ["a", "", "b"]}}

    xml_text = generate_xml(schema, store)
    assert xml_text.count("<Tag>") == 2
    assert import_xml(schema, xml_text) == {"Invoice": {"Tag": ["a", "b"]}}


def test_import_finds_root_anywhere(schema):
    xml_text = (
        "<Envelope><Body>"
        '<Invoice id="A9"><Total> 12.00 </Total><Extra>ignored</Extra></Invoice>'
        "</Body></Envelope>"
    )
    assert import_xml(schema, xml_text) == {"Invoice": {"@id": "A9", "Total": "12.00"}}


def test_import_matches_local_names(schema):
    xml_text = (
        '<inv:Invoice xmlns:inv="urn:example" id="A1">'
        "<inv:Items><inv:Sku>X1</inv:Sku></inv:Items>"
        "</inv:Invoice>"
    )
    assert import_xml(schema, xml_text) == {
        "Invoice": {"@id": "A1", "Items": [{"Sku": "X1"}]}
    }


def test_import_single_repeating_child_is_list(schema):
    values = import_xml(schema, "<Invoice><Tag>one</Tag></Invoice>")
    assert values == {"Invoice": {"Tag": ["one"]}}


def test_import_malformed_xml(schema):
    with pytest.raises(XMLImportError, match="Invalid XML format"):
        import_xml(schema, "<Invoice>")


def test_import_without_matching_root(schema):
    with pytest.raises(XMLImportError, match="no 'Invoice' element found"):
        import_xml(schema, "<Order/>")


def test_serializer_is_reusable(schema):
    serializer = XMLSerializer(schema)
    first = serializer.generate({"Invoice": {"@id": "1"}})
    second = serializer.generate({"Invoice": {"@id": "2"}})
    assert 'id="1"' in first
    assert 'id="2"' in second
