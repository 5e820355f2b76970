import pytest

from xsd_form_api.paths import Attr, Index, Name, Path, join, parse_segment


def test_parse_segments():
    path = Path.parse("Invoice.Items.0.@code")
    assert path.segments == (Name("Invoice"), Name("Items"), Index(0), Attr("code"))
    assert str(path) == "Invoice.Items.0.@code"


def test_builders_round_trip_to_string():
    path = Path.root("Invoice").child("Items").index(3).child("Sku")
    assert str(path) == "Invoice.Items.3.Sku"
    assert str(path.parent.attr("code")) == "Invoice.Items.3.@code"
    assert path.last == Name("Sku")
    assert len(path) == 4


def test_parse_accepts_path_instances():
    path = Path.root("Invoice")
    assert Path.parse(path) is path


def test_empty_path_is_falsy():
    assert not Path.parse("")
    assert Path.parse("Invoice")


@pytest.mark.parametrize("raw", ["", "@"])
def test_invalid_segments(raw):
    with pytest.raises(ValueError):
        parse_segment(raw)


def test_double_dot_is_rejected():
    with pytest.raises(ValueError):
        Path.parse("Invoice..Total")


def test_join_skips_empty_prefix():
    assert join("", "Sku") == "Sku"
    assert join("Customer", "Name") == "Customer.Name"
