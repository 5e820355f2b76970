import pytest

from xsd_form_api.store import (
    flatten_values,
    get_value,
    is_empty,
    nest_flat,
    remove_index,
    set_value,
)


def test_get_value_descends_dicts_and_lists():
    store = {"Invoice": {"@id": "A1", "Items": [{"Sku": "X1"}, {"Sku": "X2"}]}}

    assert get_value(store, "Invoice.@id") == "A1"
    assert get_value(store, "Invoice.Items.1.Sku") == "X2"
    assert get_value(store, "Invoice.Items.5.Sku") is None
    assert get_value(store, "Invoice.Total") is None
    assert get_value(store, "Invoice.@id.deeper") is None
    assert get_value(None, "Invoice") is None


def test_get_value_index_on_mapping_uses_string_key():
    store = {"Invoice": {"Items": {"0": {"Sku": "X1"}}}}
    assert get_value(store, "Invoice.Items.0.Sku") == "X1"


def test_set_value_creates_intermediate_levels():
    store = set_value({}, "Invoice.Items.0.Sku", "X1")
    assert store == {"Invoice": {"Items": [{"Sku": "X1"}]}}

    store = set_value(store, "Invoice.@id", "A1")
    assert store["Invoice"]["@id"] == "A1"


def test_set_value_does_not_mutate_input():
    original = {"Invoice": {"Items": [{"Sku": "X1"}], "Total": "1"}}
    updated = set_value(original, "Invoice.Items.0.Sku", "Y1")

    assert original["Invoice"]["Items"][0]["Sku"] == "X1"
    assert updated["Invoice"]["Items"][0]["Sku"] == "Y1"
    assert updated["Invoice"]["Total"] == "1"


def test_set_value_appends_at_list_end():
    store = {"Invoice": {"Items": [{"Sku": "X1"}]}}
    store = set_value(store, "Invoice.Items.1", {"Sku": "X2"})
    assert [item["Sku"] for item in store["Invoice"]["Items"]] == ["X1", "X2"]


def test_set_value_rejects_gaps_and_empty_paths():
    with pytest.raises(IndexError):
        set_value({}, "Invoice.Items.2.Sku", "X")
    with pytest.raises(ValueError):
        set_value({}, "", "X")


def test_remove_index():
    store = {"Invoice": {"Tag": ["a", "b", "c"]}}
    updated = remove_index(store, "Invoice.Tag", 1)
    assert updated["Invoice"]["Tag"] == ["a", "c"]
    assert store["Invoice"]["Tag"] == ["a", "b", "c"]


def test_is_empty():
    assert is_empty(None)
    assert is_empty("")
    assert is_empty([])
    assert not is_empty("0")
    assert not is_empty(0)
    assert not is_empty(False)
    assert not is_empty({})


def test_nest_and_flatten():
    flat = {"Invoice.@id": "A1", "Invoice.Items.0.Sku": "X1", "Invoice.Items.1.Sku": "X2"}
    nested = nest_flat(flat)
    assert nested == {"Invoice": {"@id": "A1", "Items": [{"Sku": "X1"}, {"Sku": "X2"}]}}
    assert flatten_values(nested) == flat
