from decimal import Decimal

import pytest

from quotes.payloads import PackagePayload, PayloadError, SingleItemPayload, parse_payload


def test_item_payload():
    payload = parse_payload({
        "kind": "item",
        "id": "recPRODUCT0000001",
        "name": "יין",
        "marketing_description": "יין אדום משובח",
        "price": "42.5",
        "product_type": "אלכוהול",
        "boxes_per_carton": 6,
    })
    assert isinstance(payload, SingleItemPayload)
    assert payload.product.price == Decimal("42.5")
    assert payload.product.display_name == "יין אדום משובח"
    assert payload.product.boxes_per_carton == 6


def test_package_payload_keeps_both_lists():
    payload = parse_payload({
        "kind": "package",
        "id": "recPACKAGE0000001",
        "name": "מארז חג",
        "package_price": 199,
        "package_number": 17,
        "items": [{"id": "p1", "name": "יין", "price": 40}],
        "packaging_items": [{"id": "b1", "name": "קופסה", "price": 8, "product_type": "אריזה"}],
    })
    assert isinstance(payload, PackagePayload)
    assert payload.package_number == "17"
    assert [line.id for line in payload.items] == ["p1"]
    assert [line.id for line in payload.packaging_items] == ["b1"]
    assert payload.image_url is None


def test_display_name_falls_back_to_name():
    payload = parse_payload({"kind": "item", "id": "p1", "name": "שוקולד"})
    assert payload.product.display_name == "שוקולד"
    assert payload.product.boxes_per_carton is None


@pytest.mark.parametrize("data", [
    {"id": "p1", "name": "no kind"},
    {"kind": "bundle", "id": "p1"},
    {"kind": "item", "name": "no id"},
    {"kind": "package", "name": "no id"},
    {"kind": "package", "id": "pkg", "items": [{"name": "line without id"}]},
    ["not", "an", "object"],
])
def test_rejects_malformed_payloads(data):
    with pytest.raises(PayloadError):
        parse_payload(data)


@pytest.mark.parametrize("data", [
    {"kind": "item", "id": "p1", "price": "1e13"},
    {"kind": "item", "id": "p1", "price": 5, "boxes_per_carton": "1e10"},
    {"kind": "package", "id": "pkg", "package_price": "-1e12"},
])
def test_rejects_out_of_range_numbers(data):
    with pytest.raises(PayloadError):
        parse_payload(data)


def test_prices_kept_to_four_places():
    payload = parse_payload({"kind": "item", "id": "p1", "price": "3.14159"})
    assert payload.product.price == Decimal("3.1416")
