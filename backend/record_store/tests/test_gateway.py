from __future__ import annotations

import re
from decimal import Decimal

import pytest

from pricing.dataclasses import ITEM_PACKAGING, ITEM_PRODUCT, Item, Option, Quote
from record_store import fields as F
from record_store.client import RecordNotFound, RecordStoreError
from record_store.gateway import PersistenceGateway, is_valid_record_id, sanitize

TABLES = {
    "quotes": "quotes",
    "options": "options",
    "opportunities": "opportunities",
    "products": "products",
    "packages": "packages",
}

QUOTE_ID = "recQUOTE000000001"
OPP_ID = "recOPPORT00000001"
OPT_A = "recOPTION0000000A"
OPT_B = "recOPTION0000000B"
WINE = "recPRODUCT0000001"
CHOCO = "recPRODUCT0000002"
BOX = "recPRODUCT0000003"
PKG = "recPACKAGE0000001"


class FakeClient:
    """In-memory stand-in for AirtableClient."""

    base_id = "appTEST"

    def __init__(self, tables):
        self.tables = {name: dict(records) for name, records in tables.items()}
        self.writes = []
        self.reject_formulas = set()
        self._seq = 0

    def get_record(self, table, record_id):
        try:
            return {"id": record_id, "fields": self.tables[table][record_id]}
        except KeyError:
            raise RecordNotFound(f"{table}/{record_id}", status_code=404)

    def iter_records(self, table, filter_by_formula=None, max_records=None, fields=None):
        if filter_by_formula and table in self.reject_formulas:
            raise RecordStoreError("INVALID_FILTER_BY_FORMULA", status_code=422)
        rows = list(self.tables.get(table, {}).items())
        if filter_by_formula and filter_by_formula.startswith("OR("):
            wanted = set(re.findall(r"RECORD_ID\(\)='(\w+)'", filter_by_formula))
            rows = [(rid, f) for rid, f in rows if rid in wanted]
        elif filter_by_formula == F.PACKAGE_ACTIVE_FORMULA:
            rows = [(rid, f) for rid, f in rows if f.get("פעיל")]
        if max_records:
            rows = rows[:max_records]
        for rid, f in rows:
            yield {"id": rid, "fields": f}

    def list_records(self, table, **kwargs):
        return list(self.iter_records(table, **kwargs))

    def create_record(self, table, fields):
        self._seq += 1
        record_id = f"recNEW{self._seq:011d}"
        self.tables.setdefault(table, {})[record_id] = dict(fields)
        self.writes.append(("POST", table, None, fields))
        return {"id": record_id, "fields": fields}

    def update_record(self, table, record_id, fields):
        self.tables.setdefault(table, {}).setdefault(record_id, {}).update(fields)
        self.writes.append(("PATCH", table, record_id, fields))
        return {"id": record_id, "fields": self.tables[table][record_id]}

    def list_tables(self):
        return [{"id": name, "name": name, "fields_count": 0} for name in self.tables]


def product_fields(name, price, product_type="", **extra):
    fields = {F.PRODUCT_NAME: name, F.PRODUCT_PRICE: price, F.PRODUCT_TYPE: product_type}
    fields.update(extra)
    return fields


def seeded_store():
    return {
        "quotes": {
            QUOTE_ID: {
                F.QUOTE_NUMBER: "Q-1042",
                F.QUOTE_CUSTOMER_NAME: "דנה",
                F.QUOTE_PACKAGE_QUANTITY: 50,
                F.QUOTE_BUDGET_PER_PACKAGE: 120,
                F.QUOTE_AGENT_COMMISSION: 0.05,
                F.QUOTE_OPPORTUNITIES: [OPP_ID],
                F.QUOTE_OPTIONS: [OPT_A, OPT_B],
                F.QUOTE_STATUS: "טיוטה",
            }
        },
        "opportunities": {
            OPP_ID: {
                F.OPP_EMAIL: "dana@example.com",
                F.OPP_COMPANY_NAME: "Acme",
                F.OPP_INCLUDE_SHIPPING: True,
                F.OPP_OCCASION: ["ראש השנה"],
                F.OPP_BUDGET_WITH_VAT: {"specialValue": "NaN"},
            }
        },
        "options": {
            OPT_A: {
                F.OPTION_TITLE: "יין ושוקולד",
                F.OPTION_LETTER: "A",
                F.OPTION_PRODUCTS: [WINE, CHOCO],
                F.OPTION_PACKAGING: [BOX],
                F.OPTION_PROFIT_TARGET: 0.3,
                F.OPTION_PACKAGE: [PKG],
                F.OPTION_UNITS_PER_CARTON: 10,
            },
            OPT_B: {
                F.OPTION_TITLE: "שוקולד",
                F.OPTION_PRODUCTS: [CHOCO, CHOCO],
            },
        },
        "products": {
            WINE: product_fields("יין אדום", 40, "יין"),
            CHOCO: product_fields("שוקולד", 15.5, "מתוקים"),
            BOX: product_fields("קופסה מעוצבת", 8, "אריזה"),
        },
        "packages": {
            PKG: {
                F.PACKAGE_NAME: "מארז חג",
                F.PACKAGE_NUMBER: "P-7",
                F.PACKAGE_PRICE: 150,
                F.PACKAGE_PRODUCTS: [WINE, CHOCO],
                F.PACKAGE_PACKAGING: [BOX],
                F.PACKAGE_ATTACHMENTS: [{"url": "https://cdn.example.com/p7.png"}],
                "פעיל": True,
            }
        },
    }


@pytest.fixture
def client():
    return FakeClient(seeded_store())


@pytest.fixture
def gateway(client):
    return PersistenceGateway(client, TABLES)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("recAAAAAAAAAAAAAA", True),
        ("rec1234567890abcd", True),
        ("recSHORT", False),
        ("custom-product-1a2b", False),
        ("tblAAAAAAAAAAAAAA", False),
        (None, False),
    ],
)
def test_is_valid_record_id(value, expected):
    assert is_valid_record_id(value) is expected


def test_sanitize_replaces_special_values():
    data = {"a": {"specialValue": "NaN"}, "b": [1, {"specialValue": "Infinity"}], "c": {"d": 2}}
    assert sanitize(data) == {"a": None, "b": [1, None], "c": {"d": 2}}


class TestLoadQuote:
    def test_hydrates_quote_and_opportunity(self, gateway):
        quote = gateway.load_quote(QUOTE_ID)
        assert quote.record_id == QUOTE_ID
        assert quote.quote_number == "Q-1042"
        assert quote.customer_name == "דנה"
        assert quote.customer_email == "dana@example.com"
        assert quote.customer_company == "Acme"
        assert quote.package_quantity == 50
        assert quote.budget_per_package == Decimal("120")
        assert quote.agent_commission == Decimal("5.00")
        assert quote.include_shipping is True
        assert quote.budget_with_vat is None
        assert quote.occasion == ["ראש השנה"]
        assert quote.opportunity_id == OPP_ID

    def test_options_in_stored_order_with_merged_items(self, gateway):
        quote = gateway.load_quote(QUOTE_ID)
        first, second = quote.options
        assert (first.label, first.record_id) == ("A", OPT_A)
        assert (second.label, second.record_id) == ("B", OPT_B)
        assert [i.record_id for i in first.items] == [WINE, CHOCO, BOX]
        assert [i.type for i in first.items] == [ITEM_PRODUCT, ITEM_PRODUCT, ITEM_PACKAGING]
        assert all(not i.is_editable for i in first.items)

    def test_duplicate_links_collapse_to_one_item(self, gateway):
        second = gateway.load_quote(QUOTE_ID).options[1]
        assert [i.record_id for i in second.items] == [CHOCO]

    def test_percentages_become_whole_and_marked_overridden(self, gateway):
        first = gateway.load_quote(QUOTE_ID).options[0]
        assert first.profit_target == Decimal("30.0")
        assert "profit_target" in first.manual_overrides
        assert "agent_commission" not in first.manual_overrides

    def test_package_image_fetched_when_missing(self, gateway):
        first = gateway.load_quote(QUOTE_ID).options[0]
        assert first.package_id == PKG
        assert first.image == "https://cdn.example.com/p7.png"
        assert first.package_number == "P-7"

    def test_derived_fields_are_fresh(self, gateway):
        first = gateway.load_quote(QUOTE_ID).options[0]
        assert first.derived.products_cost == Decimal("55.5")
        assert first.derived.packaging_items_cost == Decimal("8")
        assert first.derived.delivery_boxes_count == 5
        assert first.pricing_fingerprint

    def test_missing_opportunity_is_tolerated(self, client, gateway):
        del client.tables["opportunities"][OPP_ID]
        quote = gateway.load_quote(QUOTE_ID)
        assert quote.customer_email == ""
        assert quote.customer_name == "דנה"

    def test_missing_linked_option_is_skipped(self, client, gateway):
        del client.tables["options"][OPT_A]
        quote = gateway.load_quote(QUOTE_ID)
        assert [o.record_id for o in quote.options] == [OPT_B]
        assert quote.options[0].label == "A"

    def test_quote_without_options_gets_empty_option(self, client, gateway):
        client.tables["quotes"][QUOTE_ID][F.QUOTE_OPTIONS] = []
        quote = gateway.load_quote(QUOTE_ID)
        assert len(quote.options) == 1
        assert quote.options[0].label == "A"
        assert quote.options[0].items == []

    def test_unknown_quote_raises(self, gateway):
        with pytest.raises(RecordNotFound):
            gateway.load_quote("recMISSING0000000")


class TestSaveQuote:
    def build_quote(self):
        return Quote(
            customer_name="יוסי",
            package_quantity=20,
            budget_per_package=Decimal("100"),
            options=[
                Option(
                    key="k1",
                    label="A",
                    items=[
                        Item(id=WINE, record_id=WINE, price=Decimal("40")),
                        Item(id="custom-product-abc123", is_custom=True, price=Decimal("5")),
                        Item(id=BOX, record_id=BOX, type=ITEM_PACKAGING, price=Decimal("8")),
                    ],
                    package_id=PKG,
                )
            ],
        )

    def test_new_quote_creates_quote_and_options(self, client, gateway):
        result = gateway.save_quote(self.build_quote())
        assert is_valid_record_id(result.quote_id)
        assert len(result.option_ids) == 1
        created_option = client.tables["options"][result.option_ids[0]]
        assert created_option[F.OPTION_QUOTE_LINK] == [result.quote_id]
        assert created_option[F.OPTION_PRODUCTS] == [WINE]
        assert created_option[F.OPTION_PACKAGING] == [BOX]
        assert created_option[F.OPTION_PACKAGE] == [PKG]
        assert client.tables["quotes"][result.quote_id][F.QUOTE_OPTIONS] == result.option_ids

    def test_existing_records_are_patched(self, client, gateway):
        quote = self.build_quote()
        quote.record_id = QUOTE_ID
        quote.opportunity_id = OPP_ID
        quote.options[0].record_id = OPT_A
        quote.options.append(Option(key="k2", label="B"))
        result = gateway.save_quote(quote)

        assert result.quote_id == QUOTE_ID
        assert result.option_ids[0] == OPT_A
        assert result.option_ids[1].startswith("recNEW")
        methods = [(m, t) for m, t, _, _ in client.writes]
        assert ("PATCH", "options") in methods
        assert ("POST", "options") in methods
        assert ("PATCH", "opportunities") in methods
        assert ("POST", "quotes") not in methods
        assert client.tables["opportunities"][OPP_ID][F.OPP_BUDGET] == 100.0

    def test_computed_fields_never_written(self, client, gateway):
        quote = self.build_quote()
        quote.opportunity_id = OPP_ID
        gateway.save_quote(quote)
        for _, _, _, fields in client.writes:
            assert not set(fields) & F.COMPUTED_FIELDS

    def test_overridden_percentages_written_as_fractions(self, client, gateway):
        quote = self.build_quote()
        quote.options[0].profit_target = Decimal("25")
        quote.options[0].manual_overrides.add("profit_target")
        result = gateway.save_quote(quote)
        assert client.tables["options"][result.option_ids[0]][F.OPTION_PROFIT_TARGET] == 0.25

    def test_failure_propagates(self, client, gateway):
        def boom(*args, **kwargs):
            raise RecordStoreError("server error", status_code=500)

        client.create_record = boom
        with pytest.raises(RecordStoreError):
            gateway.save_quote(self.build_quote())


class TestCatalog:
    def test_catalog_products_are_classified(self, gateway):
        products = {p.id: p for p in gateway.load_catalog_products()}
        assert products[BOX].type == ITEM_PACKAGING
        assert products[WINE].type == ITEM_PRODUCT
        assert products[CHOCO].price == Decimal("15.5")
        assert products[WINE].boxes_per_carton == 1

    def test_fetch_by_ids_keeps_requested_order(self, gateway):
        products = gateway.fetch_products_by_ids([BOX, WINE, "custom-x", BOX])
        assert [p.id for p in products] == [BOX, WINE]

    def test_active_packages_with_linked_products(self, gateway):
        (package,) = gateway.load_active_packages()
        assert package.name == "מארז חג"
        assert package.package_number == "P-7"
        assert package.package_price == Decimal("150")
        assert [p.id for p in package.items] == [WINE, CHOCO]
        assert [p.id for p in package.packaging_items] == [BOX]
        assert package.image_url == "https://cdn.example.com/p7.png"

    def test_active_filter_rejected_falls_back(self, client, gateway):
        client.tables["packages"]["recPACKAGE0000002"] = {F.PACKAGE_NAME: "ישן"}
        client.reject_formulas.add("packages")
        packages = gateway.load_active_packages()
        assert {p.name for p in packages} == {"מארז חג", "ישן"}

    def test_other_errors_are_not_swallowed(self, client, gateway):
        def boom(*args, **kwargs):
            raise RecordStoreError("server error", status_code=500)

        client.list_records = boom
        with pytest.raises(RecordStoreError):
            gateway.load_active_packages()


def test_update_quote_status(client, gateway):
    gateway.update_quote_status(QUOTE_ID, "נשלח ללקוח")
    assert client.tables["quotes"][QUOTE_ID][F.QUOTE_STATUS] == "נשלח ללקוח"


def test_check_connection(gateway):
    result = gateway.check_connection()
    assert result["records_found"] == 1
    assert result["first_product"] == "יין אדום"
