"""
Mapping between the quote working tree and the Airtable base.

The gateway owns every field name and every relationship hop (quote ->
opportunity, quote -> options -> products / package). Callers only see the
dataclasses from `pricing.dataclasses` and the RecordStoreError hierarchy.
"""
from __future__ import annotations

import logging
import re
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pricing.dataclasses import (
    ITEM_PACKAGING,
    ITEM_PRODUCT,
    Item,
    Option,
    Package,
    Product,
    Quote,
    SaveResult,
    option_label,
)
from pricing.services.derivation import classify_product_type
from pricing.services.recalc import recalculate_quote
from pricing.services.utils import HUNDRED, ZERO, to_bool, to_decimal, to_int

from . import fields as F
from .client import AirtableClient, RecordNotFound, RecordStoreError

logger = logging.getLogger(__name__)

RECORD_ID_RE = re.compile(r"^rec[a-zA-Z0-9]{14}$")
FORMULA_BATCH_SIZE = 50
INACTIVE_FALLBACK_LIMIT = 20


def is_valid_record_id(value: Any) -> bool:
    return isinstance(value, str) and bool(RECORD_ID_RE.match(value))


def sanitize(value: Any) -> Any:
    """Replace Airtable special values ({"specialValue": "NaN"} etc.) with None, recursively."""
    if isinstance(value, dict):
        if "specialValue" in value:
            return None
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return _text(value[0]) if value else ""
    if isinstance(value, dict):
        return ""
    return str(value)


def _first(value: Any) -> Optional[Any]:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _first_url(attachments: Any) -> Optional[str]:
    if isinstance(attachments, list) and attachments and isinstance(attachments[0], dict):
        return attachments[0].get("url")
    return None


def _pick(*values: Any) -> Any:
    for value in values:
        if value not in (None, "", [], {}):
            return value
    return None


def _wire_number(value: Any) -> float:
    return float(to_decimal(value))


def _percentage(value: Any) -> Optional[Decimal]:
    # stored as a fraction (0.36), used as a whole percentage (36)
    if value is None:
        return None
    return to_decimal(value) * HUNDRED


def _record_id_formula(ids: Iterable[str]) -> str:
    return "OR(" + ",".join(f"RECORD_ID()='{rid}'" for rid in ids) + ")"


class PersistenceGateway:
    def __init__(self, client: AirtableClient, tables: Dict[str, str]) -> None:
        self.client = client
        self.tables = tables

    def _table(self, name: str) -> str:
        return self.tables[name]

    # ---------- catalog ----------

    @staticmethod
    def product_from_record(record: Dict[str, Any]) -> Product:
        fields = sanitize(record.get("fields") or {})
        product_type = _text(fields.get(F.PRODUCT_TYPE))
        return Product(
            id=record["id"],
            name=_text(_pick(fields.get(F.PRODUCT_NAME), fields.get(F.PRODUCT_NAME_ALT))) or "מוצר ללא שם",
            details=_text(_pick(fields.get(F.PRODUCT_DETAILS), fields.get(F.PRODUCT_SIZE))),
            marketing_description=_text(fields.get(F.PRODUCT_MARKETING)),
            price=to_decimal(fields.get(F.PRODUCT_PRICE)),
            product_type=product_type,
            inventory=_text(fields.get(F.PRODUCT_INVENTORY)),
            boxes_per_carton=to_int(fields.get(F.PRODUCT_BOXES_PER_CARTON)) or 1,
            type=classify_product_type(product_type),
        )

    def load_catalog_products(self) -> List[Product]:
        records = self.client.list_records(self._table("products"))
        products = [self.product_from_record(r) for r in records]
        logger.info("Loaded %s catalog products", len(products))
        return products

    def fetch_products_by_ids(self, ids: Iterable[str]) -> List[Product]:
        """Batched RECORD_ID() lookup; result follows the order of `ids`, unknown ids are dropped."""
        wanted: List[str] = []
        for rid in ids:
            if is_valid_record_id(rid) and rid not in wanted:
                wanted.append(rid)
        if not wanted:
            return []

        found: Dict[str, Product] = {}
        for start in range(0, len(wanted), FORMULA_BATCH_SIZE):
            chunk = wanted[start:start + FORMULA_BATCH_SIZE]
            for record in self.client.iter_records(self._table("products"), filter_by_formula=_record_id_formula(chunk)):
                found[record["id"]] = self.product_from_record(record)
        missing = len(wanted) - len(found)
        if missing:
            logger.warning("%s linked products were not returned by the store", missing)
        return [found[rid] for rid in wanted if rid in found]

    def load_active_packages(self) -> List[Package]:
        table = self._table("packages")
        try:
            records = self.client.list_records(table, filter_by_formula=F.PACKAGE_ACTIVE_FORMULA)
        except RecordStoreError as exc:
            if exc.status_code != 422:
                raise
            logger.warning("Active-package filter rejected (%s); loading the first %s packages", exc, INACTIVE_FALLBACK_LIMIT)
            records = self.client.list_records(table, max_records=INACTIVE_FALLBACK_LIMIT)

        records = [dict(r, fields=sanitize(r.get("fields") or {})) for r in records]
        linked: List[str] = []
        for record in records:
            linked.extend(record["fields"].get(F.PACKAGE_PRODUCTS) or [])
            linked.extend(record["fields"].get(F.PACKAGE_PACKAGING) or [])
        by_id = {p.id: p for p in self.fetch_products_by_ids(linked)}

        packages = []
        for record in records:
            fields = record["fields"]
            packages.append(
                Package(
                    id=record["id"],
                    name=_text(fields.get(F.PACKAGE_NAME)) or "מארז ללא שם",
                    package_number=_text(fields.get(F.PACKAGE_NUMBER)) or None,
                    package_price=to_decimal(fields.get(F.PACKAGE_PRICE)),
                    items=[by_id[i] for i in fields.get(F.PACKAGE_PRODUCTS) or [] if i in by_id],
                    packaging_items=[by_id[i] for i in fields.get(F.PACKAGE_PACKAGING) or [] if i in by_id],
                    parallel_packages=list(fields.get(F.PACKAGE_PARALLEL) or []),
                    image_url=_first_url(fields.get(F.PACKAGE_ATTACHMENTS)),
                )
            )
        logger.info("Loaded %s active packages", len(packages))
        return packages

    # ---------- load ----------

    def load_quote(self, record_id: str) -> Quote:
        record = self.client.get_record(self._table("quotes"), record_id)
        fields = sanitize(record.get("fields") or {})
        opportunity_id = _first(fields.get(F.QUOTE_OPPORTUNITIES))
        opp = self._load_opportunity(opportunity_id)

        occasion = opp.get(F.OPP_OCCASION) or []
        if isinstance(occasion, str):
            occasion = [occasion]

        quote = Quote(
            record_id=record["id"],
            quote_number=_text(fields.get(F.QUOTE_NUMBER)),
            customer_name=_text(_pick(fields.get(F.QUOTE_CUSTOMER_NAME), opp.get(F.OPP_FULL_NAME))),
            customer_email=_text(opp.get(F.OPP_EMAIL)),
            customer_phone=_text(_pick(fields.get(F.QUOTE_CONTACT_PHONE), opp.get(F.OPP_PHONE))),
            customer_company=_text(opp.get(F.OPP_COMPANY_NAME)),
            customer_notes=_text(_pick(fields.get(F.QUOTE_CONTACT), opp.get(F.OPP_CUSTOMER_NOTES))),
            customer_preferences=_text(opp.get(F.OPP_PREFERENCES)),
            delivery_date=_text(_pick(fields.get(F.QUOTE_DELIVERY_DATE), opp.get(F.OPP_DELIVERY_DATE))),
            delivery_time=_text(opp.get(F.OPP_DELIVERY_TIME)),
            delivery_address=_text(opp.get(F.OPP_DELIVERY_ADDRESS)),
            delivery_type=_text(opp.get(F.OPP_DISTRIBUTION)),
            celebration=_text(opp.get(F.OPP_CELEBRATION)),
            gift_recipients=_text(opp.get(F.OPP_RECIPIENTS)),
            customer_card=_text(_pick(fields.get(F.QUOTE_CARD), opp.get(F.OPP_CARD))),
            customer_sticker=_text(_pick(fields.get(F.QUOTE_STICKER), opp.get(F.OPP_STICKER))),
            preferred_packaging=_text(opp.get(F.OPP_PREFERRED_PACKAGING)),
            occasion=[_text(o) for o in occasion],
            package_quantity=to_int(_pick(fields.get(F.QUOTE_PACKAGE_QUANTITY), opp.get(F.OPP_PACKAGE_QUANTITY))),
            budget_per_package=to_decimal(_pick(fields.get(F.QUOTE_BUDGET_PER_PACKAGE), opp.get(F.OPP_BUDGET))),
            budget_before_vat=to_decimal(opp.get(F.OPP_BUDGET_BEFORE_VAT), default=None),
            budget_with_vat=to_decimal(opp.get(F.OPP_BUDGET_WITH_VAT), default=None),
            include_vat=to_bool(opp.get(F.OPP_INCLUDE_VAT)),
            include_shipping=to_bool(opp.get(F.OPP_INCLUDE_SHIPPING)),
            agent_commission=_percentage(fields.get(F.QUOTE_AGENT_COMMISSION)) or ZERO,
            agent=_text(_pick(fields.get(F.QUOTE_AGENT), opp.get(F.OPP_AGENT))),
            opportunity_id=opportunity_id if is_valid_record_id(opportunity_id) else None,
            status=_text(fields.get(F.QUOTE_STATUS)),
        )
        quote.options = self._load_options(fields.get(F.QUOTE_OPTIONS) or [])
        if not quote.options:
            quote.options = [Option(key=uuid.uuid4().hex, label="A", title="אופציה 1")]
        recalculate_quote(quote)
        logger.info("Loaded quote %s (%s) with %s options", quote.quote_number, quote.record_id, len(quote.options))
        return quote

    def _load_opportunity(self, opportunity_id: Optional[str]) -> Dict[str, Any]:
        if not is_valid_record_id(opportunity_id):
            return {}
        try:
            record = self.client.get_record(self._table("opportunities"), opportunity_id)
        except RecordStoreError as exc:
            logger.warning("Could not load opportunity %s: %s", opportunity_id, exc)
            return {}
        return sanitize(record.get("fields") or {})

    def _load_options(self, option_ids: List[str]) -> List[Option]:
        options: List[Option] = []
        for option_id in option_ids:
            try:
                record = self.client.get_record(self._table("options"), option_id)
            except RecordNotFound:
                logger.warning("Linked option %s no longer exists; skipping", option_id)
                continue
            options.append(self._build_option(record, len(options)))
        return options

    def _build_option(self, record: Dict[str, Any], index: int) -> Option:
        fields = sanitize(record.get("fields") or {})
        label = option_label(index)
        option = Option(
            key=uuid.uuid4().hex,
            label=label,
            record_id=record["id"],
            title=_text(fields.get(F.OPTION_TITLE)) or f"אופציה {label}",
            package_id=_first(fields.get(F.OPTION_PACKAGE)),
            package_number=_text(fields.get(F.OPTION_PACKAGE_NUMBER)) or None,
            image=_first_url(fields.get(F.OPTION_PACKAGE_IMAGE)),
            packaging=_text(fields.get(F.OPTION_PACKAGING_KIND)),
            agent=_text(fields.get(F.OPTION_AGENT)),
            additional_expenses=to_decimal(fields.get(F.OPTION_ADDITIONAL_EXPENSES)),
            units_per_carton=to_int(fields.get(F.OPTION_UNITS_PER_CARTON), default=None) or None,
            delivery_company=_text(fields.get(F.OPTION_DELIVERY_COMPANY)),
            shipping_price_to_client=to_decimal(fields.get(F.OPTION_SHIPPING_PRICE)),
            project_price_before_vat=to_decimal(fields.get(F.OPTION_PROJECT_PRICE)),
            status=_text(fields.get(F.OPTION_STATUS)),
            internal_status=_text(fields.get(F.OPTION_INTERNAL_STATUS)),
        )
        for name, field_name in (("profit_target", F.OPTION_PROFIT_TARGET), ("agent_commission", F.OPTION_AGENT_COMMISSION)):
            value = _percentage(fields.get(field_name))
            if value is not None:
                setattr(option, name, value)
                option.manual_overrides.add(name)

        for product in self.fetch_products_by_ids(fields.get(F.OPTION_PRODUCTS) or []):
            option.items.append(self._item_from_product(option, product, ITEM_PRODUCT))
        for product in self.fetch_products_by_ids(fields.get(F.OPTION_PACKAGING) or []):
            option.items.append(self._item_from_product(option, product, ITEM_PACKAGING))

        if is_valid_record_id(option.package_id) and not option.image:
            self._hydrate_package(option)
        return option

    @staticmethod
    def _item_from_product(option: Option, product: Product, item_type: str) -> Item:
        return Item(
            id=option.unique_item_id(product.id),
            name=product.name,
            details=product.details or product.marketing_description,
            price=product.price,
            type=item_type,
            record_id=product.id,
            product_type=product.product_type,
            is_custom=False,
            is_editable=False,
            boxes_per_carton=product.boxes_per_carton,
        )

    def _hydrate_package(self, option: Option) -> None:
        try:
            record = self.client.get_record(self._table("packages"), option.package_id)
        except RecordStoreError as exc:
            logger.warning("Could not load package %s for option %s: %s", option.package_id, option.record_id, exc)
            return
        fields = sanitize(record.get("fields") or {})
        option.image = _first_url(fields.get(F.PACKAGE_ATTACHMENTS))
        if not option.package_number:
            option.package_number = _text(fields.get(F.PACKAGE_NUMBER)) or None

    # ---------- save ----------

    def save_quote(self, quote: Quote) -> SaveResult:
        logger.info("Saving quote %s (%s)", quote.quote_number, quote.record_id)
        if is_valid_record_id(quote.record_id):
            quote_id = quote.record_id
        else:
            created = self.client.create_record(
                self._table("quotes"),
                {F.QUOTE_CUSTOMER_NAME: quote.customer_name or "לקוח חדש"},
            )
            quote_id = created["id"]
            logger.info("Created quote record %s", quote_id)

        option_ids: List[str] = []
        for option in quote.options:
            fields = self.option_fields(option)
            if is_valid_record_id(option.record_id):
                self.client.update_record(self._table("options"), option.record_id, F.writable(fields))
                option_ids.append(option.record_id)
            else:
                fields = {k: v for k, v in fields.items() if v != []}
                fields[F.OPTION_QUOTE_LINK] = [quote_id]
                fields[F.OPTION_CUSTOMER_NAME] = quote.customer_name or ""
                created = self.client.create_record(self._table("options"), F.writable(fields))
                option_ids.append(created["id"])
                logger.info("Created option %s as %s", option.label, created["id"])

        if is_valid_record_id(quote.opportunity_id):
            self.client.update_record(
                self._table("opportunities"), quote.opportunity_id, F.writable(self.opportunity_fields(quote))
            )
        else:
            logger.debug("Quote %s has no opportunity link; skipping opportunity update", quote_id)

        if option_ids:
            self.client.update_record(self._table("quotes"), quote_id, {F.QUOTE_OPTIONS: option_ids})
        return SaveResult(quote_id=quote_id, option_ids=option_ids)

    @staticmethod
    def option_fields(option: Option) -> Dict[str, Any]:
        def linked(item_type: str) -> List[str]:
            return [i.record_id for i in option.items if i.type == item_type and is_valid_record_id(i.record_id)]

        fields: Dict[str, Any] = {
            F.OPTION_TITLE: option.title or f"אופציה {option.label}",
            F.OPTION_LETTER: option.label,
            F.OPTION_PRODUCTS: linked(ITEM_PRODUCT),
            F.OPTION_PACKAGING: linked(ITEM_PACKAGING),
            F.OPTION_SHIPPING_PRICE: _wire_number(option.shipping_price_to_client),
            F.OPTION_ADDITIONAL_EXPENSES: _wire_number(option.additional_expenses),
            F.OPTION_PROJECT_PRICE: _wire_number(option.project_price_before_vat),
        }
        if is_valid_record_id(option.package_id):
            fields[F.OPTION_PACKAGE] = [option.package_id]
        if option.delivery_company:
            fields[F.OPTION_DELIVERY_COMPANY] = option.delivery_company
        if option.packaging:
            fields[F.OPTION_PACKAGING_KIND] = option.packaging
        if option.units_per_carton:
            fields[F.OPTION_UNITS_PER_CARTON] = option.units_per_carton
        if option.derived.effective_delivery_boxes:
            fields[F.OPTION_DELIVERY_BOXES] = str(option.derived.effective_delivery_boxes)
        if "profit_target" in option.manual_overrides and option.profit_target is not None:
            fields[F.OPTION_PROFIT_TARGET] = _wire_number(to_decimal(option.profit_target) / HUNDRED)
        if "agent_commission" in option.manual_overrides and option.agent_commission is not None:
            fields[F.OPTION_AGENT_COMMISSION] = _wire_number(to_decimal(option.agent_commission) / HUNDRED)
        return fields

    @staticmethod
    def opportunity_fields(quote: Quote) -> Dict[str, Any]:
        return {
            F.OPP_FULL_NAME: quote.customer_name,
            F.OPP_EMAIL: quote.customer_email,
            F.OPP_PHONE: quote.customer_phone,
            F.OPP_PACKAGE_QUANTITY: quote.package_quantity,
            F.OPP_BUDGET: _wire_number(quote.budget_per_package),
            F.OPP_INCLUDE_VAT: bool(quote.include_vat),
            F.OPP_INCLUDE_SHIPPING: bool(quote.include_shipping),
            F.OPP_CUSTOMER_NOTES: quote.customer_notes,
            F.OPP_STICKER: quote.customer_sticker,
            F.OPP_CARD: quote.customer_card,
            F.OPP_PREFERRED_PACKAGING: quote.preferred_packaging,
            F.OPP_DELIVERY_ADDRESS: quote.delivery_address,
            F.OPP_DELIVERY_DATE: quote.delivery_date or None,
        }

    # ---------- misc ----------

    def update_quote_status(self, record_id: str, status: str) -> Dict[str, Any]:
        logger.info("Setting status of quote %s to %r", record_id, status)
        return self.client.update_record(self._table("quotes"), record_id, {F.QUOTE_STATUS: status})

    def list_tables(self) -> List[Dict[str, Any]]:
        return self.client.list_tables()

    def check_connection(self) -> Dict[str, Any]:
        records = self.client.list_records(self._table("products"), max_records=1, fields=[F.PRODUCT_NAME])
        first = _text((records[0].get("fields") or {}).get(F.PRODUCT_NAME)) if records else ""
        return {"records_found": len(records), "first_product": first}
