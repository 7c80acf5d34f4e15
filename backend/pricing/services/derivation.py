"""
Derivation engine for quote options.

`derive_option` is a pure function of an Option and its parent Quote: it reads
the option's items and pricing inputs plus the quote's budget context and
returns a fresh DerivedFields. It never mutates its arguments and never raises
on bad numbers; every division is guarded to ZERO.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from ..dataclasses import (
    ITEM_PACKAGING,
    ITEM_PRODUCT,
    DerivedFields,
    Item,
    Option,
    Quote,
)
from .utils import HUNDRED, ONE, ZERO, ceil_div, safe_div, to_decimal, to_int

VAT_FACTOR = Decimal("1.18")
PROJECT_PRICE_MARGIN = Decimal("1.1")
PROJECT_PRICE_MARGIN_THRESHOLD = Decimal("600")

WORK_COST_PER_PRODUCT = Decimal("0.5")
WORK_COST_BOX = Decimal("2")
WORK_COST_DEFAULT = Decimal("1")

BOX_NAME_KEYWORDS = ("קופסה", "קופסא", "box")
PACKAGING_TYPE_KEYWORDS = ("אריזה", "מיתוג", "קיטלוג")
BOX_WRAP_PRODUCT_TYPE = "אריזה"

OVERRIDABLE_FIELDS = ("profit_target", "agent_commission")


def classify_product_type(product_type: Optional[str]) -> str:
    """Catalog product type -> item bucket (packaging / branding / cataloging roll into packaging)."""
    text = (product_type or "").strip().lower()
    if any(keyword in text for keyword in PACKAGING_TYPE_KEYWORDS):
        return ITEM_PACKAGING
    return ITEM_PRODUCT


def is_box_wrap(product_type: Optional[str]) -> bool:
    return (product_type or "").strip() == BOX_WRAP_PRODUCT_TYPE


def has_box_packaging(items: Iterable[Item]) -> bool:
    for item in items:
        if not item.is_packaging:
            continue
        name = (item.name or "").lower()
        if any(keyword in name for keyword in BOX_NAME_KEYWORDS):
            return True
    return False


def effective_budget(quote: Quote) -> Decimal:
    budget = to_decimal(quote.budget_per_package)
    if quote.include_vat:
        return budget / VAT_FACTOR
    return budget


def effective_percentage(option: Option, quote: Quote, field_name: str) -> Decimal:
    """Option value when the user overrode it by hand, otherwise the quote default."""
    if field_name in option.manual_overrides:
        value = getattr(option, field_name)
        if value is not None:
            return to_decimal(value)
    return to_decimal(getattr(quote, field_name))


def project_price_to_client(raw: Decimal) -> Decimal:
    if raw < PROJECT_PRICE_MARGIN_THRESHOLD:
        return raw * PROJECT_PRICE_MARGIN
    return raw


def derive_option(option: Option, quote: Quote) -> DerivedFields:
    products_cost = ZERO
    packaging_items_cost = ZERO
    product_quantity = 0
    for item in option.items:
        price = to_decimal(item.price)
        if item.type == ITEM_PACKAGING:
            packaging_items_cost += price
        else:
            products_cost += price
            product_quantity += 1

    budget = effective_budget(quote)
    package_quantity = max(to_int(quote.package_quantity) or 0, 0)

    work_base = WORK_COST_BOX if has_box_packaging(option.items) else WORK_COST_DEFAULT
    packaging_work_cost = product_quantity * WORK_COST_PER_PRODUCT + work_base

    units_per_carton = to_int(option.units_per_carton, default=None)
    if not units_per_carton or units_per_carton <= 0:
        units_per_carton = 1
    delivery_boxes_count = ceil_div(package_quantity, units_per_carton)
    final_boxes = to_int(option.final_delivery_boxes, default=None)
    effective_delivery_boxes = final_boxes if final_boxes is not None else delivery_boxes_count

    if quote.include_shipping:
        shipping_cost_per_package = safe_div(to_decimal(option.shipping_price_to_client), Decimal(package_quantity))
    else:
        shipping_cost_per_package = ZERO

    profit_fraction = effective_percentage(option, quote, "profit_target") / HUNDRED
    commission_fraction = effective_percentage(option, quote, "agent_commission") / HUNDRED
    additional_expenses = to_decimal(option.additional_expenses)

    cost_price = budget * (ONE - profit_fraction - commission_fraction)
    budget_remaining = cost_price - (
        shipping_cost_per_package
        + products_cost
        + packaging_items_cost
        + additional_expenses
        + packaging_work_cost
    )
    profit_per_deal = (
        budget
        - shipping_cost_per_package
        - products_cost
        - additional_expenses
        - packaging_items_cost
        - packaging_work_cost
        - commission_fraction * budget
    )
    profit_percentage = safe_div(profit_per_deal, budget)
    total_deal_profit = profit_per_deal * package_quantity

    raw_project_price = to_decimal(option.project_price_before_vat)
    to_client_before_vat = project_price_to_client(raw_project_price)
    to_client_with_vat = to_client_before_vat * VAT_FACTOR
    revenue = budget * package_quantity + to_client_before_vat

    return DerivedFields(
        effective_budget_per_package=budget,
        products_cost=products_cost,
        packaging_items_cost=packaging_items_cost,
        product_quantity=product_quantity,
        packaging_work_cost=packaging_work_cost,
        delivery_boxes_count=delivery_boxes_count,
        effective_delivery_boxes=effective_delivery_boxes,
        shipping_cost_per_package=shipping_cost_per_package,
        cost_price=cost_price,
        budget_remaining_for_products=budget_remaining,
        profit_per_deal=profit_per_deal,
        actual_profit=profit_per_deal,
        actual_profit_percentage=profit_percentage,
        total_deal_profit=total_deal_profit,
        project_price_with_vat=raw_project_price * VAT_FACTOR,
        project_price_to_client_before_vat=to_client_before_vat,
        project_price_to_client_with_vat=to_client_with_vat,
        revenue_without_vat=revenue,
    )
