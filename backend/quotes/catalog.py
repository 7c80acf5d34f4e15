"""Sidebar search and ordering over catalog products and packages."""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, List, Sequence, TypeVar

from pricing.dataclasses import Package, Product
from pricing.services.utils import ZERO

T = TypeVar("T")


def _price_matches(price: Decimal, term: str) -> bool:
    try:
        return Decimal(term) == price
    except ArithmeticError:
        return False


def _order(rows: List[T], price_of: Callable[[T], Decimal], sort: str) -> List[T]:
    if sort == "priceHighToLow":
        return sorted(rows, key=price_of, reverse=True)
    if sort == "priceLowToHigh":
        return sorted(rows, key=price_of)
    return rows


def filter_products(products: Sequence[Product], search: str = "", sort: str = "all") -> List[Product]:
    term = (search or "").strip().lower()
    rows = [
        p for p in products
        if not term
        or term in p.name.lower()
        or term in (p.details or "").lower()
        or _price_matches(p.price, term)
    ]
    return _order(rows, lambda p: p.price or ZERO, sort)


def filter_packages(packages: Sequence[Package], search: str = "", sort: str = "all") -> List[Package]:
    term = (search or "").strip().lower()
    rows = [
        p for p in packages
        if not term
        or term in p.name.lower()
        or _price_matches(p.package_price, term)
    ]
    return _order(rows, lambda p: p.package_price or ZERO, sort)
