"""
Catalog drop payloads.

A drop onto an option is either a single catalog product or a whole package.
The two shapes are told apart by an explicit `kind` tag ("item" / "package").
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pricing.services.utils import MAX_AMOUNT, MAX_COUNT, ZERO, in_range, q4, to_decimal, to_int

KIND_ITEM = "item"
KIND_PACKAGE = "package"


class PayloadError(ValueError):
    """Raised when a drop payload lacks its tag or identity, or carries an out-of-range number."""


def _price(value) -> Decimal:
    price = to_decimal(value)
    if not in_range(price, MAX_AMOUNT):
        raise PayloadError(f"Price {value!r} is out of range")
    return q4(price)


def _boxes(value) -> Optional[int]:
    boxes = to_int(value, default=None)
    if not in_range(boxes, MAX_COUNT):
        raise PayloadError(f"Boxes per carton {value!r} is out of range")
    return boxes or None


@dataclass
class CatalogLine:
    id: str
    name: str = ""
    marketing_description: str = ""
    details: str = ""
    price: Decimal = ZERO
    product_type: str = ""
    boxes_per_carton: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.marketing_description or self.name

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "CatalogLine":
        line_id = str(data.get("id") or "").strip()
        if not line_id:
            raise PayloadError("Catalog line without an id")
        return cls(
            id=line_id,
            name=str(data.get("name") or ""),
            marketing_description=str(data.get("marketing_description") or ""),
            details=str(data.get("details") or ""),
            price=_price(data.get("price")),
            product_type=str(data.get("product_type") or ""),
            boxes_per_carton=_boxes(data.get("boxes_per_carton")),
        )


@dataclass
class SingleItemPayload:
    product: CatalogLine
    kind: str = KIND_ITEM


@dataclass
class PackagePayload:
    id: str
    name: str = ""
    package_price: Decimal = ZERO
    image_url: Optional[str] = None
    package_number: Optional[str] = None
    items: List[CatalogLine] = field(default_factory=list)
    packaging_items: List[CatalogLine] = field(default_factory=list)
    kind: str = KIND_PACKAGE


DropPayload = Union[SingleItemPayload, PackagePayload]


def parse_payload(data: Dict[str, Any]) -> DropPayload:
    if not isinstance(data, dict):
        raise PayloadError("Drop payload must be an object")
    kind = data.get("kind")
    if kind == KIND_ITEM:
        return SingleItemPayload(product=CatalogLine.from_data(data))
    if kind == KIND_PACKAGE:
        package_id = str(data.get("id") or "").strip()
        if not package_id:
            raise PayloadError("Package payload without an id")
        return PackagePayload(
            id=package_id,
            name=str(data.get("name") or ""),
            package_price=_price(data.get("package_price")),
            image_url=data.get("image_url") or None,
            package_number=(str(data["package_number"]) if data.get("package_number") else None),
            items=[CatalogLine.from_data(d) for d in data.get("items") or []],
            packaging_items=[CatalogLine.from_data(d) for d in data.get("packaging_items") or []],
        )
    raise PayloadError(f"Unknown drop kind {kind!r}; expected {KIND_ITEM!r} or {KIND_PACKAGE!r}")
