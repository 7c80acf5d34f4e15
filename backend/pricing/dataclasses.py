from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Union, get_args, get_origin, get_type_hints

from .services.utils import ZERO

ITEM_PRODUCT = "product"
ITEM_PACKAGING = "packaging"
ITEM_TYPES = (ITEM_PRODUCT, ITEM_PACKAGING)

DEFAULT_PROFIT_TARGET = Decimal("36")
DEFAULT_AGENT_COMMISSION = ZERO


def option_label(index: int) -> str:
    """A, B, ... Z, AA, AB, ... by position."""
    label = ""
    index += 1
    while index > 0:
        index, rem = divmod(index - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


@dataclass
class Item:
    id: str
    name: str = ""
    details: str = ""
    price: Decimal = ZERO
    type: str = ITEM_PRODUCT
    record_id: Optional[str] = None  # catalog record this line was dropped from
    product_type: str = ""
    is_custom: bool = False
    is_editable: bool = True
    boxes_per_carton: Optional[int] = None

    @property
    def is_packaging(self) -> bool:
        return self.type == ITEM_PACKAGING


@dataclass
class DerivedFields:
    effective_budget_per_package: Decimal = ZERO
    products_cost: Decimal = ZERO
    packaging_items_cost: Decimal = ZERO
    product_quantity: int = 0
    packaging_work_cost: Decimal = ZERO
    delivery_boxes_count: int = 0
    effective_delivery_boxes: int = 0
    shipping_cost_per_package: Decimal = ZERO
    cost_price: Decimal = ZERO
    budget_remaining_for_products: Decimal = ZERO
    profit_per_deal: Decimal = ZERO
    actual_profit: Decimal = ZERO
    actual_profit_percentage: Decimal = ZERO
    total_deal_profit: Decimal = ZERO
    project_price_with_vat: Decimal = ZERO
    project_price_to_client_before_vat: Decimal = ZERO
    project_price_to_client_with_vat: Decimal = ZERO
    revenue_without_vat: Decimal = ZERO


DERIVED_FIELD_NAMES = tuple(f.name for f in fields(DerivedFields))


@dataclass
class Option:
    key: str
    label: str = "A"
    title: str = ""
    items: List[Item] = field(default_factory=list)
    record_id: Optional[str] = None

    # package the option was built from
    package_id: Optional[str] = None
    package_number: Optional[str] = None
    package_price: Decimal = ZERO
    image: Optional[str] = None
    packaging: str = ""

    # pricing inputs
    agent: str = ""
    profit_target: Optional[Decimal] = None
    agent_commission: Optional[Decimal] = None
    additional_expenses: Decimal = ZERO
    units_per_carton: Optional[int] = None
    final_delivery_boxes: Optional[int] = None
    delivery_company: str = ""
    shipping_company_cost: Decimal = ZERO
    shipping_price_to_client: Decimal = ZERO
    project_price_before_vat: Decimal = ZERO

    status: str = ""
    internal_status: str = ""
    option_comments: str = ""

    is_selected: bool = False
    is_collapsed: bool = False
    is_irrelevant: bool = False

    manual_overrides: Set[str] = field(default_factory=set)
    derived: DerivedFields = field(default_factory=DerivedFields)
    pricing_fingerprint: str = ""

    def find_item(self, item_id: str) -> Optional[Item]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def unique_item_id(self, base: str) -> str:
        taken = {i.id for i in self.items}
        if base not in taken:
            return base
        n = 2
        while f"{base}-{n}" in taken:
            n += 1
        return f"{base}-{n}"

    @property
    def product_items(self) -> List[Item]:
        return [i for i in self.items if not i.is_packaging]

    @property
    def packaging_items(self) -> List[Item]:
        return [i for i in self.items if i.is_packaging]


@dataclass
class Quote:
    record_id: Optional[str] = None
    quote_number: str = ""

    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    customer_company: str = ""
    customer_notes: str = ""
    customer_preferences: str = ""

    delivery_date: str = ""
    delivery_time: str = ""
    delivery_address: str = ""
    delivery_type: str = ""
    celebration: str = ""
    gift_recipients: str = ""
    customer_card: str = ""
    customer_sticker: str = ""
    preferred_packaging: str = ""
    occasion: List[str] = field(default_factory=list)

    package_quantity: int = 0
    budget_per_package: Decimal = ZERO
    budget_before_vat: Optional[Decimal] = None
    budget_with_vat: Optional[Decimal] = None
    include_vat: bool = False
    include_shipping: bool = False
    profit_target: Decimal = DEFAULT_PROFIT_TARGET
    agent_commission: Decimal = DEFAULT_AGENT_COMMISSION
    agent: str = ""

    opportunity_id: Optional[str] = None
    status: str = ""
    quote_comments: str = ""

    options: List[Option] = field(default_factory=list)

    def find_option(self, key: str) -> Optional[Option]:
        for option in self.options:
            if option.key == key:
                return option
        return None

    @property
    def relevant_options(self) -> List[Option]:
        return [o for o in self.options if not o.is_irrelevant]

    @property
    def irrelevant_options(self) -> List[Option]:
        return [o for o in self.options if o.is_irrelevant]


@dataclass
class Product:
    id: str
    name: str
    details: str = ""
    marketing_description: str = ""
    price: Decimal = ZERO
    product_type: str = ""
    inventory: str = ""
    boxes_per_carton: int = 1
    type: str = ITEM_PRODUCT


@dataclass
class Package:
    id: str
    name: str
    package_number: Optional[str] = None
    package_price: Decimal = ZERO
    items: List[Product] = field(default_factory=list)
    packaging_items: List[Product] = field(default_factory=list)
    parallel_packages: List[str] = field(default_factory=list)
    image_url: Optional[str] = None


@dataclass
class SaveResult:
    quote_id: str
    option_ids: List[str] = field(default_factory=list)


# ---------- JSON round-trip for drafts and history snapshots ----------

def to_jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if is_dataclass(value):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def _decode(hint, value):
    if value is None:
        return None
    origin = get_origin(hint)
    if origin is Union:
        inner = [a for a in get_args(hint) if a is not type(None)]
        return _decode(inner[0], value)
    if origin is list:
        (inner,) = get_args(hint)
        return [_decode(inner, v) for v in value]
    if origin is set:
        return set(value)
    if hint is Decimal:
        return Decimal(str(value))
    if isinstance(hint, type) and is_dataclass(hint):
        return from_jsonable(hint, value)
    return value


def from_jsonable(cls, data: Dict[str, Any]):
    """Rebuild a dataclass tree written by to_jsonable; unknown keys are ignored."""
    hints = get_type_hints(cls)
    kwargs = {f.name: _decode(hints[f.name], data[f.name]) for f in fields(cls) if f.name in data}
    return cls(**kwargs)
