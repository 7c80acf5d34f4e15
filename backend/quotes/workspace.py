"""
Mutation entry points for one quote's working tree.

Every public mutator edits the current tree in place, re-runs the pricing
recalculation for the whole quote and records an option snapshot in the
undo history. Views load a workspace from the locked draft row, call one
mutator and store the result back.
"""
from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from pricing.dataclasses import (
    ITEM_PACKAGING,
    ITEM_PRODUCT,
    ITEM_TYPES,
    Item,
    Option,
    Quote,
    SaveResult,
    from_jsonable,
    option_label,
    to_jsonable,
)
from pricing.services.derivation import OVERRIDABLE_FIELDS, VAT_FACTOR, classify_product_type, is_box_wrap
from pricing.services.recalc import recalculate_quote
from pricing.services.utils import MAX_AMOUNT, MAX_COUNT, ZERO, in_range, q2, q4, to_bool, to_decimal, to_int

from .history import History
from .payloads import CatalogLine, DropPayload, PackagePayload, SingleItemPayload

logger = logging.getLogger(__name__)

DUPLICATE_TITLE_SUFFIX = " (עותק)"


class WorkspaceError(Exception):
    """Base exception for rejected workspace edits."""


class NotInWorkspace(WorkspaceError):
    """Unknown option key or item id."""


class InvalidEdit(WorkspaceError):
    """Unknown field name, read-only item or bad value."""


def _text(value) -> str:
    return "" if value is None else str(value)


def _optional_text(value) -> Optional[str]:
    text = _text(value).strip()
    return text or None


def _occasion(value) -> List[str]:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _amount(value, default=ZERO):
    amount = to_decimal(value, default=default)
    if amount is None:
        return None
    if not in_range(amount, MAX_AMOUNT):
        raise InvalidEdit(f"Amount {value!r} is out of range")
    return q4(amount)


def _optional_decimal(value):
    return _amount(value, default=None)


def _count(value, default=0):
    count = to_int(value, default=default)
    if not in_range(count, MAX_COUNT):
        raise InvalidEdit(f"Count {value!r} is out of range")
    return count


def _optional_int(value):
    return _count(value, default=None)


QUOTE_FIELDS = {
    "quote_number": _text,
    "customer_name": _text,
    "customer_email": _text,
    "customer_phone": _text,
    "customer_company": _text,
    "customer_notes": _text,
    "customer_preferences": _text,
    "delivery_date": _text,
    "delivery_time": _text,
    "delivery_address": _text,
    "delivery_type": _text,
    "celebration": _text,
    "gift_recipients": _text,
    "customer_card": _text,
    "customer_sticker": _text,
    "preferred_packaging": _text,
    "occasion": _occasion,
    "package_quantity": lambda v: max(_count(v) or 0, 0),
    "budget_per_package": _amount,
    "include_vat": to_bool,
    "include_shipping": to_bool,
    "profit_target": _amount,
    "agent_commission": _amount,
    "agent": _text,
    "opportunity_id": _optional_text,
    "status": _text,
    "quote_comments": _text,
}

OPTION_FIELDS = {
    "title": _text,
    "agent": _text,
    "profit_target": _optional_decimal,
    "agent_commission": _optional_decimal,
    "additional_expenses": _amount,
    "units_per_carton": _optional_int,
    "final_delivery_boxes": _optional_int,
    "delivery_company": _text,
    "shipping_company_cost": _amount,
    "shipping_price_to_client": _amount,
    "project_price_before_vat": _amount,
    "package_id": _optional_text,
    "package_number": _optional_text,
    "package_price": _amount,
    "image": _optional_text,
    "packaging": _text,
    "status": _text,
    "internal_status": _text,
    "option_comments": _text,
    "is_selected": to_bool,
    "is_collapsed": to_bool,
    "is_irrelevant": to_bool,
}

ITEM_FIELDS = {
    "name": _text,
    "details": _text,
    "price": _amount,
}


def _token() -> str:
    return uuid.uuid4().hex[:12]


def new_option_key() -> str:
    return uuid.uuid4().hex


class QuoteWorkspace:
    def __init__(self, quote: Quote, history: Optional[History] = None) -> None:
        self.quote = quote
        self.history = history or History()

    @classmethod
    def start(cls, quote: Quote) -> "QuoteWorkspace":
        """Fresh workspace: guarantee one option, derive everything, seed the history."""
        if not quote.options:
            quote.options = [Option(key=new_option_key(), title="אופציה 1")]
        ws = cls(quote)
        ws._relabel()
        recalculate_quote(quote)
        ws.history.initialize(ws.options_snapshot())
        return ws

    # ---------- plumbing ----------

    def options_snapshot(self) -> List[Dict[str, Any]]:
        return to_jsonable(self.quote.options)

    def _commit(self) -> None:
        recalculate_quote(self.quote)
        self.history.push(self.options_snapshot())

    def _relabel(self) -> None:
        for index, option in enumerate(self.quote.options):
            option.label = option_label(index)

    def option(self, key: str) -> Option:
        option = self.quote.find_option(key)
        if option is None:
            raise NotInWorkspace(f"Unknown option {key!r}")
        return option

    def item(self, key: str, item_id: str) -> Item:
        item = self.option(key).find_item(item_id)
        if item is None:
            raise NotInWorkspace(f"Unknown item {item_id!r} in option {key!r}")
        return item

    @staticmethod
    def _apply(target, changes: Dict[str, Any], allowed: Dict[str, Any]) -> List[str]:
        unknown = sorted(set(changes) - set(allowed))
        if unknown:
            raise InvalidEdit(f"Unknown field(s): {', '.join(unknown)}")
        for name, value in changes.items():
            setattr(target, name, allowed[name](value))
        return list(changes)

    # ---------- quote ----------

    def update_quote(self, changes: Dict[str, Any]) -> Quote:
        changes = dict(changes)
        budget_pair = {name: changes.pop(name) for name in ("budget_before_vat", "budget_with_vat") if name in changes}
        self._apply(self.quote, changes, QUOTE_FIELDS)
        if "budget_before_vat" in budget_pair:
            self._set_budget_before_vat(budget_pair["budget_before_vat"])
        elif "budget_with_vat" in budget_pair:
            self._set_budget_with_vat(budget_pair["budget_with_vat"])
        self._commit()
        return self.quote

    def _set_budget_before_vat(self, value) -> None:
        amount = _optional_decimal(value)
        self.quote.budget_before_vat = amount
        self.quote.budget_with_vat = q2(amount * VAT_FACTOR) if amount else None

    def _set_budget_with_vat(self, value) -> None:
        amount = _optional_decimal(value)
        self.quote.budget_with_vat = amount
        self.quote.budget_before_vat = q2(amount / VAT_FACTOR) if amount else None

    def set_budget_before_vat(self, value) -> Quote:
        self._set_budget_before_vat(value)
        self._commit()
        return self.quote

    def set_budget_with_vat(self, value) -> Quote:
        self._set_budget_with_vat(value)
        self._commit()
        return self.quote

    # ---------- options ----------

    def add_option(self) -> Option:
        option = Option(key=new_option_key(), title=f"אופציה {len(self.quote.options) + 1}")
        self.quote.options.append(option)
        self._relabel()
        self._commit()
        return option

    def delete_option(self, key: str) -> bool:
        option = self.option(key)
        if len(self.quote.options) <= 1:
            logger.debug("Refusing to delete the only option of quote %s", self.quote.record_id)
            return False
        self.quote.options.remove(option)
        self._relabel()
        self._commit()
        return True

    def duplicate_option(self, key: str) -> Option:
        source = self.option(key)
        clone = copy.deepcopy(source)
        clone.key = new_option_key()
        clone.record_id = None
        clone.title = f"{source.title}{DUPLICATE_TITLE_SUFFIX}"
        clone.is_collapsed = False
        self.quote.options.append(clone)
        self._relabel()
        self._commit()
        return clone

    def update_option(self, key: str, changes: Dict[str, Any], reset: Iterable[str] = ()) -> Option:
        option = self.option(key)
        reset = list(reset)
        bad_reset = sorted(set(reset) - set(OVERRIDABLE_FIELDS))
        if bad_reset:
            raise InvalidEdit(f"Cannot reset field(s): {', '.join(bad_reset)}")

        changed = self._apply(option, changes, OPTION_FIELDS)
        for name in changed:
            if name in OVERRIDABLE_FIELDS:
                if getattr(option, name) is None:
                    option.manual_overrides.discard(name)
                else:
                    option.manual_overrides.add(name)
        for name in reset:
            option.manual_overrides.discard(name)
            setattr(option, name, None)
        if "is_irrelevant" in changes and option.is_irrelevant:
            option.is_collapsed = True

        self._commit()
        return option

    # ---------- items ----------

    def add_custom_item(self, key: str, item_type: str = ITEM_PRODUCT) -> Item:
        if item_type not in ITEM_TYPES:
            raise InvalidEdit(f"Unknown item type {item_type!r}")
        option = self.option(key)
        item = Item(id=f"custom-{item_type}-{_token()}", type=item_type, is_custom=True, is_editable=True)

        if item_type == ITEM_PACKAGING:
            last = max((i for i, it in enumerate(option.items) if it.is_packaging), default=-1)
            position = len(option.items) if last == -1 else last + 1
        else:
            last = max((i for i, it in enumerate(option.items) if not it.is_packaging), default=-1)
            position = 0 if last == -1 else last + 1
        option.items.insert(position, item)
        self._commit()
        return item

    def remove_item(self, key: str, item_id: str) -> None:
        option = self.option(key)
        option.items.remove(self.item(key, item_id))
        self._commit()

    def duplicate_item(self, key: str, item_id: str) -> Item:
        option = self.option(key)
        source = self.item(key, item_id)
        clone = copy.deepcopy(source)
        clone.id = f"{source.id}-copy-{_token()}"
        option.items.insert(option.items.index(source) + 1, clone)
        self._commit()
        return clone

    def update_item(self, key: str, item_id: str, changes: Dict[str, Any]) -> Item:
        item = self.item(key, item_id)
        if not item.is_editable:
            raise InvalidEdit(f"Item {item_id!r} is read-only")
        self._apply(item, changes, ITEM_FIELDS)
        self._commit()
        return item

    def move_item(self, key: str, item_id: str, target_id: str) -> List[Item]:
        option = self.option(key)
        moving = self.item(key, item_id)
        target = self.item(key, target_id)
        if moving is not target:
            target_index = option.items.index(target)
            option.items.remove(moving)
            option.items.insert(target_index, moving)
            self._commit()
        return option.items

    # ---------- drops ----------

    def drop(self, key: str, payload: DropPayload) -> Option:
        option = self.option(key)
        if isinstance(payload, PackagePayload):
            self._drop_package(option, payload)
        elif isinstance(payload, SingleItemPayload):
            self._drop_item(option, payload.product)
        else:
            raise InvalidEdit(f"Unsupported payload {type(payload).__name__}")
        self._commit()
        return option

    @staticmethod
    def _item_from_line(option: Option, line: CatalogLine, item_type: str) -> Item:
        return Item(
            id=option.unique_item_id(line.id),
            name=line.display_name,
            details=line.details,
            price=line.price,
            type=item_type,
            record_id=line.id,
            product_type=line.product_type,
            is_custom=False,
            is_editable=True,
            boxes_per_carton=line.boxes_per_carton,
        )

    def _drop_item(self, option: Option, line: CatalogLine) -> None:
        item_type = classify_product_type(line.product_type)
        option.items.append(self._item_from_line(option, line, item_type))
        if item_type == ITEM_PACKAGING and is_box_wrap(line.product_type):
            option.packaging = line.display_name
            option.units_per_carton = line.boxes_per_carton

    def _drop_package(self, option: Option, payload: PackagePayload) -> None:
        option.items = []
        for line in payload.items:
            option.items.append(self._item_from_line(option, line, ITEM_PRODUCT))
        for line in payload.packaging_items:
            option.items.append(self._item_from_line(option, line, ITEM_PACKAGING))

        wrap = next((line for line in payload.packaging_items if is_box_wrap(line.product_type)), None)
        option.package_id = payload.id
        option.package_number = payload.package_number
        option.package_price = payload.package_price
        option.title = payload.name or option.title
        option.image = payload.image_url
        option.packaging = wrap.display_name if wrap else ""
        option.units_per_carton = wrap.boxes_per_carton if wrap else None

    # ---------- history ----------

    def _restore(self, snapshot) -> None:
        self.quote.options = [from_jsonable(Option, data) for data in snapshot]
        recalculate_quote(self.quote)

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    # ---------- persistence results ----------

    def apply_save_result(self, result: SaveResult, option_keys: List[str]) -> None:
        """Stamp record ids from a finished save onto the current tree and every history snapshot."""
        self.quote.record_id = result.quote_id
        by_key = dict(zip(option_keys, result.option_ids))
        for option in self.quote.options:
            if option.key in by_key:
                option.record_id = by_key[option.key]
        for snapshot in self.history.entries:
            for data in snapshot:
                if data.get("key") in by_key:
                    data["record_id"] = by_key[data["key"]]
