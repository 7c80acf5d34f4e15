from __future__ import annotations

import hashlib
import json
import logging

from ..dataclasses import DERIVED_FIELD_NAMES, DerivedFields, Option, Quote, to_jsonable
from .derivation import derive_option

logger = logging.getLogger(__name__)

OPTION_INPUT_FIELDS = (
    "profit_target",
    "agent_commission",
    "additional_expenses",
    "units_per_carton",
    "shipping_price_to_client",
    "final_delivery_boxes",
    "project_price_before_vat",
    "manual_overrides",
)
QUOTE_INPUT_FIELDS = (
    "budget_per_package",
    "package_quantity",
    "include_vat",
    "include_shipping",
    "profit_target",
    "agent_commission",
)


def pricing_fingerprint(option: Option, quote: Quote) -> str:
    """Hash of exactly the inputs derive_option reads."""
    payload = {
        "items": [[i.id, to_jsonable(i.price), i.type, i.name] for i in option.items],
        "option": {f: to_jsonable(getattr(option, f)) for f in OPTION_INPUT_FIELDS},
        "quote": {f: to_jsonable(getattr(quote, f)) for f in QUOTE_INPUT_FIELDS},
    }
    raw = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def apply_derived(option: Option, derived: DerivedFields) -> None:
    # Field-by-field so nothing outside the derived block is ever replaced.
    for name in DERIVED_FIELD_NAMES:
        setattr(option.derived, name, getattr(derived, name))


def recalculate_option(option: Option, quote: Quote) -> bool:
    """Re-derive one option if its inputs changed since the last pass. Returns True when it ran."""
    fingerprint = pricing_fingerprint(option, quote)
    if fingerprint == option.pricing_fingerprint:
        return False
    apply_derived(option, derive_option(option, quote))
    option.pricing_fingerprint = fingerprint
    return True


def recalculate_quote(quote: Quote) -> int:
    recalculated = 0
    for option in quote.options:
        if recalculate_option(option, quote):
            recalculated += 1
    if recalculated:
        logger.debug("Recalculated %s of %s options for quote %s", recalculated, len(quote.options), quote.quote_number or quote.record_id)
    return recalculated
