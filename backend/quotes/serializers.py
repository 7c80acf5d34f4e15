from __future__ import annotations

from decimal import ROUND_HALF_UP

from rest_framework import serializers

from pricing.dataclasses import ITEM_PRODUCT, ITEM_TYPES
from pricing.services.derivation import OVERRIDABLE_FIELDS
from record_store.gateway import is_valid_record_id

from .models import QuoteDraft


def money(**kwargs):
    return serializers.DecimalField(max_digits=None, decimal_places=2, rounding=ROUND_HALF_UP, **kwargs)


# ---------- TREE (read-only projections of the pricing dataclasses) ----------
class ItemSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    details = serializers.CharField()
    price = money()
    type = serializers.CharField()
    record_id = serializers.CharField(allow_null=True)
    product_type = serializers.CharField()
    is_custom = serializers.BooleanField()
    is_editable = serializers.BooleanField()
    boxes_per_carton = serializers.IntegerField(allow_null=True)


class DerivedFieldsSerializer(serializers.Serializer):
    effective_budget_per_package = money()
    products_cost = money()
    packaging_items_cost = money()
    product_quantity = serializers.IntegerField()
    packaging_work_cost = money()
    delivery_boxes_count = serializers.IntegerField()
    effective_delivery_boxes = serializers.IntegerField()
    shipping_cost_per_package = money()
    cost_price = money()
    budget_remaining_for_products = money()
    profit_per_deal = money()
    actual_profit = money()
    actual_profit_percentage = serializers.DecimalField(max_digits=None, decimal_places=4, rounding=ROUND_HALF_UP)
    total_deal_profit = money()
    project_price_with_vat = money()
    project_price_to_client_before_vat = money()
    project_price_to_client_with_vat = money()
    revenue_without_vat = money()


class OptionSerializer(serializers.Serializer):
    key = serializers.CharField()
    label = serializers.CharField()
    title = serializers.CharField()
    record_id = serializers.CharField(allow_null=True)
    items = ItemSerializer(many=True)

    package_id = serializers.CharField(allow_null=True)
    package_number = serializers.CharField(allow_null=True)
    package_price = money()
    image = serializers.CharField(allow_null=True)
    packaging = serializers.CharField()

    agent = serializers.CharField()
    profit_target = money(allow_null=True)
    agent_commission = money(allow_null=True)
    additional_expenses = money()
    units_per_carton = serializers.IntegerField(allow_null=True)
    final_delivery_boxes = serializers.IntegerField(allow_null=True)
    delivery_company = serializers.CharField()
    shipping_company_cost = money()
    shipping_price_to_client = money()
    project_price_before_vat = money()

    status = serializers.CharField()
    internal_status = serializers.CharField()
    option_comments = serializers.CharField()
    is_selected = serializers.BooleanField()
    is_collapsed = serializers.BooleanField()
    is_irrelevant = serializers.BooleanField()

    manual_overrides = serializers.SerializerMethodField()
    derived = DerivedFieldsSerializer()

    def get_manual_overrides(self, obj):
        return sorted(obj.manual_overrides)


class QuoteSerializer(serializers.Serializer):
    record_id = serializers.CharField(allow_null=True)
    quote_number = serializers.CharField()

    customer_name = serializers.CharField()
    customer_email = serializers.CharField()
    customer_phone = serializers.CharField()
    customer_company = serializers.CharField()
    customer_notes = serializers.CharField()
    customer_preferences = serializers.CharField()

    delivery_date = serializers.CharField()
    delivery_time = serializers.CharField()
    delivery_address = serializers.CharField()
    delivery_type = serializers.CharField()
    celebration = serializers.CharField()
    gift_recipients = serializers.CharField()
    customer_card = serializers.CharField()
    customer_sticker = serializers.CharField()
    preferred_packaging = serializers.CharField()
    occasion = serializers.ListField(child=serializers.CharField())

    package_quantity = serializers.IntegerField()
    budget_per_package = money()
    budget_before_vat = money(allow_null=True)
    budget_with_vat = money(allow_null=True)
    include_vat = serializers.BooleanField()
    include_shipping = serializers.BooleanField()
    profit_target = money()
    agent_commission = money()
    agent = serializers.CharField()

    opportunity_id = serializers.CharField(allow_null=True)
    status = serializers.CharField()
    quote_comments = serializers.CharField()

    options = OptionSerializer(many=True)


# ---------- DRAFT ENVELOPE ----------
class QuoteDraftSerializer(serializers.ModelSerializer):
    can_undo = serializers.SerializerMethodField()
    can_redo = serializers.SerializerMethodField()
    quote = serializers.SerializerMethodField()

    class Meta:
        model = QuoteDraft
        fields = [
            "id", "record_id", "quote_number", "state",
            "is_saving", "last_saved_at", "last_error",
            "created_at", "updated_at",
            "can_undo", "can_redo", "quote",
        ]
        read_only_fields = fields

    def _workspace(self, obj):
        # one rebuild per draft, shared by the three method fields
        cache = self.context.setdefault("_workspaces", {})
        if obj.pk not in cache:
            cache[obj.pk] = obj.workspace()
        return cache[obj.pk]

    def get_can_undo(self, obj):
        return self._workspace(obj).history.can_undo

    def get_can_redo(self, obj):
        return self._workspace(obj).history.can_redo

    def get_quote(self, obj):
        return QuoteSerializer(self._workspace(obj).quote).data


class QuoteDraftListSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteDraft
        fields = ["id", "record_id", "quote_number", "state", "is_saving", "last_saved_at", "updated_at"]
        read_only_fields = fields


# ---------- CATALOG ----------
class ProductSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    details = serializers.CharField()
    marketing_description = serializers.CharField()
    price = money()
    product_type = serializers.CharField()
    inventory = serializers.CharField()
    boxes_per_carton = serializers.IntegerField()
    type = serializers.CharField()


class PackageSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    package_number = serializers.CharField(allow_null=True)
    package_price = money()
    items = ProductSerializer(many=True)
    packaging_items = ProductSerializer(many=True)
    parallel_packages = serializers.ListField(child=serializers.CharField())
    image_url = serializers.CharField(allow_null=True)


# ---------- REQUEST BODIES ----------
def validate_record_id(value):
    if value and not is_valid_record_id(value):
        raise serializers.ValidationError("Not a valid record id.")
    return value


class DraftCreateSerializer(serializers.Serializer):
    record_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, validators=[validate_record_id])
    quote_number = serializers.CharField(required=False, allow_blank=True, default="")


class DraftLoadSerializer(serializers.Serializer):
    record_id = serializers.CharField(validators=[validate_record_id])
    refresh = serializers.BooleanField(required=False, default=False)


class OptionUpdateSerializer(serializers.Serializer):
    """`changes` are validated field by field inside the workspace."""
    changes = serializers.DictField(required=False, default=dict)
    reset = serializers.ListField(
        child=serializers.ChoiceField(choices=OVERRIDABLE_FIELDS), required=False, default=list
    )


class CustomItemSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=ITEM_TYPES, required=False, default=ITEM_PRODUCT)


class MoveItemSerializer(serializers.Serializer):
    item_id = serializers.CharField()
    target_id = serializers.CharField()


class StatusSerializer(serializers.Serializer):
    status = serializers.CharField(allow_blank=True)


CATALOG_SORTS = ("all", "priceHighToLow", "priceLowToHigh")


class CatalogQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True, default="")
    sort = serializers.ChoiceField(choices=CATALOG_SORTS, required=False, default="all")
