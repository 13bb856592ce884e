from decimal import Decimal

from rest_framework import serializers

from apps.catalog.models import ProductVariant
from apps.distribution.models import Dsr
from apps.inventory.models import StockBatch
from apps.returns.models import DamageReturn, DamageReturnItem, ItemCondition, ReturnType


class DamageReturnItemInputSerializer(serializers.Serializer):
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all())
    batch = serializers.PrimaryKeyRelatedField(queryset=StockBatch.objects.all(), required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    condition = serializers.ChoiceField(choices=ItemCondition.choices, default=ItemCondition.DAMAGED)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class DamageReturnWriteSerializer(serializers.Serializer):
    dsr = serializers.PrimaryKeyRelatedField(queryset=Dsr.objects.all(), required=False, allow_null=True)
    return_date = serializers.DateField()
    return_type = serializers.ChoiceField(choices=ReturnType.choices, default=ReturnType.DAMAGE)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    items = DamageReturnItemInputSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("A return needs at least one item.")
        for item in value:
            if item.get("batch") is None and item.get("unit_price") is None:
                raise serializers.ValidationError("unit_price is required for items without a batch.")
        return value


class DamageReturnItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="variant.product.name", read_only=True)
    variant_label = serializers.CharField(source="variant.label", read_only=True)

    class Meta:
        model = DamageReturnItem
        fields = [
            "id",
            "variant",
            "variant_label",
            "product_name",
            "batch",
            "quantity",
            "unit_price",
            "total",
            "condition",
            "reason",
        ]
        read_only_fields = fields


class DamageReturnSerializer(serializers.ModelSerializer):
    dsr_name = serializers.CharField(source="dsr.name", read_only=True, default=None)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)
    approved_by_username = serializers.CharField(source="approved_by.username", read_only=True, default=None)
    items = DamageReturnItemSerializer(many=True, read_only=True)

    class Meta:
        model = DamageReturn
        fields = [
            "id",
            "return_number",
            "dsr",
            "dsr_name",
            "return_date",
            "return_type",
            "status",
            "total_amount",
            "notes",
            "created_by_username",
            "approved_by_username",
            "approved_at",
            "created_at",
            "items",
        ]
        read_only_fields = fields


class DamageReturnListSerializer(DamageReturnSerializer):
    items = None

    class Meta(DamageReturnSerializer.Meta):
        fields = [f for f in DamageReturnSerializer.Meta.fields if f != "items"]
        read_only_fields = fields
