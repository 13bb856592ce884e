from rest_framework import serializers

from apps.catalog.models import ProductVariant
from apps.inventory.models import AdjustmentType, StockAdjustment, StockBatch
from apps.suppliers.models import Supplier


class StockBatchSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(source="variant.product_id", read_only=True)
    product_name = serializers.CharField(source="variant.product.name", read_only=True)
    variant_label = serializers.CharField(source="variant.label", read_only=True)
    supplier = serializers.PrimaryKeyRelatedField(
        queryset=Supplier.objects.filter(is_active=True), write_only=True, required=False, allow_null=True
    )
    supplier_name = serializers.SerializerMethodField()

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "variant",
            "variant_label",
            "product_id",
            "product_name",
            "supplier",
            "supplier_name",
            "supplier_price",
            "sell_price",
            "initial_quantity",
            "remaining_quantity",
            "initial_free_qty",
            "remaining_free_qty",
            "purchase_date",
            "note",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "remaining_quantity", "remaining_free_qty", "created_at", "updated_at"]

    def get_supplier_name(self, obj):
        purchase = getattr(obj, "supplier_purchase", None)
        return purchase.supplier.name if purchase else None

    def validate(self, attrs):
        if self.instance is not None and "variant" in attrs and attrs["variant"] != self.instance.variant:
            raise serializers.ValidationError({"variant": "A batch cannot move to another variant."})
        for field in ("supplier_price", "sell_price"):
            if field in attrs and attrs[field] < 0:
                raise serializers.ValidationError({field: "Must be zero or greater."})
        return attrs


class StockAdjustmentSerializer(serializers.ModelSerializer):
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all())
    batch = serializers.PrimaryKeyRelatedField(queryset=StockBatch.objects.all(), required=False, allow_null=True)
    adjustment_type = serializers.ChoiceField(choices=AdjustmentType.choices)
    product_name = serializers.CharField(source="variant.product.name", read_only=True)
    variant_label = serializers.CharField(source="variant.label", read_only=True)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True)

    class Meta:
        model = StockAdjustment
        fields = [
            "id",
            "variant",
            "variant_label",
            "product_name",
            "batch",
            "adjustment_type",
            "quantity",
            "free_quantity",
            "order_id",
            "return_id",
            "note",
            "created_by",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = ["id", "created_by", "created_at"]

    def validate(self, attrs):
        if attrs.get("quantity", 0) == 0 and attrs.get("free_quantity", 0) == 0:
            raise serializers.ValidationError({"quantity": "An adjustment must move at least one unit."})
        return attrs


class VariantStockSerializer(serializers.Serializer):
    variant_id = serializers.IntegerField()
    batches = serializers.IntegerField()
    remaining_quantity = serializers.IntegerField()
    remaining_free_qty = serializers.IntegerField()
