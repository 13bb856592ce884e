from rest_framework import serializers

from apps.catalog.models import Brand, Category, Product, ProductVariant
from apps.common.models import OrderEditLockMode
from apps.distribution.models import Dsr, Route
from apps.inventory.models import StockBatch
from apps.wholesale.models import OrderStatus, WholesaleOrder, WholesaleOrderItem


class OrderItemInputSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all())
    batch = serializers.PrimaryKeyRelatedField(queryset=StockBatch.objects.all())
    quantity = serializers.IntegerField(min_value=0, default=0)
    unit = serializers.CharField(max_length=20, default="PCS")
    extra_pieces = serializers.IntegerField(min_value=0, default=0)
    free_quantity = serializers.IntegerField(min_value=0, default=0)
    sale_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=0)


class OrderItemPatchSerializer(OrderItemInputSerializer):
    def __init__(self, *args, **kwargs):
        kwargs.setdefault("partial", True)
        super().__init__(*args, **kwargs)


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    brand_name = serializers.CharField(source="product.brand.name", read_only=True)
    variant_label = serializers.CharField(source="variant.label", read_only=True)
    batch_sell_price = serializers.DecimalField(source="batch.sell_price", max_digits=12, decimal_places=2, read_only=True)
    batch_supplier_price = serializers.DecimalField(
        source="batch.supplier_price", max_digits=12, decimal_places=2, read_only=True
    )
    batch_remaining_quantity = serializers.IntegerField(source="batch.remaining_quantity", read_only=True)
    paid_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = WholesaleOrderItem
        fields = [
            "id",
            "product",
            "product_name",
            "brand_name",
            "variant",
            "variant_label",
            "batch",
            "batch_sell_price",
            "batch_supplier_price",
            "batch_remaining_quantity",
            "quantity",
            "unit",
            "extra_pieces",
            "free_quantity",
            "paid_quantity",
            "total_quantity",
            "sale_price",
            "discount",
            "subtotal",
            "net",
        ]
        read_only_fields = fields


class WholesaleOrderListSerializer(serializers.ModelSerializer):
    dsr_name = serializers.CharField(source="dsr.name", read_only=True)
    route_name = serializers.CharField(source="route.name", read_only=True)
    item_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = WholesaleOrder
        fields = [
            "id",
            "order_number",
            "dsr",
            "dsr_name",
            "route",
            "route_name",
            "order_date",
            "subtotal",
            "discount",
            "total",
            "paid_amount",
            "payment_status",
            "status",
            "item_count",
            "created_at",
        ]
        read_only_fields = fields


class WholesaleOrderSerializer(WholesaleOrderListSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    brand_name = serializers.CharField(source="brand.name", read_only=True, default=None)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)
    items = OrderItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta(WholesaleOrderListSerializer.Meta):
        fields = WholesaleOrderListSerializer.Meta.fields + [
            "category",
            "category_name",
            "brand",
            "brand_name",
            "invoice_note",
            "created_by_username",
            "updated_at",
            "items",
        ]
        read_only_fields = fields

    def get_item_count(self, obj):
        return len(obj.items.all())


class WholesaleOrderWriteSerializer(serializers.Serializer):
    dsr = serializers.PrimaryKeyRelatedField(queryset=Dsr.objects.all())
    route = serializers.PrimaryKeyRelatedField(queryset=Route.objects.all())
    order_date = serializers.DateField()
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all(), required=False, allow_null=True)
    brand = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all(), required=False, allow_null=True)
    invoice_note = serializers.CharField(required=False, allow_blank=True, default="")
    items = OrderItemInputSerializer(many=True)
    edit_password = serializers.CharField(write_only=True, required=False, allow_blank=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("An order needs at least one item.")
        return value

    def to_internal_value(self, data):
        attrs = super().to_internal_value(data)
        # items are replaced whole even on PATCH
        if self.partial and "items" in attrs:
            items = OrderItemInputSerializer(data=data.get("items"), many=True)
            if not items.is_valid():
                raise serializers.ValidationError({"items": items.errors})
            attrs["items"] = items.validated_data
        return attrs


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class OrderEditLockSerializer(serializers.Serializer):
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    lock_mode = serializers.ChoiceField(choices=OrderEditLockMode.choices, default=OrderEditLockMode.ALWAYS)
