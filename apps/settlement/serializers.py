from decimal import Decimal

from rest_framework import serializers

from apps.distribution.models import Customer
from apps.settlement.models import (
    DueCollection,
    OrderCustomerDue,
    OrderDsrDue,
    OrderExpense,
    OrderItemReturn,
    OrderPayment,
)
from apps.wholesale.models import WholesaleOrderItem

MIN_AMOUNT = Decimal("0.01")
MONEY = {"max_digits": 14, "decimal_places": 2}


class PaymentInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=MIN_AMOUNT, **MONEY)
    payment_date = serializers.DateField(required=False)
    method = serializers.CharField(max_length=30, required=False, default="cash")
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ExpenseInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=MIN_AMOUNT, **MONEY)
    expense_type = serializers.CharField(max_length=50, required=False, default="other")
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class CustomerDueInputSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    amount = serializers.DecimalField(min_value=MIN_AMOUNT, **MONEY)


class ItemReturnInputSerializer(serializers.Serializer):
    item = serializers.PrimaryKeyRelatedField(queryset=WholesaleOrderItem.objects.all())
    return_quantity = serializers.IntegerField(min_value=0, default=0)
    return_unit = serializers.CharField(max_length=20, required=False, allow_blank=True)
    return_free_quantity = serializers.IntegerField(min_value=0, default=0)
    return_amount = serializers.DecimalField(min_value=0, required=False, allow_null=True, **MONEY)
    adjustment_discount = serializers.DecimalField(min_value=0, default=0, **MONEY)


class OrderAdjustmentInputSerializer(serializers.Serializer):
    payment_date = serializers.DateField(required=False)
    payments = PaymentInputSerializer(many=True, required=False, default=list)
    expenses = ExpenseInputSerializer(many=True, required=False, default=list)
    customer_dues = CustomerDueInputSerializer(many=True, required=False, default=list)
    item_returns = ItemReturnInputSerializer(many=True, required=False, default=list)


class OrderItemReturnSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="item.product.name", read_only=True)

    class Meta:
        model = OrderItemReturn
        fields = [
            "id",
            "item",
            "product_name",
            "return_quantity",
            "return_unit",
            "returned_base_quantity",
            "return_free_quantity",
            "return_amount",
            "adjustment_discount",
            "created_at",
        ]
        read_only_fields = fields


class OrderPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderPayment
        fields = ["id", "amount", "payment_date", "method", "note", "created_at"]
        read_only_fields = fields


class OrderExpenseSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderExpense
        fields = ["id", "amount", "expense_type", "note", "created_at"]
        read_only_fields = fields


class OrderCustomerDueSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    order_date = serializers.DateField(source="order.order_date", read_only=True)
    outstanding = serializers.DecimalField(read_only=True, **MONEY)

    class Meta:
        model = OrderCustomerDue
        fields = [
            "id",
            "order",
            "order_number",
            "order_date",
            "customer",
            "customer_name",
            "amount",
            "collected_amount",
            "outstanding",
            "created_at",
        ]
        read_only_fields = fields


class OrderDsrDueSerializer(serializers.ModelSerializer):
    dsr_name = serializers.CharField(source="dsr.name", read_only=True)
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    order_date = serializers.DateField(source="order.order_date", read_only=True)
    outstanding = serializers.DecimalField(read_only=True, **MONEY)

    class Meta:
        model = OrderDsrDue
        fields = [
            "id",
            "order",
            "order_number",
            "order_date",
            "dsr",
            "dsr_name",
            "amount",
            "collected_amount",
            "outstanding",
            "created_at",
        ]
        read_only_fields = fields


class DueCollectionSerializer(serializers.ModelSerializer):
    order_number = serializers.SerializerMethodField()
    collected_by_username = serializers.CharField(source="collected_by.username", read_only=True, default=None)

    class Meta:
        model = DueCollection
        fields = [
            "id",
            "customer_due",
            "dsr_due",
            "order_number",
            "amount",
            "collection_date",
            "note",
            "collected_by_username",
            "created_at",
        ]
        read_only_fields = fields

    def get_order_number(self, obj):
        due = obj.customer_due or obj.dsr_due
        return due.order.order_number


class CollectCustomerDueSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=MIN_AMOUNT, **MONEY)
    due = serializers.PrimaryKeyRelatedField(queryset=OrderCustomerDue.objects.all(), required=False, allow_null=True)
    collection_date = serializers.DateField(required=False)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class CollectDsrDueSerializer(serializers.Serializer):
    due = serializers.PrimaryKeyRelatedField(queryset=OrderDsrDue.objects.all())
    amount = serializers.DecimalField(min_value=MIN_AMOUNT, **MONEY)
    collection_date = serializers.DateField(required=False)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class LedgerQuerySerializer(serializers.Serializer):
    dsr = serializers.IntegerField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_from": "date_from must be before or equal to date_to."})
        return attrs
