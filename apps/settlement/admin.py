from django.contrib import admin

from apps.settlement.models import (
    DueCollection,
    OrderCustomerDue,
    OrderDsrDue,
    OrderExpense,
    OrderItemReturn,
    OrderPayment,
)


@admin.register(OrderItemReturn)
class OrderItemReturnAdmin(admin.ModelAdmin):
    list_display = ("order", "item", "returned_base_quantity", "return_free_quantity", "return_amount", "adjustment_discount")
    search_fields = ("order__order_number",)


@admin.register(OrderPayment)
class OrderPaymentAdmin(admin.ModelAdmin):
    list_display = ("order", "amount", "payment_date", "method", "created_by")
    list_filter = ("method", "payment_date")
    search_fields = ("order__order_number", "note")


@admin.register(OrderExpense)
class OrderExpenseAdmin(admin.ModelAdmin):
    list_display = ("order", "amount", "expense_type")
    list_filter = ("expense_type",)
    search_fields = ("order__order_number", "note")


@admin.register(OrderCustomerDue)
class OrderCustomerDueAdmin(admin.ModelAdmin):
    list_display = ("order", "customer", "amount", "collected_amount")
    search_fields = ("order__order_number", "customer__name", "customer__shop_name")


@admin.register(OrderDsrDue)
class OrderDsrDueAdmin(admin.ModelAdmin):
    list_display = ("order", "dsr", "amount", "collected_amount")
    list_filter = ("dsr",)
    search_fields = ("order__order_number",)


@admin.register(DueCollection)
class DueCollectionAdmin(admin.ModelAdmin):
    list_display = ("amount", "collection_date", "customer_due", "dsr_due", "collected_by")
    list_filter = ("collection_date",)
