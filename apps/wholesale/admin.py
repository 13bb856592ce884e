from django.contrib import admin

from apps.wholesale.models import WholesaleOrder, WholesaleOrderItem


class WholesaleOrderItemInline(admin.TabularInline):
    model = WholesaleOrderItem
    extra = 0
    can_delete = False
    readonly_fields = (
        "product",
        "variant",
        "batch",
        "quantity",
        "unit",
        "extra_pieces",
        "free_quantity",
        "total_quantity",
        "sale_price",
        "discount",
        "subtotal",
        "net",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(WholesaleOrder)
class WholesaleOrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "dsr", "route", "order_date", "total", "paid_amount", "payment_status", "status")
    list_filter = ("status", "payment_status", "dsr", "route")
    search_fields = ("order_number", "invoice_note")
    date_hierarchy = "order_date"
    readonly_fields = ("order_number", "subtotal", "discount", "total", "paid_amount", "payment_status")
    inlines = [WholesaleOrderItemInline]
