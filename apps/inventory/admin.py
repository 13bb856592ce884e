from django.contrib import admin

from apps.inventory.models import StockAdjustment, StockBatch


@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    list_display = (
        "variant",
        "supplier_price",
        "sell_price",
        "initial_quantity",
        "remaining_quantity",
        "initial_free_qty",
        "remaining_free_qty",
        "purchase_date",
    )
    list_filter = ("purchase_date",)
    search_fields = ("variant__label", "variant__product__name", "note")
    readonly_fields = ("remaining_quantity", "remaining_free_qty", "created_at", "updated_at")


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ("variant", "batch", "adjustment_type", "quantity", "free_quantity", "created_by", "created_at")
    list_filter = ("adjustment_type",)
    search_fields = ("variant__label", "variant__product__name", "note")

    def has_change_permission(self, request, obj=None):
        return False
