from django.contrib import admin

from apps.returns.models import DamageReturn, DamageReturnItem


class DamageReturnItemInline(admin.TabularInline):
    model = DamageReturnItem
    extra = 0
    readonly_fields = ("variant", "batch", "quantity", "unit_price", "total", "condition", "reason")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(DamageReturn)
class DamageReturnAdmin(admin.ModelAdmin):
    list_display = ("return_number", "dsr", "return_date", "return_type", "status", "total_amount", "approved_by")
    list_filter = ("status", "return_type")
    search_fields = ("return_number", "notes")
    readonly_fields = ("return_number", "status", "total_amount", "approved_by", "approved_at")
    inlines = [DamageReturnItemInline]
