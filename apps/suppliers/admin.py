from django.contrib import admin

from apps.suppliers.models import Supplier, SupplierPurchase


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "phone", "is_active")
    list_filter = ("is_active",)
    search_fields = ("code", "name")


@admin.register(SupplierPurchase)
class SupplierPurchaseAdmin(admin.ModelAdmin):
    list_display = ("supplier", "batch", "amount", "purchase_date", "created_at")
    list_filter = ("supplier",)
    search_fields = ("supplier__name", "description")
