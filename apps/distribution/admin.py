from django.contrib import admin

from apps.distribution.models import Customer, Dsr, Route


@admin.register(Dsr)
class DsrAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "phone", "updated_at")
    search_fields = ("name", "slug", "phone")


@admin.register(Route)
class RouteAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "updated_at")
    search_fields = ("name", "slug")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "shop_name", "mobile", "route")
    list_filter = ("route",)
    search_fields = ("name", "shop_name", "mobile")
