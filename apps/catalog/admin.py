from django.contrib import admin

from apps.catalog.models import Brand, Category, Product, ProductVariant, Unit


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "brand", "category", "is_active", "updated_at")
    list_filter = ("is_active", "brand", "category")
    search_fields = ("name", "brand__name")
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ("product", "label", "sku", "is_active")
    list_filter = ("is_active",)
    search_fields = ("product__name", "label", "sku")


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("name", "normalized_name")


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("name",)


@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ("abbreviation", "name", "multiplier", "is_base")
    search_fields = ("abbreviation", "name")
