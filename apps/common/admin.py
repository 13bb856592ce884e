from django.contrib import admin

from apps.common.models import GlobalSettings, NumberSequence


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("key", "last_value", "updated_at")
    search_fields = ("key",)


@admin.register(GlobalSettings)
class GlobalSettingsAdmin(admin.ModelAdmin):
    list_display = ("id", "order_edit_lock_mode", "order_edit_locked", "updated_at")
    exclude = ("order_edit_password",)

    def has_add_permission(self, request):
        return not GlobalSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
