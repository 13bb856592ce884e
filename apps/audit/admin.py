from django.contrib import admin

from apps.audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "actor", "action", "entity_type", "entity_id", "entity_name")
    list_filter = ("action", "entity_type")
    search_fields = ("entity_id", "entity_name", "actor__username")
    readonly_fields = ("actor", "action", "entity_type", "entity_id", "entity_name", "old_value", "new_value", "created_at")
