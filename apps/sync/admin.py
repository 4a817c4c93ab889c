from django.contrib import admin

from .models import ConflictLog, SyncEventLog


@admin.register(SyncEventLog)
class SyncEventLogAdmin(admin.ModelAdmin):
    list_display = ("event_id", "owner", "entity_type", "operation", "device_id", "status", "created_at")
    list_filter = ("entity_type", "operation", "status")
    search_fields = ("event_id", "entity_id", "device_id")


@admin.register(ConflictLog)
class ConflictLogAdmin(admin.ModelAdmin):
    list_display = ("entity_type", "entity_id", "owner", "conflict_type", "resolved", "created_at")
    list_filter = ("entity_type", "conflict_type", "resolved")
    search_fields = ("entity_id", "event_id")
    actions = ["mark_resolved"]

    @admin.action(description="Hal qilindi deb belgilash")
    def mark_resolved(self, request, queryset):
        queryset.update(resolved=True)
