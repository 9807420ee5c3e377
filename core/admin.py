"""
Django Admin configuration for core models.
"""
from django.contrib import admin
from .models import ActivityLog


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['id', 'action', 'actor', 'model_name', 'object_id', 'created_at']
    list_filter = ['model_name', 'created_at']
    search_fields = ['action', 'actor__name', 'actor__email']
    ordering = ['-created_at']
    readonly_fields = ['actor', 'action', 'model_name', 'object_id', 'details', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
