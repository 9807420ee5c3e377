"""
Django Admin configuration for job models.
"""
from django.contrib import admin
from .models import JobOrder, MaterialUsage


class MaterialUsageInline(admin.TabularInline):
    model = MaterialUsage
    extra = 0
    readonly_fields = ['item', 'item_name', 'unit', 'quantity', 'is_reversal', 'created_at']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JobOrder)
class JobOrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'client_name', 'type', 'status', 'assigned_to', 'created_at', 'date_completed']
    list_filter = ['status', 'type', 'created_at']
    search_fields = ['id', 'client_name', 'client_address', 'contact']
    ordering = ['-created_at']
    # Status changes go through the API
    readonly_fields = ['status', 'date_completed', 'created_at', 'updated_at']
    raw_id_fields = ['assigned_to']
    inlines = [MaterialUsageInline]


@admin.register(MaterialUsage)
class MaterialUsageAdmin(admin.ModelAdmin):
    list_display = ['id', 'job', 'item_name', 'quantity', 'unit', 'is_reversal', 'created_at']
    list_filter = ['is_reversal', 'created_at']
    search_fields = ['item_name', 'job__client_name']
    ordering = ['-created_at']
    readonly_fields = ['job', 'item', 'item_name', 'unit', 'quantity', 'is_reversal', 'created_at']
