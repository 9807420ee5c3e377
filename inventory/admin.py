"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import InventoryItem, Batch


class BatchInline(admin.TabularInline):
    model = Batch
    extra = 0
    fields = ['name', 'quantity', 'last_updated']
    # Batch edits go through the API
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'category', 'unit', 'total_quantity', 'min_threshold', 'low_stock', 'updated_at']
    list_filter = ['category', 'updated_at']
    search_fields = ['name', 'category']
    ordering = ['name']
    inlines = [BatchInline]

    def get_queryset(self, request):
        return super().get_queryset(request).prefetch_related('batches')

    def total_quantity(self, obj):
        return obj.total_quantity
    total_quantity.short_description = 'Total'

    def low_stock(self, obj):
        return obj.low_stock
    low_stock.boolean = True
    low_stock.short_description = 'Low Stock'


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = ['id', 'item', 'name', 'quantity', 'last_updated']
    list_filter = ['last_updated']
    search_fields = ['name', 'item__name']
    ordering = ['item', 'last_updated']
    readonly_fields = ['item', 'name', 'quantity', 'last_updated']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
