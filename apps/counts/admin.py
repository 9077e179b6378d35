# apps/counts/admin.py
"""
Django admin configuration for inventory counts.
"""
from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin
from .models import InventoryCount, InventoryCountItem


class InventoryCountItemInline(admin.TabularInline):
    """Read-only item list on the count page."""
    model = InventoryCountItem
    extra = 0
    can_delete = False
    fields = ['product', 'lot', 'expected_quantity', 'counted_quantity', 'discrepancy', 'counted_by', 'counted_at']
    readonly_fields = fields
    raw_id_fields = ['product', 'lot']


@admin.register(InventoryCount)
class InventoryCountAdmin(SimpleHistoryAdmin):
    list_display = ['count_number', 'location', 'status', 'started_at', 'completed_at', 'tenant']
    list_filter = ['status', 'tenant']
    search_fields = ['count_number', 'location__code']
    readonly_fields = [
        'status', 'started_at', 'completed_at', 'cancelled_at',
        'created_by', 'started_by', 'completed_by', 'cancelled_by',
        'adjustments_applied', 'created_at', 'updated_at',
    ]
    inlines = [InventoryCountItemInline]
