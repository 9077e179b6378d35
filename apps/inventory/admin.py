# apps/inventory/admin.py
"""
Django admin configuration for Inventory models.
"""
from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin
from .models import Stock, StockTransaction


@admin.register(Stock)
class StockAdmin(SimpleHistoryAdmin):
    """Admin interface for Stock."""
    list_display = ['product', 'location', 'quantity', 'last_updated', 'tenant']
    list_filter = ['location', 'tenant']
    search_fields = ['product__sku', 'product__name']
    raw_id_fields = ['product', 'location']


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    """Read-only admin for the stock audit trail."""
    list_display = [
        'transaction_date', 'transaction_type', 'product', 'location',
        'quantity', 'balance_after', 'reference_number', 'user',
    ]
    list_filter = ['transaction_type', 'location']
    search_fields = ['product__sku', 'reference_number']
    date_hierarchy = 'transaction_date'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
