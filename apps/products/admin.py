# apps/products/admin.py
from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin
from .models import Product


@admin.register(Product)
class ProductAdmin(SimpleHistoryAdmin):
    list_display = ['sku', 'name', 'barcode', 'brand', 'tenant', 'is_active']
    list_filter = ['is_active', 'tenant']
    search_fields = ['sku', 'name', 'barcode']
    readonly_fields = ['created_at', 'updated_at']
