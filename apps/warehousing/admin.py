# apps/warehousing/admin.py
"""
Django admin configuration for Warehousing models.
"""
from django.contrib import admin
from .models import Location, Lot


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    """Admin interface for Location."""
    list_display = ['code', 'name', 'tenant', 'is_active']
    list_filter = ['is_active', 'tenant']
    search_fields = ['name', 'code']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    """Admin interface for Lot."""
    list_display = ['lot_number', 'product', 'expiry_date', 'tenant']
    search_fields = ['lot_number', 'product__sku']
    raw_id_fields = ['product']
