# apps/api/v1/serializers/inventory.py
"""
Serializers for stock levels and the stock transaction ledger.
"""
from rest_framework import serializers

from apps.inventory.models import Stock, StockTransaction
from .base import TenantModelSerializer


class StockSerializer(TenantModelSerializer):
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    location_code = serializers.CharField(source='location.code', read_only=True)

    class Meta:
        model = Stock
        fields = [
            'id', 'product', 'product_sku', 'product_name',
            'location', 'location_code', 'quantity', 'last_updated',
        ]
        read_only_fields = fields


class StockTransactionSerializer(TenantModelSerializer):
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    location_code = serializers.CharField(source='location.code', read_only=True)
    transaction_type_display = serializers.CharField(source='get_transaction_type_display', read_only=True)

    class Meta:
        model = StockTransaction
        fields = [
            'id', 'transaction_type', 'transaction_type_display',
            'product', 'product_sku', 'location', 'location_code', 'lot',
            'quantity', 'balance_after', 'transaction_date',
            'reference_type', 'reference_id', 'reference_number',
            'user', 'notes',
        ]
        read_only_fields = fields
