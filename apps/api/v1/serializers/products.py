# apps/api/v1/serializers/products.py
"""
Serializers for the product catalog and barcode lookups.
"""
from rest_framework import serializers

from apps.products.models import Product
from .base import TenantModelSerializer


class ProductSerializer(TenantModelSerializer):

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'barcode', 'brand', 'description',
            'cost_price', 'sale_price', 'image_url', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_sku(self, value):
        value = value.strip()
        request = self.context.get('request')
        qs = Product.objects.for_tenant(request.tenant).filter(sku=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(f"A product with SKU {value} already exists.")
        return value


class ProductSuggestionSerializer(serializers.Serializer):
    barcode = serializers.CharField()
    name = serializers.CharField()
    brand = serializers.CharField(allow_blank=True)
    description = serializers.CharField(allow_blank=True)
    image_url = serializers.CharField(allow_blank=True)
    quantity = serializers.CharField(allow_blank=True)
    category = serializers.CharField(allow_blank=True)
    source = serializers.CharField()


class BarcodeLookupSerializer(serializers.Serializer):
    """Result of GET /products/lookup/{barcode}/."""
    barcode = serializers.CharField()
    found = serializers.BooleanField()
    product = ProductSerializer(allow_null=True)
    suggestion = ProductSuggestionSerializer(allow_null=True)
