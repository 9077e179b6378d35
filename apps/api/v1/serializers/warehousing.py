# apps/api/v1/serializers/warehousing.py
"""
Serializers for locations and lots.
"""
from rest_framework import serializers

from apps.warehousing.models import Location, Lot
from .base import TenantModelSerializer


class LocationSerializer(TenantModelSerializer):

    class Meta:
        model = Location
        fields = ['id', 'name', 'code', 'address', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_code(self, value):
        value = value.strip()
        request = self.context.get('request')
        qs = Location.objects.for_tenant(request.tenant).filter(code=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(f"A location with code {value} already exists.")
        return value


class LotSerializer(TenantModelSerializer):
    product_sku = serializers.CharField(source='product.sku', read_only=True)

    class Meta:
        model = Lot
        fields = [
            'id', 'product', 'product_sku', 'lot_number', 'expiry_date', 'notes',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']
