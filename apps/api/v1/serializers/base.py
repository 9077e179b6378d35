# apps/api/v1/serializers/base.py
"""
Base serializers with automatic tenant handling.

All tenant-scoped serializers should inherit from TenantModelSerializer
to ensure proper tenant assignment on create and cross-tenant checks on
related objects.
"""
from rest_framework import serializers


class TenantSerializerMixin:
    """
    Mixin that automatically handles tenant field on create/update.

    - Excludes 'tenant' from required input (auto-set from request)
    - Validates that related objects belong to the current tenant
    - Auto-assigns tenant on create
    """

    def get_fields(self):
        fields = super().get_fields()
        # Make tenant read-only (set automatically)
        if 'tenant' in fields:
            fields['tenant'].read_only = True
        return fields

    def create(self, validated_data):
        """Auto-assign tenant from request context."""
        request = self.context.get('request')
        if request and getattr(request, 'tenant', None) is not None:
            validated_data['tenant'] = request.tenant
        return super().create(validated_data)

    def validate(self, attrs):
        """Validate foreign key references belong to the same tenant."""
        request = self.context.get('request')
        tenant = getattr(request, 'tenant', None) if request else None
        if tenant is None:
            return super().validate(attrs)

        for field_name, value in attrs.items():
            if value is not None and hasattr(value, 'tenant_id') and value.tenant_id != tenant.id:
                raise serializers.ValidationError({
                    field_name: f"This {field_name} does not belong to your organization."
                })

        return super().validate(attrs)


class TenantModelSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    """
    Base ModelSerializer with automatic tenant handling.

    Usage:
        class LocationSerializer(TenantModelSerializer):
            class Meta:
                model = Location
                fields = ['id', 'name', 'code']
    """
    pass
