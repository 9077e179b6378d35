# apps/api/permissions.py
"""
Tenant-aware permissions for the REST API.

These permissions ensure users can only access data belonging to their tenant.
"""
from rest_framework import permissions


class IsTenantUser(permissions.BasePermission):
    """
    Permission that checks if the user belongs to the current tenant.

    This is applied globally and works with TenantMiddleware to ensure
    all API requests are properly scoped.
    """
    message = "You do not have permission to access this tenant's data."

    def has_permission(self, request, view):
        # Must be authenticated
        if not request.user or not request.user.is_authenticated:
            return False

        # Must have a tenant set (from TenantMiddleware)
        tenant = getattr(request, 'tenant', None)
        if tenant is None:
            return False

        # Superusers can access any tenant
        if request.user.is_superuser:
            return True

        return request.user.tenant_id == tenant.id

    def has_object_permission(self, request, view, obj):
        # Object must belong to the current tenant
        if hasattr(obj, 'tenant_id'):
            return obj.tenant_id == request.tenant.id
        return True
