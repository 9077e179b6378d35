# shared/managers.py
"""
Tenant-scoped querysets.

Every tenant-owned query goes through ``for_tenant(tenant)``. The tenant is
passed in explicitly by the caller (services receive it in their constructor,
views read it from ``request.tenant``); there is no thread-local tenant.
"""
from django.db import models


class TenantQuerySet(models.QuerySet):
    """
    QuerySet with explicit tenant scoping.

    Usage:
        Product.objects.for_tenant(tenant).filter(is_active=True)
    """

    def for_tenant(self, tenant):
        """Restrict to rows owned by ``tenant``. ``None`` yields nothing."""
        if tenant is None:
            return self.none()
        return self.filter(tenant=tenant)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """
    Default manager for tenant-scoped models.

    Unscoped ``objects.all()`` is still available for admin and maintenance
    code; request-handling code must always call ``for_tenant``.
    """
    pass
