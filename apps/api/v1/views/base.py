# apps/api/v1/views/base.py
"""
Base ViewSet classes for tenant-aware API views.
"""
from rest_framework import viewsets


class TenantQuerysetMixin:
    """
    Scope the queryset to ``request.tenant``.

    The tenant is passed explicitly to the manager at request time; there
    is no ambient tenant state to fall back on.

    Usage:
        class LocationViewSet(TenantQuerysetMixin, viewsets.ModelViewSet):
            model = Location
    """
    model = None  # Subclasses must set this

    def get_queryset(self):
        if self.model is None:
            raise NotImplementedError(
                f"{self.__class__.__name__} must define 'model' attribute"
            )
        return self.model.objects.for_tenant(self.request.tenant)


class TenantModelViewSet(TenantQuerysetMixin, viewsets.ModelViewSet):
    pass


class TenantReadOnlyViewSet(TenantQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    pass
