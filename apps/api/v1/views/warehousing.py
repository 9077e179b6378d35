# apps/api/v1/views/warehousing.py
"""
API views for stock locations and lots.
"""
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import filters, mixins, viewsets

from apps.warehousing.models import Location, Lot
from apps.api.v1.serializers.warehousing import LocationSerializer, LotSerializer
from .base import TenantQuerysetMixin


@extend_schema_view(
    list=extend_schema(tags=['locations'], summary='List locations'),
    retrieve=extend_schema(tags=['locations'], summary='Get location details'),
    create=extend_schema(tags=['locations'], summary='Create a location'),
)
class LocationViewSet(
    TenantQuerysetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    model = Location
    serializer_class = LocationSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active']
    search_fields = ['code', 'name']
    ordering_fields = ['code', 'name', 'created_at']
    ordering = ['code']


@extend_schema_view(
    list=extend_schema(tags=['locations'], summary='List lots'),
    retrieve=extend_schema(tags=['locations'], summary='Get lot details'),
    create=extend_schema(tags=['locations'], summary='Create a lot'),
)
class LotViewSet(
    TenantQuerysetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    model = Lot
    serializer_class = LotSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['product']
    search_fields = ['lot_number']
    ordering_fields = ['lot_number', 'expiry_date', 'created_at']
    ordering = ['-created_at']

    def get_queryset(self):
        return super().get_queryset().select_related('product')
