# apps/api/v1/views/inventory.py
"""
Read-only API views for stock levels and stock transactions.

Stock only changes through InventoryService (count completion among
others), never through these endpoints.
"""
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import filters

from apps.inventory.models import Stock, StockTransaction
from apps.api.v1.serializers.inventory import StockSerializer, StockTransactionSerializer
from .base import TenantReadOnlyViewSet


@extend_schema_view(
    list=extend_schema(tags=['inventory'], summary='List stock levels'),
    retrieve=extend_schema(tags=['inventory'], summary='Get a stock level'),
)
class StockViewSet(TenantReadOnlyViewSet):
    model = Stock
    serializer_class = StockSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['product', 'location']
    search_fields = ['product__sku', 'product__name']
    ordering_fields = ['quantity', 'last_updated']
    ordering = ['location__code', 'product__sku']

    def get_queryset(self):
        return super().get_queryset().select_related('product', 'location')


@extend_schema_view(
    list=extend_schema(tags=['inventory'], summary='List stock transactions'),
    retrieve=extend_schema(tags=['inventory'], summary='Get a stock transaction'),
)
class StockTransactionViewSet(TenantReadOnlyViewSet):
    model = StockTransaction
    serializer_class = StockTransactionSerializer
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['product', 'location', 'transaction_type', 'reference_type', 'reference_id']
    ordering_fields = ['transaction_date']
    ordering = ['-transaction_date', '-id']

    def get_queryset(self):
        return super().get_queryset().select_related('product', 'location')
