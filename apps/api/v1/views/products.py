# apps/api/v1/views/products.py
"""
API views for the product catalog.
"""
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.products.models import Product
from apps.products.services import ProductService
from apps.api.v1.serializers.products import ProductSerializer, BarcodeLookupSerializer
from .base import TenantQuerysetMixin


@extend_schema_view(
    list=extend_schema(tags=['products'], summary='List products'),
    retrieve=extend_schema(tags=['products'], summary='Get product details'),
    create=extend_schema(tags=['products'], summary='Create a product'),
)
class ProductViewSet(
    TenantQuerysetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    model = Product
    serializer_class = ProductSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active', 'barcode']
    search_fields = ['sku', 'name', 'barcode', 'brand']
    ordering_fields = ['sku', 'name', 'created_at']
    ordering = ['sku']

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        is_active = data.pop('is_active', True)

        product = ProductService(request.tenant, request.user).create_product(**data)
        if not is_active:
            product.is_active = False
            product.save(update_fields=['is_active', 'updated_at'])
        return Response(self.get_serializer(product).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=['products'],
        summary='Look up a barcode in the catalog and the external product database',
        responses={200: BarcodeLookupSerializer},
    )
    @action(detail=False, methods=['get'], url_path=r'lookup/(?P<barcode>[^/]+)')
    def lookup(self, request, barcode=None):
        result = ProductService(request.tenant, request.user).lookup(barcode)
        result['barcode'] = barcode
        return Response(BarcodeLookupSerializer(result, context=self.get_serializer_context()).data)
