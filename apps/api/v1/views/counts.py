# apps/api/v1/views/counts.py
"""
API views for physical inventory counts.

Provides endpoints for:
- Count sessions (list, create, retrieve, delete drafts)
- State transitions (start, complete, cancel)
- Barcode scans, manual registration and count edits
- Pending/counted item lists, discrepancies and summary totals

Service errors propagate to apps.api.exceptions.api_exception_handler,
which renders them as {"error": {"code", "message", "details"}}.
"""
from django.db.models import Count, Prefetch, Q
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import filters, mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.counts.models import InventoryCount, InventoryCountItem
from apps.counts.services import CountService
from apps.products.models import Product
from apps.warehousing.models import Location, Lot
from apps.api.v1.serializers.counts import (
    InventoryCountItemSerializer,
    InventoryCountListSerializer,
    InventoryCountDetailSerializer,
    CreateCountSerializer,
    CompleteCountSerializer,
    CancelCountSerializer,
    ScanBarcodeSerializer,
    RegisterCountSerializer,
    UpdateCountItemSerializer,
    ScanResultSerializer,
    CountTotalsSerializer,
    DiscrepancySerializer,
    CompletionResultSerializer,
)


def _tenant_object(model, tenant, pk, field):
    """Fetch a tenant-owned object referenced by request data."""
    if pk is None:
        return None
    try:
        return model.objects.for_tenant(tenant).get(pk=pk)
    except model.DoesNotExist:
        raise serializers.ValidationError({field: f"{model._meta.verbose_name.capitalize()} {pk} not found."})


@extend_schema_view(
    list=extend_schema(tags=['counts'], summary='List inventory counts'),
    retrieve=extend_schema(tags=['counts'], summary='Get count details with items'),
    create=extend_schema(
        tags=['counts'], summary='Create a draft count for a location',
        request=CreateCountSerializer, responses={201: InventoryCountDetailSerializer},
    ),
    destroy=extend_schema(tags=['counts'], summary='Delete a draft count'),
)
class CountViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for InventoryCount.

    Counts are created as drafts, started, scanned and finally completed
    or cancelled. Only drafts can be deleted.
    """
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'location']
    search_fields = ['count_number']
    ordering_fields = ['count_number', 'created_at', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        qs = (
            InventoryCount.objects.for_tenant(self.request.tenant)
            .select_related('location')
            .annotate(
                items_total=Count('items'),
                items_counted=Count('items', filter=Q(items__is_counted=True)),
            )
        )
        if self.action == 'retrieve':
            qs = qs.prefetch_related(Prefetch(
                'items',
                queryset=InventoryCountItem.objects.select_related('product', 'lot', 'counted_by'),
            ))
        return qs

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return InventoryCountDetailSerializer
        return InventoryCountListSerializer

    def get_service(self):
        return CountService(self.request.tenant, self.request.user)

    def _detail(self, count):
        return InventoryCountDetailSerializer(count, context=self.get_serializer_context()).data

    def _items(self, items):
        return InventoryCountItemSerializer(items, many=True, context=self.get_serializer_context()).data

    def create(self, request, *args, **kwargs):
        serializer = CreateCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        location = _tenant_object(Location, request.tenant, serializer.validated_data['location'], 'location')

        count = self.get_service().create_count(location, notes=serializer.validated_data['notes'])
        return Response(self._detail(count), status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        self.get_service().delete_count(instance)

    # ===== TRANSITIONS =====

    @extend_schema(tags=['counts'], summary='Start a draft count', request=None,
                   responses={200: InventoryCountDetailSerializer})
    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        count = self.get_service().start_count(self.get_object())
        return Response(self._detail(count))

    @extend_schema(
        tags=['counts'],
        summary='Complete a count (uncounted items become 0) and optionally adjust stock',
        request=CompleteCountSerializer,
        responses={200: CompletionResultSerializer},
    )
    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        count = self.get_object()
        serializer = CompleteCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_service().complete_count(
            count,
            apply_adjustments=serializer.validated_data['apply_adjustments'],
            notes=serializer.validated_data['notes'],
        )
        return Response(CompletionResultSerializer(result, context=self.get_serializer_context()).data)

    @extend_schema(tags=['counts'], summary='Cancel a count', request=CancelCountSerializer,
                   responses={200: InventoryCountDetailSerializer})
    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        count = self.get_object()
        serializer = CancelCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        count = self.get_service().cancel_count(count, serializer.validated_data['reason'])
        return Response(self._detail(count))

    # ===== COUNTING =====

    @extend_schema(
        tags=['counts'],
        summary='Scan a barcode',
        description=(
            'Records the quantity for the scanned product. Rescanning an already '
            'counted product changes nothing and returns already_counted=true.'
        ),
        request=ScanBarcodeSerializer,
        responses={200: ScanResultSerializer},
    )
    @action(detail=True, methods=['post'])
    def scan(self, request, pk=None):
        count = self.get_object()
        serializer = ScanBarcodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        lot = _tenant_object(Lot, request.tenant, data.get('lot'), 'lot')

        result = self.get_service().scan_barcode(
            count, data['barcode'], quantity=data['quantity'], notes=data['notes'], lot=lot,
        )
        return Response(ScanResultSerializer(result, context=self.get_serializer_context()).data)

    @extend_schema(
        methods=['GET'], tags=['counts'], summary='List count items',
        parameters=[OpenApiParameter('state', str, enum=['pending', 'counted'])],
        responses={200: InventoryCountItemSerializer(many=True)},
    )
    @extend_schema(
        methods=['POST'], tags=['counts'], summary='Register a count without scanning',
        request=RegisterCountSerializer, responses={201: InventoryCountItemSerializer},
    )
    @action(detail=True, methods=['get', 'post'])
    def items(self, request, pk=None):
        count = self.get_object()
        service = self.get_service()

        if request.method == 'GET':
            return Response(self._items(service.list_items(count, state=request.query_params.get('state'))))

        serializer = RegisterCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        product = _tenant_object(Product, request.tenant, data['product'], 'product')
        lot = _tenant_object(Lot, request.tenant, data.get('lot'), 'lot')

        item = service.register_count(count, product, data['quantity'], notes=data['notes'], lot=lot)
        return Response(
            InventoryCountItemSerializer(item, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=['counts'], summary='Change the counted quantity of an item',
                   request=UpdateCountItemSerializer, responses={200: InventoryCountItemSerializer})
    @action(detail=True, methods=['put'], url_path=r'items/(?P<item_id>\d+)')
    def update_item(self, request, pk=None, item_id=None):
        count = self.get_object()
        item = count.items.get(pk=item_id)
        serializer = UpdateCountItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = self.get_service().update_item_count(
            count, item,
            serializer.validated_data['counted_quantity'],
            notes=serializer.validated_data.get('notes'),
        )
        return Response(InventoryCountItemSerializer(item, context=self.get_serializer_context()).data)

    # ===== REPORTING =====

    @extend_schema(tags=['counts'], summary='Items not counted yet',
                   responses={200: InventoryCountItemSerializer(many=True)})
    @action(detail=True, methods=['get'])
    def pending(self, request, pk=None):
        return Response(self._items(self.get_service().list_items(self.get_object(), state='pending')))

    @extend_schema(tags=['counts'], summary='Items already counted',
                   responses={200: InventoryCountItemSerializer(many=True)})
    @action(detail=True, methods=['get'])
    def counted(self, request, pk=None):
        return Response(self._items(self.get_service().list_items(self.get_object(), state='counted')))

    @extend_schema(tags=['counts'], summary='Counted items whose quantity differs from expected',
                   responses={200: DiscrepancySerializer(many=True)})
    @action(detail=True, methods=['get'])
    def discrepancies(self, request, pk=None):
        found = self.get_service().get_discrepancies(self.get_object())
        return Response(DiscrepancySerializer(found, many=True).data)

    @extend_schema(tags=['counts'], summary='Expected/counted totals and progress',
                   responses={200: CountTotalsSerializer})
    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        totals = self.get_service().get_summary(self.get_object())
        return Response(CountTotalsSerializer(totals).data)
