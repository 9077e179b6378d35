# API Serializers
from .base import TenantSerializerMixin, TenantModelSerializer
from .products import ProductSerializer, ProductSuggestionSerializer, BarcodeLookupSerializer
from .warehousing import LocationSerializer, LotSerializer
from .inventory import StockSerializer, StockTransactionSerializer
from .counts import (
    InventoryCountItemSerializer, InventoryCountListSerializer, InventoryCountDetailSerializer,
    CreateCountSerializer, CompleteCountSerializer, CancelCountSerializer,
    ScanBarcodeSerializer, RegisterCountSerializer, UpdateCountItemSerializer,
    ScanResultSerializer, CountTotalsSerializer, DiscrepancySerializer, CompletionResultSerializer,
)
