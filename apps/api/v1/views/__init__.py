# API Views
from .products import ProductViewSet
from .warehousing import LocationViewSet, LotViewSet
from .inventory import StockViewSet, StockTransactionViewSet
from .counts import CountViewSet
