# apps/api/v1/urls.py
"""
URL routing for API v1.

All API endpoints are mounted under /api/v1/
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
)

from .views.products import ProductViewSet
from .views.warehousing import LocationViewSet, LotViewSet
from .views.inventory import StockViewSet, StockTransactionViewSet
from .views.counts import CountViewSet
from .views.auth import CookieTokenObtainPairView, CookieTokenRefreshView, CookieLogoutView
from .views.health import health_check

router = DefaultRouter()

# Catalog
router.register(r'products', ProductViewSet, basename='product')

# Warehousing
router.register(r'locations', LocationViewSet, basename='location')
router.register(r'lots', LotViewSet, basename='lot')

# Inventory
router.register(r'stock', StockViewSet, basename='stock')
router.register(r'stock-transactions', StockTransactionViewSet, basename='stock-transaction')
router.register(r'inventory/counts', CountViewSet, basename='count')

urlpatterns = [
    # JWT for scanning stations and scripts (Authorization header)
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/token/verify/', TokenVerifyView.as_view(), name='token_verify'),

    # Browser login with httpOnly cookies
    path('auth/login/', CookieTokenObtainPairView.as_view(), name='cookie_login'),
    path('auth/refresh/', CookieTokenRefreshView.as_view(), name='cookie_refresh'),
    path('auth/logout/', CookieLogoutView.as_view(), name='cookie_logout'),

    path('health/', health_check, name='health_check'),

    path('', include(router.urls)),
]
