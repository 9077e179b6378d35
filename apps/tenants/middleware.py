# apps/tenants/middleware.py
"""
TenantMiddleware - Resolves the current tenant from the request.

The resolved tenant is stored on ``request.tenant`` and nowhere else;
views pass it explicitly to the service layer.

Resolution order:
1. HTTP_X_TENANT_ID header (for API clients, scanning stations)
2. Tenant of the authenticated user (session, or JWT from cookie or header)
3. Subdomain (e.g., acme.stocktally.app -> acme)
4. Default tenant (for development)
"""
import logging

from django.http import HttpResponseForbidden
from rest_framework.exceptions import AuthenticationFailed

from apps.api.authentication import CookieJWTAuthentication

from .models import Tenant

logger = logging.getLogger(__name__)

EXEMPT_PREFIXES = ('/admin/', '/static/', '/media/', '/api/schema/', '/api/docs/', '/api/v1/auth/', '/api/v1/health/')


class TenantMiddleware:
    """Resolve the tenant for each request and attach it as ``request.tenant``."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        tenant = self.get_tenant_from_request(request)

        if not tenant and not request.path.startswith(EXEMPT_PREFIXES):
            logger.warning(f'No tenant resolved for host={request.get_host()} path={request.path}')
            return HttpResponseForbidden(
                "No tenant found. Please access via subdomain or contact support."
            )

        request.tenant = tenant
        return self.get_response(request)

    def get_request_user(self, request):
        """
        Return the user making the request.

        DRF authenticates after middleware, so a JWT client still looks
        anonymous here. Read the token the same way the API will; an
        invalid token is left for DRF to reject.
        """
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            return user
        try:
            result = CookieJWTAuthentication().authenticate(request)
        except AuthenticationFailed:
            return user
        if result is None:
            return user
        return result[0]

    def get_tenant_from_request(self, request):
        """
        Resolve tenant from request using multiple strategies.

        Returns:
            Tenant instance or None
        """
        user = self.get_request_user(request)
        is_authenticated = bool(user and user.is_authenticated)

        # Strategy 1: header, validated against the authenticated user
        tenant_id = request.META.get('HTTP_X_TENANT_ID')
        if tenant_id and is_authenticated:
            try:
                tenant_id_int = int(tenant_id)
            except (ValueError, TypeError):
                tenant_id_int = None
            if tenant_id_int is not None and (
                user.is_superuser or getattr(user, 'tenant_id', None) == tenant_id_int
            ):
                tenant = Tenant.objects.filter(id=tenant_id_int, is_active=True).first()
                if tenant:
                    return tenant

        # Strategy 2: the user's own tenant
        if is_authenticated and getattr(user, 'tenant_id', None):
            tenant = Tenant.objects.filter(id=user.tenant_id, is_active=True).first()
            if tenant:
                return tenant

        # Strategy 3: subdomain
        host = request.get_host().split(':')[0]
        parts = host.split('.')
        if len(parts) >= 2:
            subdomain = parts[0]
            if subdomain not in ['www', 'api', 'admin', 'localhost', '127']:
                tenant = Tenant.objects.filter(subdomain=subdomain, is_active=True).first()
                if tenant:
                    return tenant

        # Strategy 4: default tenant (local development)
        return Tenant.objects.filter(is_default=True, is_active=True).first()
