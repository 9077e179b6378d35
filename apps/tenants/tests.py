# apps/tenants/tests.py
"""
Tests for Tenant, TenantSequence and TenantMiddleware.
"""
from django.db import IntegrityError
from django.http import HttpResponse
from django.test import RequestFactory, TestCase
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.tokens import AccessToken

from apps.tenants.middleware import TenantMiddleware
from apps.tenants.models import Tenant, TenantSequence, get_next_sequence_number
from users.models import User


class TenantModelTestCase(TestCase):
    """Tests for the Tenant model."""

    def test_create_tenant(self):
        """Create a Tenant and verify name, subdomain, and __str__."""
        tenant = Tenant.objects.create(name='Acme Grocery', subdomain='acme-grocery')
        self.assertEqual(tenant.subdomain, 'acme-grocery')
        self.assertTrue(tenant.is_active)
        self.assertEqual(str(tenant), 'Acme Grocery')

    def test_duplicate_subdomain(self):
        """Duplicate subdomain globally raises IntegrityError."""
        Tenant.objects.create(name='First', subdomain='unique-sub')
        with self.assertRaises(IntegrityError):
            Tenant.objects.create(name='Second', subdomain='unique-sub')

    def test_sequences_created_by_signal(self):
        """Creating a tenant creates one sequence per sequence type."""
        tenant = Tenant.objects.create(name='Seq Co', subdomain='seq-co')
        types = set(TenantSequence.objects.filter(tenant=tenant).values_list('sequence_type', flat=True))
        self.assertEqual(types, {'COUNT'})


class TenantSequenceTestCase(TestCase):
    """Tests for sequential number generation."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Seq Tenant', subdomain='seq-tenant')
        cls.other = Tenant.objects.create(name='Other Tenant', subdomain='other-tenant')

    def test_numbers_increment(self):
        """Consecutive calls return consecutive zero-padded numbers."""
        self.assertEqual(get_next_sequence_number(self.tenant, 'COUNT'), 'CC-000001')
        self.assertEqual(get_next_sequence_number(self.tenant, 'COUNT'), 'CC-000002')

    def test_numbers_are_per_tenant(self):
        """Each tenant has its own counter."""
        get_next_sequence_number(self.tenant, 'COUNT')
        self.assertEqual(get_next_sequence_number(self.other, 'COUNT'), 'CC-000001')

    def test_missing_sequence_row_is_created(self):
        """A deleted sequence row is recreated on first use."""
        TenantSequence.objects.filter(tenant=self.tenant, sequence_type='COUNT').delete()
        self.assertEqual(get_next_sequence_number(self.tenant, 'COUNT'), 'CC-000001')


class TenantMiddlewareTestCase(TestCase):
    """Tests for tenant resolution on incoming requests."""

    @classmethod
    def setUpTestData(cls):
        cls.default = Tenant.objects.create(name='Default', subdomain='default', is_default=True)
        cls.acme = Tenant.objects.create(name='Acme', subdomain='acme')
        cls.acme_user = User.objects.create_user(username='acme_user', password='pass', tenant=cls.acme)
        cls.superuser = User.objects.create_superuser(username='root', password='pass')

    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = TenantMiddleware(lambda request: HttpResponse('ok'))

    def _request(self, path='/api/v1/inventory/counts/', user=None, **extra):
        request = self.factory.get(path, **extra)
        request.user = user or AnonymousUser()
        return request

    def test_default_tenant_fallback(self):
        """Without any hint the default tenant is used."""
        request = self._request()
        self.middleware(request)
        self.assertEqual(request.tenant, self.default)

    def test_subdomain(self):
        """The first host label selects the tenant."""
        request = self._request(HTTP_HOST='acme.stocktally.app')
        self.middleware(request)
        self.assertEqual(request.tenant, self.acme)

    def test_user_tenant(self):
        """An authenticated user's own tenant wins over the default."""
        request = self._request(user=self.acme_user)
        self.middleware(request)
        self.assertEqual(request.tenant, self.acme)

    def test_header_requires_membership(self):
        """A user cannot select a foreign tenant through the header."""
        request = self._request(user=self.acme_user, HTTP_X_TENANT_ID=str(self.default.id))
        self.middleware(request)
        self.assertEqual(request.tenant, self.acme)

    def test_superuser_header(self):
        """Superusers may pick any tenant through the header."""
        request = self._request(user=self.superuser, HTTP_X_TENANT_ID=str(self.acme.id))
        self.middleware(request)
        self.assertEqual(request.tenant, self.acme)

    def test_no_tenant_is_forbidden(self):
        """Requests that resolve no tenant are rejected outside exempt paths."""
        Tenant.objects.filter(is_default=True).update(is_default=False)
        response = self.middleware(self._request())
        self.assertEqual(response.status_code, 403)

    def test_exempt_path_without_tenant(self):
        """Exempt paths pass through with request.tenant = None."""
        Tenant.objects.filter(is_default=True).update(is_default=False)
        request = self._request(path='/api/schema/')
        response = self.middleware(request)
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(request.tenant)

    def test_bearer_token_user_tenant(self):
        """A JWT user looks anonymous to Django; the token still selects their tenant."""
        token = AccessToken.for_user(self.acme_user)
        request = self._request(HTTP_AUTHORIZATION=f'Bearer {token}')
        self.middleware(request)
        self.assertEqual(request.tenant, self.acme)

    def test_bearer_token_with_tenant_header(self):
        token = AccessToken.for_user(self.acme_user)
        request = self._request(HTTP_AUTHORIZATION=f'Bearer {token}', HTTP_X_TENANT_ID=str(self.acme.id))
        self.middleware(request)
        self.assertEqual(request.tenant, self.acme)

    def test_invalid_token_falls_back(self):
        """A bad token does not pick a tenant; DRF rejects it later."""
        request = self._request(HTTP_AUTHORIZATION='Bearer garbage')
        self.middleware(request)
        self.assertEqual(request.tenant, self.default)
