# apps/products/tests/test_services.py
"""
Tests for Product, ProductService and the Open Food Facts lookup.
"""
from unittest import mock

import requests
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.test import TestCase, override_settings

from apps.products.exceptions import BarcodeNotFoundError, LookupUnavailableError
from apps.products.lookup import ProductSuggestion, lookup_barcode
from apps.products.models import Product
from apps.products.services import ProductService
from apps.tenants.models import Tenant
from users.models import User


def _response(status_code=200, payload=None):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f'{status_code}')
    else:
        response.raise_for_status.return_value = None
    return response


OFF_HIT = {
    'status': 1,
    'product': {
        'product_name': 'Dark Chocolate 70%',
        'generic_name': 'Chocolate bar',
        'brands': 'Cocoa Co, Other Brand',
        'image_url': 'https://images.example.org/choc.jpg',
        'quantity': '100 g',
        'categories': 'Snacks, Chocolates',
    },
}


class ProductModelTestCase(TestCase):
    """Tests for the Product model."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Product Co', subdomain='test-products')
        cls.other = Tenant.objects.create(name='Other Co', subdomain='test-products-2')

    def test_str(self):
        product = Product.objects.create(tenant=self.tenant, sku='MILK-1L', name='Whole Milk 1L')
        self.assertEqual(str(product), 'MILK-1L - Whole Milk 1L')

    def test_duplicate_sku_same_tenant(self):
        """Duplicate SKU within the same tenant raises IntegrityError."""
        Product.objects.create(tenant=self.tenant, sku='DUP', name='First')
        with self.assertRaises(IntegrityError):
            Product.objects.create(tenant=self.tenant, sku='DUP', name='Second')

    def test_same_sku_different_tenant(self):
        """Same SKU in a different tenant does not conflict."""
        Product.objects.create(tenant=self.tenant, sku='CROSS', name='A')
        Product.objects.create(tenant=self.other, sku='CROSS', name='B')
        self.assertEqual(Product.objects.filter(sku='CROSS').count(), 2)

    def test_for_tenant_isolation(self):
        """for_tenant only returns the given tenant's rows."""
        Product.objects.create(tenant=self.tenant, sku='ONE', name='One')
        Product.objects.create(tenant=self.other, sku='TWO', name='Two')
        skus = list(Product.objects.for_tenant(self.tenant).values_list('sku', flat=True))
        self.assertEqual(skus, ['ONE'])
        self.assertFalse(Product.objects.for_tenant(None).exists())


@override_settings(STOCKTALLY={'BARCODE_LOOKUP_ENABLED': True})
class ProductServiceTestCase(TestCase):
    """Tests for barcode resolution and product creation."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Scan Co', subdomain='test-scan')
        cls.other = Tenant.objects.create(name='Elsewhere', subdomain='test-scan-2')
        cls.user = User.objects.create_user(username='scanner', password='pass', tenant=cls.tenant)
        cls.product = Product.objects.create(
            tenant=cls.tenant, sku='COF-250', name='Coffee 250g', barcode='7501234567890',
        )

    def setUp(self):
        self.service = ProductService(self.tenant, self.user)

    # ── resolve_barcode ──────────────────────────────────────────────────

    @mock.patch('apps.products.lookup.requests.get')
    def test_local_hit_skips_external_lookup(self, mock_get):
        """A barcode in the local catalog never reaches Open Food Facts."""
        self.assertEqual(self.service.resolve_barcode(' 7501234567890 '), self.product)
        mock_get.assert_not_called()

    @mock.patch('apps.products.lookup.requests.get')
    def test_inactive_product_not_resolved(self, mock_get):
        """Inactive products do not match scans."""
        Product.objects.create(
            tenant=self.tenant, sku='OLD', name='Old', barcode='111', is_active=False,
        )
        mock_get.return_value = _response(404)
        with self.assertRaises(BarcodeNotFoundError):
            self.service.resolve_barcode('111')

    @mock.patch('apps.products.lookup.requests.get')
    def test_other_tenant_barcode_not_resolved(self, mock_get):
        """Barcodes from another tenant's catalog are invisible."""
        Product.objects.create(tenant=self.other, sku='X', name='X', barcode='222')
        mock_get.return_value = _response(404)
        with self.assertRaises(BarcodeNotFoundError) as ctx:
            self.service.resolve_barcode('222')
        self.assertIsNone(ctx.exception.suggestion)

    @mock.patch('apps.products.lookup.requests.get')
    def test_unknown_barcode_with_suggestion(self, mock_get):
        """Unknown locally but known externally raises with a suggestion."""
        mock_get.return_value = _response(200, OFF_HIT)
        with self.assertRaises(BarcodeNotFoundError) as ctx:
            self.service.resolve_barcode('3017620422003')
        error = ctx.exception
        self.assertEqual(error.code, 'BARCODE_NOT_FOUND')
        self.assertEqual(error.suggestion.name, 'Dark Chocolate 70%')
        self.assertEqual(error.suggestion.brand, 'Cocoa Co')
        self.assertEqual(error.suggestion.category, 'Snacks')
        self.assertEqual(error.details['suggestion']['barcode'], '3017620422003')

    @mock.patch('apps.products.lookup.requests.get')
    def test_lookup_failure_is_retryable(self, mock_get):
        """Network failures surface as LookupUnavailableError."""
        mock_get.side_effect = requests.exceptions.Timeout('timed out')
        with self.assertRaises(LookupUnavailableError) as ctx:
            self.service.resolve_barcode('999')
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ctx.exception.status_code, 503)

    @override_settings(STOCKTALLY={'BARCODE_LOOKUP_ENABLED': False})
    @mock.patch('apps.products.lookup.requests.get')
    def test_lookup_disabled(self, mock_get):
        """With the lookup disabled, unknown barcodes fail without a suggestion."""
        with self.assertRaises(BarcodeNotFoundError) as ctx:
            self.service.resolve_barcode('3017620422003')
        self.assertIsNone(ctx.exception.suggestion)
        mock_get.assert_not_called()

    @mock.patch('apps.products.lookup.requests.get')
    def test_lookup_wraps_not_found(self, mock_get):
        """lookup() reports found=False instead of raising."""
        mock_get.return_value = _response(200, {'status': 0})
        result = self.service.lookup('000')
        self.assertFalse(result['found'])
        self.assertIsNone(result['suggestion'])

    # ── create_product ───────────────────────────────────────────────────

    def test_create_product(self):
        product = self.service.create_product(sku='TEA-20', name='Green Tea', barcode=' 123 ')
        self.assertEqual(product.tenant, self.tenant)
        self.assertEqual(product.barcode, '123')

    def test_create_product_duplicate_sku(self):
        with self.assertRaises(ValidationError):
            self.service.create_product(sku='COF-250', name='Again')

    def test_create_product_requires_name(self):
        with self.assertRaises(ValidationError):
            self.service.create_product(sku='NEW', name='  ')

    def test_create_from_suggestion(self):
        """A suggestion pre-fills the product; overrides win."""
        suggestion = ProductSuggestion(barcode='555', name='Oat Milk', brand='Oaty')
        product = self.service.create_from_suggestion(suggestion, sku='OAT-1', name='Oat Drink')
        self.assertEqual(product.name, 'Oat Drink')
        self.assertEqual(product.brand, 'Oaty')
        self.assertEqual(self.service.resolve_barcode('555'), product)


class LookupBarcodeTestCase(TestCase):
    """Tests for the raw Open Food Facts client."""

    @mock.patch('apps.products.lookup.requests.get')
    def test_not_found_404(self, mock_get):
        mock_get.return_value = _response(404)
        self.assertIsNone(lookup_barcode('000'))

    @mock.patch('apps.products.lookup.requests.get')
    def test_nameless_product_is_not_a_suggestion(self, mock_get):
        mock_get.return_value = _response(200, {'status': 1, 'product': {'brands': 'X'}})
        self.assertIsNone(lookup_barcode('000'))

    @mock.patch('apps.products.lookup.requests.get')
    def test_server_error(self, mock_get):
        mock_get.return_value = _response(502)
        with self.assertRaises(LookupUnavailableError):
            lookup_barcode('000')
