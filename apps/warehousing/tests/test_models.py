# apps/warehousing/tests/test_models.py
"""
Tests for Location and Lot models.
"""
from django.db import IntegrityError
from django.test import TestCase

from apps.products.models import Product
from apps.tenants.models import Tenant
from apps.warehousing.models import Location, Lot


class LocationModelTest(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Warehouse Co', subdomain='test-wh')
        cls.other_tenant = Tenant.objects.create(name='Other Co', subdomain='test-wh-2')

    def test_str(self):
        location = Location.objects.create(tenant=self.tenant, name='Main Store', code='MAIN')
        self.assertEqual(str(location), 'MAIN - Main Store')
        self.assertTrue(location.is_active)

    def test_code_unique_per_tenant(self):
        Location.objects.create(tenant=self.tenant, name='Main Store', code='MAIN')
        Location.objects.create(tenant=self.other_tenant, name='Main Store', code='MAIN')
        with self.assertRaises(IntegrityError):
            Location.objects.create(tenant=self.tenant, name='Duplicate', code='MAIN')

    def test_for_tenant_scoping(self):
        Location.objects.create(tenant=self.tenant, name='Main Store', code='MAIN')
        Location.objects.create(tenant=self.other_tenant, name='Elsewhere', code='ELSE')
        codes = list(Location.objects.for_tenant(self.tenant).values_list('code', flat=True))
        self.assertEqual(codes, ['MAIN'])
        self.assertFalse(Location.objects.for_tenant(None).exists())


class LotModelTest(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Lot Co', subdomain='test-lots')
        cls.product = Product.objects.create(tenant=cls.tenant, sku='MILK', name='Milk 1L')

    def test_str(self):
        lot = Lot.objects.create(tenant=self.tenant, product=self.product, lot_number='L-2026-01')
        self.assertEqual(str(lot), 'L-2026-01 (MILK)')

    def test_lot_number_unique_per_product(self):
        Lot.objects.create(tenant=self.tenant, product=self.product, lot_number='L-1')
        with self.assertRaises(IntegrityError):
            Lot.objects.create(tenant=self.tenant, product=self.product, lot_number='L-1')
