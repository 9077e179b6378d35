# apps/counts/tests/test_controller.py
"""
Tests for CountSessionController and the count_station command.
"""
from io import StringIO
from unittest import mock

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import OperationalError
from django.test import TestCase, override_settings

from apps.counts import ledger
from apps.counts.controller import (
    CountSessionController, RequestInFlightError, ScanOutcomeKind,
)
from apps.counts.exceptions import InvalidStateError
from apps.counts.models import CountStatus, InventoryCountItem
from apps.counts.services import CountService
from apps.inventory.models import Stock
from apps.products.lookup import ProductSuggestion
from apps.products.models import Product
from apps.tenants.models import Tenant
from apps.warehousing.models import Location
from users.models import User


@override_settings(STOCKTALLY={'BARCODE_LOOKUP_ENABLED': True, 'SCAN_HISTORY_LIMIT': 3})
class ControllerTestCase(TestCase):
    """Base test case with a started count of products A=10, B=5, C=0."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Station Co', subdomain='test-station')
        cls.user = User.objects.create_user(username='station', password='pass', tenant=cls.tenant)
        cls.location = Location.objects.create(tenant=cls.tenant, name='Main Store', code='MAIN')
        cls.product_a = Product.objects.create(tenant=cls.tenant, sku='A', name='Apples', barcode='1001')
        cls.product_b = Product.objects.create(tenant=cls.tenant, sku='B', name='Bananas', barcode='1002')
        cls.product_c = Product.objects.create(tenant=cls.tenant, sku='C', name='Cherries', barcode='1003')
        cls.stray = Product.objects.create(tenant=cls.tenant, sku='X', name='Not Stocked', barcode='1999')
        for product, qty in ((cls.product_a, 10), (cls.product_b, 5), (cls.product_c, 0)):
            Stock.objects.create(tenant=cls.tenant, product=product, location=cls.location, quantity=qty)

    def setUp(self):
        service = CountService(self.tenant, self.user)
        self.count = service.create_count(self.location)
        self.controller = CountSessionController(self.tenant, self.user)
        self.controller.load(self.count.pk)


class ControllerTransitionTest(ControllerTestCase):

    def test_load(self):
        self.assertEqual(self.controller.status, CountStatus.DRAFT)
        self.assertEqual(self.controller.status_badge, 'secondary')
        self.assertEqual(len(self.controller.items), 3)
        self.assertEqual(len(self.controller.pending_items), 3)

    def test_load_without_count_raises(self):
        controller = CountSessionController(self.tenant, self.user)
        with self.assertRaises(InvalidStateError):
            controller.load()
        self.assertFalse(controller.busy)

    def test_invalid_transition_rejected_locally(self):
        """Completing a draft fails without calling the service."""
        with mock.patch.object(self.controller.service, 'complete_count') as complete:
            with self.assertRaises(InvalidStateError):
                self.controller.complete()
            complete.assert_not_called()
        self.assertIsNotNone(self.controller.view.error)

    def test_cancel_requires_reason_locally(self):
        with mock.patch.object(self.controller.service, 'cancel_count') as cancel:
            with self.assertRaises(ValidationError):
                self.controller.cancel('')
            cancel.assert_not_called()

    def test_start_and_complete(self):
        self.controller.start()
        self.assertEqual(self.controller.status, CountStatus.IN_PROGRESS)
        self.controller.scan('1001', quantity=8)
        self.controller.scan('1002', quantity=5)
        result = self.controller.complete(apply_adjustments=True, notes='Done')
        self.assertEqual(self.controller.status, CountStatus.COMPLETED)
        self.assertEqual(self.controller.status_badge, 'success')
        self.assertEqual([a.discrepancy for a in result.adjustments], [-2])
        self.assertTrue(all(i.is_counted for i in self.controller.items))

    def test_remote_rejection_refetches(self):
        """A transition rejected by the service re-syncs the cached count."""
        CountService(self.tenant, self.user).cancel_count(self.count, 'Cancelled at the office')
        self.assertEqual(self.controller.status, CountStatus.DRAFT)
        with self.assertRaises(InvalidStateError):
            self.controller.start()
        self.assertEqual(self.controller.status, CountStatus.CANCELLED)
        self.assertIn('Cannot start', self.controller.view.error)

    def test_one_request_at_a_time(self):
        """A second call while one is in flight is refused."""
        self.controller.start()

        def reentrant(*args, **kwargs):
            self.controller.scan('1002')

        with mock.patch.object(self.controller.service, 'scan_barcode', side_effect=reentrant):
            with self.assertRaises(RequestInFlightError):
                self.controller.scan('1001')
        self.assertFalse(self.controller.busy)


class ControllerScanTest(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.controller.start()

    def test_scan_success_uses_default_quantity(self):
        self.controller.set_default_quantity(4)
        outcome = self.controller.scan('1002')
        self.assertEqual(outcome.kind, ScanOutcomeKind.SUCCESS)
        self.assertEqual(outcome.item.counted_quantity, 4)
        self.assertEqual(self.controller.view.last_scan, outcome)
        counted = {i.product.sku: i.counted_quantity for i in self.controller.counted_items}
        self.assertEqual(counted, {'B': 4})

    def test_rescan_already_counted(self):
        self.controller.scan('1001', quantity=8)
        outcome = self.controller.scan('1001', quantity=2)
        self.assertEqual(outcome.kind, ScanOutcomeKind.ALREADY_COUNTED)
        self.assertEqual(outcome.previous_count, 8)
        self.assertEqual(outcome.counted_by, self.user)

    def test_unexpected_product(self):
        outcome = self.controller.scan('1999')
        self.assertEqual(outcome.kind, ScanOutcomeKind.UNEXPECTED_PRODUCT)
        self.assertEqual(outcome.product, self.stray)

    @mock.patch('apps.products.services.lookup_barcode')
    def test_suggestion_and_create_product(self, mock_lookup):
        suggestion = ProductSuggestion(barcode='4004', name='Dates', brand='Oasis')
        mock_lookup.return_value = suggestion

        outcome = self.controller.scan('4004')
        self.assertEqual(outcome.kind, ScanOutcomeKind.PRODUCT_SUGGESTION)
        self.assertEqual(outcome.suggestion, suggestion)

        product = self.controller.create_product_from_suggestion(outcome.suggestion, sku='D')
        self.assertEqual(product.barcode, '4004')
        again = self.controller.scan('4004')
        self.assertEqual(again.kind, ScanOutcomeKind.UNEXPECTED_PRODUCT)

    @mock.patch('apps.products.services.lookup_barcode', return_value=None)
    def test_unknown_barcode_without_suggestion(self, mock_lookup):
        outcome = self.controller.scan('0000')
        self.assertEqual(outcome.kind, ScanOutcomeKind.ERROR)
        self.assertEqual(outcome.code, 'BARCODE_NOT_FOUND')
        self.assertEqual(self.controller.view.error, outcome.message)

    def test_database_failure_is_retryable_and_changes_nothing(self):
        with mock.patch.object(self.controller.service, 'scan_barcode', side_effect=OperationalError('locked')):
            outcome = self.controller.scan('1001', quantity=8)
        self.assertEqual(outcome.kind, ScanOutcomeKind.ERROR)
        self.assertTrue(outcome.retryable)
        self.assertEqual(len(self.controller.counted_items), 0)

    def test_scan_rejected_locally_when_not_in_progress(self):
        self.controller.cancel('Stopped')
        with mock.patch.object(self.controller.service, 'scan_barcode') as scan:
            outcome = self.controller.scan('1001')
            scan.assert_not_called()
        self.assertEqual(outcome.code, 'COUNT_NOT_IN_PROGRESS')

    def test_history_is_capped(self):
        for barcode in ('1001', '1002', '1003', '1999'):
            self.controller.scan(barcode)
        history = list(self.controller.view.scan_history)
        self.assertEqual(len(history), 3)
        self.assertEqual(history[0].barcode, '1999')
        self.controller.clear_history()
        self.assertEqual(len(self.controller.view.scan_history), 0)
        self.assertIsNone(self.controller.view.last_scan)

    def test_default_quantity_validation(self):
        for bad in (0, -3, '2', True):
            with self.assertRaises(ValidationError):
                self.controller.set_default_quantity(bad)
        self.assertEqual(self.controller.view.default_quantity, 1)

    def test_update_item_count(self):
        self.controller.scan('1001', quantity=8)
        item = next(i for i in self.controller.items if i.product.sku == 'A')
        updated = self.controller.update_item_count(item, 9)
        self.assertEqual(updated.discrepancy, -1)

    def test_summary_falls_back_to_local_totals(self):
        self.controller.scan('1001', quantity=8)
        with mock.patch.object(self.controller.service, 'get_summary', side_effect=OperationalError('down')):
            totals = self.controller.summary()
        self.assertEqual(totals, ledger.compute_totals(self.controller.items))
        self.assertEqual(totals.counted, 8)

    def test_discrepancies(self):
        self.controller.scan('1001', quantity=8)
        self.controller.scan('1002', quantity=5)
        found = self.controller.discrepancies()
        self.assertEqual([(d.product_sku, d.discrepancy_type) for d in found], [('A', 'shortage')])


@override_settings(STOCKTALLY={'BARCODE_LOOKUP_ENABLED': False})
class CountStationCommandTest(ControllerTestCase):

    def _run(self, lines, *args):
        out = StringIO()
        call_command(
            'count_station', str(self.count.pk), '--user', 'station', *args,
            stdin=StringIO('\n'.join(lines) + '\n'), stdout=out,
        )
        return out.getvalue()

    def test_station_session(self):
        output = self._run(
            ['8*1001', '1001', ':qty 5', '1002', ':edit A 9', ':summary', ':complete --no-adjust Weekly', ':quit'],
            '--start',
        )
        self.assertIn('OK  A Apples: 8', output)
        self.assertIn('ALREADY COUNTED  A: 8', output)
        self.assertIn('A: 9', output)
        self.assertIn('0 stock adjustments', output)

        counted = dict(
            InventoryCountItem.objects.filter(count=self.count).values_list('product__sku', 'counted_quantity')
        )
        self.assertEqual(counted, {'A': 9, 'B': 5, 'C': 0})
        self.assertEqual(Stock.objects.get(product=self.product_a).quantity, 10)

    def test_station_reports_errors_without_stopping(self):
        output = self._run(['1001', ':bogus', ':cancel', ':cancel Fire drill'])
        self.assertIn('Count is not in progress', output)
        self.assertIn('Unknown command: bogus', output)
        self.assertIn('Cancelled', output)
        self.count.refresh_from_db()
        self.assertEqual(self.count.status, CountStatus.CANCELLED)

    def test_complete_flag_must_match_exactly(self):
        output = self._run(['8*1001', '5*1002', ':complete --no-adjustx Weekly', ':quit'], '--start')
        self.assertIn('1 stock adjustments', output)
        self.count.refresh_from_db()
        self.assertTrue(self.count.adjustments_applied)
        self.assertEqual(self.count.completion_notes, '--no-adjustx Weekly')
        self.assertEqual(Stock.objects.get(product=self.product_a).quantity, 8)

    def test_complete_flag_after_notes(self):
        self._run(['8*1001', ':complete Weekly --no-adjust', ':quit'], '--start')
        self.count.refresh_from_db()
        self.assertFalse(self.count.adjustments_applied)
        self.assertEqual(self.count.completion_notes, 'Weekly')
        self.assertEqual(Stock.objects.get(product=self.product_a).quantity, 10)
