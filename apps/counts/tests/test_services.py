# apps/counts/tests/test_services.py
"""
Tests for CountService: state machine, scanning, manual entry, completion.
"""
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from apps.counts import ledger
from apps.counts.exceptions import (
    CountNotInProgressError, InvalidStateError,
    ProductAlreadyCountedError, UnexpectedProductError,
)
from apps.counts.models import CountStatus, InventoryCount, InventoryCountItem
from apps.counts.services import CountService
from apps.inventory.models import Stock, StockTransaction
from apps.inventory.services import InventoryService
from apps.products.exceptions import BarcodeNotFoundError
from apps.products.models import Product
from apps.tenants.models import Tenant
from apps.warehousing.models import Location, Lot
from users.models import User


@override_settings(STOCKTALLY={'BARCODE_LOOKUP_ENABLED': False})
class CountServiceTestCase(TestCase):
    """
    Base test case: a store with three stocked products.

    A: expected 10, B: expected 5, C: expected 0 (stock row with zero quantity).
    """

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(name='Count Co', subdomain='test-counts')
        cls.other_tenant = Tenant.objects.create(name='Other Co', subdomain='test-counts-2')
        cls.user = User.objects.create_user(username='counter', password='pass', tenant=cls.tenant)
        cls.location = Location.objects.create(tenant=cls.tenant, name='Main Store', code='MAIN')

        cls.product_a = Product.objects.create(tenant=cls.tenant, sku='A', name='Apples', barcode='1001')
        cls.product_b = Product.objects.create(tenant=cls.tenant, sku='B', name='Bananas', barcode='1002')
        cls.product_c = Product.objects.create(tenant=cls.tenant, sku='C', name='Cherries', barcode='1003')
        cls.stray = Product.objects.create(tenant=cls.tenant, sku='X', name='Not Stocked', barcode='1999')

        Stock.objects.create(tenant=cls.tenant, product=cls.product_a, location=cls.location, quantity=10)
        Stock.objects.create(tenant=cls.tenant, product=cls.product_b, location=cls.location, quantity=5)
        Stock.objects.create(tenant=cls.tenant, product=cls.product_c, location=cls.location, quantity=0)

    def setUp(self):
        self.service = CountService(self.tenant, self.user)

    def _started_count(self):
        count = self.service.create_count(self.location)
        self.service.start_count(count)
        return count

    def _item(self, count, product):
        return InventoryCountItem.objects.get(count=count, product=product)


# =============================================================================
# CREATION
# =============================================================================

class CreateCountTest(CountServiceTestCase):

    def test_create_snapshots_stock(self):
        """One item per stocked product, zero-quantity rows included."""
        count = self.service.create_count(self.location, notes='Monthly')
        self.assertEqual(count.status, CountStatus.DRAFT)
        self.assertEqual(count.count_number, 'CC-000001')
        self.assertEqual(count.created_by, self.user)
        expected = dict(count.items.values_list('product__sku', 'expected_quantity'))
        self.assertEqual(expected, {'A': 10, 'B': 5, 'C': 0})
        self.assertFalse(count.items.filter(is_counted=True).exists())

    def test_expected_quantity_is_a_snapshot(self):
        """Later stock movements do not change expected quantities."""
        count = self.service.create_count(self.location)
        InventoryService(self.tenant, self.user).receive_stock(self.product_a, self.location, 4)
        self.assertEqual(self._item(count, self.product_a).expected_quantity, 10)

    def test_inactive_product_excluded(self):
        Product.objects.filter(pk=self.product_c.pk).update(is_active=False)
        count = self.service.create_count(self.location)
        self.assertEqual(count.items.count(), 2)

    def test_inactive_location_rejected(self):
        closed = Location.objects.create(tenant=self.tenant, name='Closed', code='OLD', is_active=False)
        with self.assertRaises(ValidationError):
            self.service.create_count(closed)

    def test_foreign_location_rejected(self):
        foreign = Location.objects.create(tenant=self.other_tenant, name='Elsewhere', code='MAIN')
        with self.assertRaises(ValidationError):
            self.service.create_count(foreign)

    def test_count_numbers_increment(self):
        self.service.create_count(self.location)
        second = self.service.create_count(self.location)
        self.assertEqual(second.count_number, 'CC-000002')


# =============================================================================
# STATE MACHINE
# =============================================================================

class StateMachineTest(CountServiceTestCase):

    def test_start(self):
        count = self.service.create_count(self.location)
        self.service.start_count(count)
        count.refresh_from_db()
        self.assertEqual(count.status, CountStatus.IN_PROGRESS)
        self.assertIsNotNone(count.started_at)
        self.assertEqual(count.started_by, self.user)

    def test_start_twice_rejected(self):
        count = self._started_count()
        with self.assertRaises(InvalidStateError):
            self.service.start_count(count)

    def test_cancel_requires_reason(self):
        count = self.service.create_count(self.location)
        with self.assertRaises(ValidationError):
            self.service.cancel_count(count, '   ')
        count.refresh_from_db()
        self.assertEqual(count.status, CountStatus.DRAFT)

    def test_cancel_from_draft_and_in_progress(self):
        draft = self.service.create_count(self.location)
        self.service.cancel_count(draft, 'Created by mistake')
        draft.refresh_from_db()
        self.assertEqual(draft.status, CountStatus.CANCELLED)
        self.assertEqual(draft.cancellation_reason, 'Created by mistake')
        self.assertIsNotNone(draft.cancelled_at)

        running = self._started_count()
        self.service.cancel_count(running, 'Store closed early')
        running.refresh_from_db()
        self.assertEqual(running.status, CountStatus.CANCELLED)

    def test_complete_requires_in_progress(self):
        count = self.service.create_count(self.location)
        with self.assertRaises(InvalidStateError):
            self.service.complete_count(count)

    def test_terminal_states_are_final(self):
        """No transition succeeds once a count is COMPLETED or CANCELLED."""
        completed = self._started_count()
        self.service.complete_count(completed, apply_adjustments=False)
        cancelled = self._started_count()
        self.service.cancel_count(cancelled, 'Abandoned')

        for count in (completed, cancelled):
            status = count.status
            with self.assertRaises(InvalidStateError):
                self.service.start_count(count)
            with self.assertRaises(InvalidStateError):
                self.service.cancel_count(count, 'Again')
            with self.assertRaises(InvalidStateError):
                self.service.complete_count(count)
            with self.assertRaises(InvalidStateError):
                self.service.delete_count(count)
            count.refresh_from_db()
            self.assertEqual(count.status, status)

    def test_stale_instance_rechecked_under_lock(self):
        """A transition checks the stored status, not the caller's copy."""
        count = self._started_count()
        stale = InventoryCount.objects.get(pk=count.pk)
        self.service.cancel_count(count, 'Cancelled elsewhere')
        with self.assertRaises(InvalidStateError):
            self.service.complete_count(stale)

    def test_delete_draft(self):
        count = self.service.create_count(self.location)
        self.service.delete_count(count)
        self.assertFalse(InventoryCount.objects.filter(pk=count.pk).exists())
        self.assertFalse(InventoryCountItem.objects.filter(count_id=count.pk).exists())

    def test_delete_in_progress_rejected(self):
        count = self._started_count()
        with self.assertRaises(InvalidStateError):
            self.service.delete_count(count)


# =============================================================================
# SCANNING
# =============================================================================

class ScanTest(CountServiceTestCase):

    def test_scan_requires_in_progress(self):
        count = self.service.create_count(self.location)
        with self.assertRaises(CountNotInProgressError) as ctx:
            self.service.scan_barcode(count, '1001')
        self.assertEqual(ctx.exception.code, 'COUNT_NOT_IN_PROGRESS')

    def test_scan_quantity_must_be_positive(self):
        count = self._started_count()
        for bad in (0, -1, 'abc', 2.5, True):
            with self.assertRaises(ValidationError):
                self.service.scan_barcode(count, '1001', quantity=bad)

    def test_scan_records_count(self):
        count = self._started_count()
        result = self.service.scan_barcode(count, '1001', quantity=8, notes='Top shelf')
        self.assertFalse(result.already_counted)
        self.assertEqual(result.discrepancy, -2)

        item = self._item(count, self.product_a)
        self.assertTrue(item.is_counted)
        self.assertEqual(item.counted_quantity, 8)
        self.assertEqual(item.discrepancy, -2)
        self.assertEqual(item.scanned_barcode, '1001')
        self.assertEqual(item.counted_by, self.user)
        self.assertIsNotNone(item.counted_at)
        self.assertEqual(item.notes, 'Top shelf')

    def test_rescan_is_idempotent(self):
        """A second scan returns the first count and changes nothing."""
        count = self._started_count()
        first = self.service.scan_barcode(count, '1001', quantity=8)
        second = self.service.scan_barcode(count, '1001', quantity=3)

        self.assertTrue(second.already_counted)
        self.assertEqual(second.previous_count, 8)
        self.assertEqual(second.counted_by, self.user)
        self.assertEqual(second.counted_at, first.item.counted_at)
        self.assertEqual(self._item(count, self.product_a).counted_quantity, 8)

    def test_unknown_barcode(self):
        count = self._started_count()
        with self.assertRaises(BarcodeNotFoundError):
            self.service.scan_barcode(count, '0000')

    def test_product_not_in_count(self):
        count = self._started_count()
        with self.assertRaises(UnexpectedProductError) as ctx:
            self.service.scan_barcode(count, '1999')
        self.assertEqual(ctx.exception.details['product_sku'], 'X')

    def test_scan_with_lot(self):
        count = self._started_count()
        lot = Lot.objects.create(tenant=self.tenant, product=self.product_a, lot_number='L-1')
        self.service.scan_barcode(count, '1001', quantity=2, lot=lot)
        self.assertEqual(self._item(count, self.product_a).lot, lot)

    def test_scan_with_foreign_lot_rejected(self):
        count = self._started_count()
        lot = Lot.objects.create(tenant=self.tenant, product=self.product_b, lot_number='L-2')
        with self.assertRaises(ValidationError):
            self.service.scan_barcode(count, '1001', quantity=2, lot=lot)
        self.assertFalse(self._item(count, self.product_a).is_counted)

    def test_shared_barcode_prefers_product_in_count(self):
        """When two products share a barcode, the one this count expects is counted."""
        backroom = Location.objects.create(tenant=self.tenant, name='Backroom', code='BACK')
        older = Product.objects.create(tenant=self.tenant, sku='OLD', name='Old Pack', barcode='777')
        newer = Product.objects.create(tenant=self.tenant, sku='NEW', name='New Pack', barcode='777')
        Stock.objects.create(tenant=self.tenant, product=older, location=self.location, quantity=3)
        Stock.objects.create(tenant=self.tenant, product=newer, location=backroom, quantity=6)

        count = self.service.create_count(backroom)
        self.service.start_count(count)
        result = self.service.scan_barcode(count, '777', quantity=4)

        self.assertEqual(result.item.product, newer)
        self.assertEqual(self._item(count, newer).counted_quantity, 4)
        self.assertEqual(result.discrepancy, -2)

    def test_scan_product_deactivated_after_creation(self):
        count = self._started_count()
        Product.objects.filter(pk=self.product_b.pk).update(is_active=False)
        result = self.service.scan_barcode(count, '1002', quantity=5)
        self.assertFalse(result.already_counted)
        self.assertEqual(self._item(count, self.product_b).counted_quantity, 5)


# =============================================================================
# MANUAL ENTRY AND EDITS
# =============================================================================

class ManualEntryTest(CountServiceTestCase):

    def test_register_count(self):
        count = self._started_count()
        item = self.service.register_count(count, self.product_b, 0, notes='Empty shelf')
        self.assertEqual(item.counted_quantity, 0)
        self.assertEqual(item.discrepancy, -5)
        self.assertEqual(item.scanned_barcode, '')

    def test_register_already_counted(self):
        count = self._started_count()
        self.service.register_count(count, self.product_b, 5)
        with self.assertRaises(ProductAlreadyCountedError) as ctx:
            self.service.register_count(count, self.product_b, 4)
        self.assertEqual(ctx.exception.details['previous_count'], 5)

    def test_update_item_count(self):
        """The explicit edit is the only way to change a recorded count."""
        count = self._started_count()
        self.service.scan_barcode(count, '1001', quantity=8)
        item = self._item(count, self.product_a)
        updated = self.service.update_item_count(count, item, 11, notes='Recounted')
        self.assertEqual(updated.counted_quantity, 11)
        self.assertEqual(updated.discrepancy, 1)
        self.assertEqual(updated.notes, 'Recounted')

    def test_update_item_of_other_count_rejected(self):
        count = self._started_count()
        other = self._started_count()
        with self.assertRaises(ValidationError):
            self.service.update_item_count(count, self._item(other, self.product_a), 1)

    def test_update_requires_in_progress(self):
        count = self._started_count()
        item = self._item(count, self.product_a)
        self.service.complete_count(count, apply_adjustments=False)
        with self.assertRaises(CountNotInProgressError):
            self.service.update_item_count(count, item, 3)

    def test_list_items_by_state(self):
        count = self._started_count()
        self.service.scan_barcode(count, '1002', quantity=5)
        self.assertEqual([i.product.sku for i in self.service.list_items(count, 'counted')], ['B'])
        self.assertEqual([i.product.sku for i in self.service.list_items(count, 'pending')], ['A', 'C'])
        with self.assertRaises(ValidationError):
            self.service.list_items(count, 'bogus')

    def test_summary_matches_ledger(self):
        count = self._started_count()
        self.service.scan_barcode(count, '1001', quantity=8)
        summary = self.service.get_summary(count)
        self.assertEqual(summary, ledger.compute_totals(count.items.all()))
        self.assertEqual(summary.expected, 15)
        self.assertEqual(summary.counted, 8)
        self.assertEqual(summary.discrepancy, -7)


# =============================================================================
# COMPLETION
# =============================================================================

class CompletionTest(CountServiceTestCase):

    def test_worked_example(self):
        """A=10/B=5/C=0: scan A 8 twice, B 5, complete with adjustments."""
        count = self._started_count()

        first = self.service.scan_barcode(count, '1001', quantity=8)
        self.assertEqual(first.discrepancy, -2)
        again = self.service.scan_barcode(count, '1001', quantity=8)
        self.assertTrue(again.already_counted)
        self.assertEqual(again.previous_count, 8)
        b = self.service.scan_barcode(count, '1002', quantity=5)
        self.assertEqual(b.discrepancy, 0)

        result = self.service.complete_count(count, apply_adjustments=True, notes='All good')

        c_item = self._item(count, self.product_c)
        self.assertEqual(c_item.counted_quantity, 0)
        self.assertEqual(c_item.discrepancy, 0)
        self.assertEqual(
            [(a.product_id, a.discrepancy) for a in result.adjustments],
            [(self.product_a.pk, -2)],
        )
        self.assertEqual(result.count.status, CountStatus.COMPLETED)
        self.assertEqual(result.count.completion_notes, 'All good')
        self.assertTrue(result.count.adjustments_applied)

        totals = self.service.get_summary(count)
        self.assertEqual((totals.expected, totals.counted, totals.discrepancy), (15, 13, -2))

        stock_a = Stock.objects.get(product=self.product_a, location=self.location)
        self.assertEqual(stock_a.quantity, 8)
        txn = StockTransaction.objects.get(transaction_type='COUNT')
        self.assertEqual(txn.reference_id, count.pk)
        self.assertEqual(txn.reference_number, count.count_number)
        self.assertEqual(txn.quantity, -2)

    def test_zero_fill(self):
        """Every item is counted after completion; uncounted ones become 0."""
        count = self._started_count()
        self.service.scan_barcode(count, '1002', quantity=6)
        self.service.complete_count(count, apply_adjustments=False)

        items = {i.product.sku: i for i in count.items.select_related('product')}
        self.assertTrue(all(i.is_counted for i in items.values()))
        self.assertEqual(items['A'].counted_quantity, 0)
        self.assertEqual(items['A'].counted_by, self.user)
        self.assertEqual(items['B'].counted_quantity, 6)

    def test_adjustments_equal_discrepancies(self):
        count = self._started_count()
        self.service.scan_barcode(count, '1002', quantity=7)
        self.service.register_count(count, self.product_c, 2)
        result = self.service.complete_count(count, apply_adjustments=True)

        self.assertEqual(
            {a.product_id for a in result.adjustments},
            {d.product_id for d in result.discrepancies},
        )
        self.assertEqual(len(result.adjustments), 3)
        levels = dict(
            Stock.objects.filter(location=self.location).values_list('product__sku', 'quantity')
        )
        self.assertEqual(levels, {'A': 0, 'B': 7, 'C': 2})

    def test_no_adjustments_on_opt_out(self):
        count = self._started_count()
        self.service.scan_barcode(count, '1001', quantity=3)
        result = self.service.complete_count(count, apply_adjustments=False)

        self.assertEqual(result.adjustments, [])
        self.assertEqual(len(result.discrepancies), 2)
        self.assertFalse(result.count.adjustments_applied)
        self.assertFalse(StockTransaction.objects.exists())
        self.assertEqual(Stock.objects.get(product=self.product_a).quantity, 10)

    def test_adjustment_reconciles_against_current_stock(self):
        """Sales during the count are not corrected twice."""
        count = self._started_count()
        InventoryService(self.tenant, self.user).adjust_stock(self.product_a, self.location, -1)
        self.service.scan_barcode(count, '1001', quantity=8)
        self.service.complete_count(count, apply_adjustments=True)

        self.assertEqual(Stock.objects.get(product=self.product_a).quantity, 8)
        txn = StockTransaction.objects.get(transaction_type='COUNT', product=self.product_a)
        self.assertEqual(txn.quantity, -1)

    def test_failure_rolls_back(self):
        """A failing adjustment leaves the count IN_PROGRESS and items untouched."""
        count = self._started_count()
        self.service.scan_barcode(count, '1001', quantity=8)

        with mock.patch.object(InventoryService, 'set_stock_level', side_effect=ValidationError('boom')):
            with self.assertRaises(ValidationError):
                self.service.complete_count(count, apply_adjustments=True)

        count.refresh_from_db()
        self.assertEqual(count.status, CountStatus.IN_PROGRESS)
        self.assertFalse(self._item(count, self.product_b).is_counted)
        self.assertEqual(Stock.objects.get(product=self.product_a).quantity, 10)

    def test_history_records_transitions(self):
        count = self._started_count()
        self.service.complete_count(count, apply_adjustments=False)
        statuses = list(count.history.order_by('history_date').values_list('status', flat=True))
        self.assertEqual(statuses, ['DRAFT', 'IN_PROGRESS', 'COMPLETED'])
