# apps/counts/services.py
"""
Service layer for physical inventory counts.

CountService owns the count state machine, barcode scan reconciliation,
manual registration, explicit count edits and the completion policy.

Every state-changing operation locks the count row and re-checks its
status inside the transaction, so concurrent requests (e.g. a cancel and
a complete) cannot both succeed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, IntegerField, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.inventory.models import Stock
from apps.inventory.services import InventoryService
from apps.products.services import ProductService
from apps.tenants.models import get_next_sequence_number

from . import ledger
from .exceptions import (
    CountNotInProgressError, InvalidStateError,
    ProductAlreadyCountedError, UnexpectedProductError,
)
from .models import CountStatus, InventoryCount, InventoryCountItem

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """
    Outcome of a scan.

    already_counted=True means the item had a count before this scan and
    was left untouched; previous_count/counted_at/counted_by describe that
    earlier count.
    """
    item: InventoryCountItem
    already_counted: bool
    previous_count: Optional[int] = None
    counted_at: Optional[datetime] = None
    counted_by: Optional[Any] = None
    discrepancy: Optional[int] = None


@dataclass
class CompletionResult:
    """Result of completing a count."""
    count: InventoryCount
    adjustments: List[ledger.AdjustmentRequest] = field(default_factory=list)
    discrepancies: List[ledger.DiscrepancyItem] = field(default_factory=list)


class CountService:
    """
    Service for physical inventory counts.

    Usage:
        service = CountService(tenant, user)
        count = service.create_count(location)
        service.start_count(count)
        result = service.scan_barcode(count, '7501234567890', quantity=3)
        completion = service.complete_count(count, apply_adjustments=True)
    """

    def __init__(self, tenant, user=None):
        self.tenant = tenant
        self.user = user

    # ===== QUERIES =====

    def get_count(self, count_id):
        """Fetch a count of this tenant. Raises InventoryCount.DoesNotExist."""
        return (
            InventoryCount.objects.for_tenant(self.tenant)
            .select_related('location')
            .get(pk=count_id)
        )

    def list_counts(self, status=None, location=None):
        qs = InventoryCount.objects.for_tenant(self.tenant).select_related('location')
        if status:
            qs = qs.filter(status=status)
        if location is not None:
            qs = qs.filter(location=location)
        return qs

    def list_items(self, count, state=None):
        """
        Items of a count.

        Args:
            state: None for all items, 'pending' for uncounted, 'counted' for counted
        """
        qs = count.items.select_related('product', 'lot', 'counted_by')
        if state == 'pending':
            qs = qs.filter(is_counted=False)
        elif state == 'counted':
            qs = qs.filter(is_counted=True)
        elif state is not None:
            raise ValidationError(f"Unknown item state: {state}")
        return qs

    def get_summary(self, count):
        """Count totals computed with database aggregates."""
        agg = count.items.aggregate(
            expected=Coalesce(Sum('expected_quantity'), 0, output_field=IntegerField()),
            counted=Coalesce(Sum('counted_quantity', filter=Q(is_counted=True)), 0, output_field=IntegerField()),
            items_total=Count('id'),
            items_counted=Count('id', filter=Q(is_counted=True)),
        )
        return ledger.CountTotals(
            expected=agg['expected'],
            counted=agg['counted'],
            discrepancy=agg['counted'] - agg['expected'],
            items_total=agg['items_total'],
            items_counted=agg['items_counted'],
        )

    def get_discrepancies(self, count):
        return ledger.find_discrepancies(self.list_items(count, state='counted'))

    # ===== STATE MACHINE =====

    def create_count(self, location, notes=''):
        """
        Create a new count in DRAFT status.

        One item is created per product with a stock row at the location,
        including rows with zero quantity. expected_quantity is the stock
        level at this moment.
        """
        if location.tenant_id != self.tenant.id:
            raise ValidationError("Location does not belong to this tenant.")
        if not location.is_active:
            raise ValidationError(f"Location {location.code} is inactive.")

        with transaction.atomic():
            count = InventoryCount.objects.create(
                tenant=self.tenant,
                count_number=get_next_sequence_number(self.tenant, 'COUNT'),
                location=location,
                status=CountStatus.DRAFT,
                notes=notes,
                created_by=self.user,
            )

            stock_rows = (
                Stock.objects.for_tenant(self.tenant)
                .filter(location=location, product__is_active=True)
                .select_related('product')
            )
            items = [
                InventoryCountItem(
                    tenant=self.tenant,
                    count=count,
                    product=stock.product,
                    expected_quantity=stock.quantity,
                )
                for stock in stock_rows
            ]
            InventoryCountItem.objects.bulk_create(items)

        logger.info(f"Created count {count.count_number} at {location.code} with {len(items)} items")
        return count

    def start_count(self, count):
        """Transition DRAFT -> IN_PROGRESS."""
        with transaction.atomic():
            locked = self._lock(count)
            if locked.status != CountStatus.DRAFT:
                raise InvalidStateError(
                    f"Cannot start count with status: {locked.status}", status=locked.status,
                )
            locked.status = CountStatus.IN_PROGRESS
            locked.started_at = timezone.now()
            locked.started_by = self.user
            locked.save(update_fields=['status', 'started_at', 'started_by', 'updated_at'])

        logger.info(f"Started count {locked.count_number}")
        return self._refresh(count, locked)

    def cancel_count(self, count, reason):
        """Transition DRAFT/IN_PROGRESS -> CANCELLED. A reason is required."""
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError("A cancellation reason is required.")

        with transaction.atomic():
            locked = self._lock(count)
            if not locked.can_transition_to(CountStatus.CANCELLED):
                raise InvalidStateError(
                    f"Cannot cancel count with status: {locked.status}", status=locked.status,
                )
            locked.status = CountStatus.CANCELLED
            locked.cancelled_at = timezone.now()
            locked.cancelled_by = self.user
            locked.cancellation_reason = reason
            locked.save(update_fields=[
                'status', 'cancelled_at', 'cancelled_by', 'cancellation_reason', 'updated_at',
            ])

        logger.info(f"Cancelled count {locked.count_number}: {reason}")
        return self._refresh(count, locked)

    def complete_count(self, count, apply_adjustments=True, notes=''):
        """
        Transition IN_PROGRESS -> COMPLETED.

        1. Zero-fill every uncounted item (not found = counted as 0).
        2. Collect discrepancies after the zero-fill.
        3. If apply_adjustments, set stock to the counted quantity for each
           discrepant product at the count's location.
        4. Mark the count COMPLETED.

        Runs in one transaction; any failure leaves the count IN_PROGRESS
        with no items or stock changed.

        Returns:
            CompletionResult
        """
        with transaction.atomic():
            locked = self._lock(count)
            if locked.status != CountStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Cannot complete count with status: {locked.status}", status=locked.status,
                )

            now = timezone.now()
            items = list(locked.items.select_for_update().select_related('product'))
            zero_filled = 0
            for item in items:
                if item.counted_quantity is None:
                    item.counted_quantity = 0
                    item.counted_at = now
                    item.counted_by = self.user
                    item.save()
                    zero_filled += 1

            discrepancies = ledger.find_discrepancies(items)
            adjustments = []
            if apply_adjustments:
                adjustments = ledger.plan_adjustments(locked, items)
                products = {item.product_id: item.product for item in items}
                inventory = InventoryService(self.tenant, self.user)
                for adj in adjustments:
                    inventory.set_stock_level(
                        products[adj.product_id],
                        locked.location,
                        adj.counted_quantity,
                        reference_type='COUNT',
                        reference_id=locked.pk,
                        reference_number=locked.count_number,
                        notes=f"Count {locked.count_number}: {ledger.format_discrepancy(adj.discrepancy)}",
                    )

            locked.status = CountStatus.COMPLETED
            locked.completed_at = now
            locked.completed_by = self.user
            locked.completion_notes = notes or ''
            locked.adjustments_applied = bool(apply_adjustments)
            locked.save(update_fields=[
                'status', 'completed_at', 'completed_by', 'completion_notes',
                'adjustments_applied', 'updated_at',
            ])

        logger.info(
            f"Completed count {locked.count_number}: {zero_filled} zero-filled, "
            f"{len(discrepancies)} discrepancies, {len(adjustments)} adjustments applied"
        )
        return CompletionResult(
            count=self._refresh(count, locked),
            adjustments=adjustments,
            discrepancies=discrepancies,
        )

    def delete_count(self, count):
        """Delete a DRAFT count and its items."""
        with transaction.atomic():
            locked = self._lock(count)
            if locked.status != CountStatus.DRAFT:
                raise InvalidStateError(
                    f"Only draft counts can be deleted (status: {locked.status})", status=locked.status,
                )
            number = locked.count_number
            locked.delete()
        logger.info(f"Deleted draft count {number}")

    # ===== COUNTING =====

    def scan_barcode(self, count, barcode, quantity=1, notes='', lot=None):
        """
        Record a count for the product identified by a scanned barcode.

        Rescanning an already-counted product changes nothing and returns
        a ScanResult with already_counted=True; use update_item_count to
        change a recorded quantity.

        Raises:
            CountNotInProgressError: count is not IN_PROGRESS
            ValidationError: quantity is not a positive integer
            BarcodeNotFoundError: unknown barcode (may carry a suggestion)
            LookupUnavailableError: external product lookup failed
            UnexpectedProductError: product is not part of this count
        """
        self._require_in_progress(count)
        quantity = self._validate_quantity(quantity, allow_zero=False)
        barcode = (barcode or '').strip()
        if not barcode:
            raise ValidationError("Barcode is required.")

        product = self._product_in_count(count, barcode)
        if product is None:
            product = ProductService(self.tenant, self.user).resolve_barcode(barcode)

        with transaction.atomic():
            self._lock_in_progress(count)
            item = self._lock_item(count, product)
            if item.is_counted:
                logger.info(f"Rescan of {product.sku} in count {count.count_number} ignored (already counted)")
                return ScanResult(
                    item=item,
                    already_counted=True,
                    previous_count=item.counted_quantity,
                    counted_at=item.counted_at,
                    counted_by=item.counted_by,
                    discrepancy=item.discrepancy,
                )
            self._record(item, product, quantity, notes=notes, lot=lot, barcode=barcode)

        return ScanResult(item=item, already_counted=False, discrepancy=item.discrepancy)

    def register_count(self, count, product, quantity, notes='', lot=None):
        """
        Record a count for a product without scanning.

        Raises:
            ProductAlreadyCountedError: the item already has a count
        """
        self._require_in_progress(count)
        quantity = self._validate_quantity(quantity, allow_zero=True)
        if product.tenant_id != self.tenant.id:
            raise ValidationError("Product does not belong to this tenant.")

        with transaction.atomic():
            self._lock_in_progress(count)
            item = self._lock_item(count, product)
            if item.is_counted:
                raise ProductAlreadyCountedError(item)
            self._record(item, product, quantity, notes=notes, lot=lot)
        return item

    def update_item_count(self, count, item, quantity, notes=None):
        """
        Explicitly change the counted quantity of an item.

        This is the only operation that overwrites a recorded count.
        Allowed only while the count is IN_PROGRESS.
        """
        self._require_in_progress(count)
        quantity = self._validate_quantity(quantity, allow_zero=True)

        with transaction.atomic():
            self._lock_in_progress(count)
            try:
                locked = (
                    InventoryCountItem.objects.select_for_update()
                    .select_related('product')
                    .get(pk=item.pk, count_id=count.pk, tenant=self.tenant)
                )
            except InventoryCountItem.DoesNotExist:
                raise ValidationError("Item does not belong to this count.")

            previous = locked.counted_quantity
            locked.counted_quantity = quantity
            locked.counted_at = timezone.now()
            locked.counted_by = self.user
            if notes is not None:
                locked.notes = notes
            locked.save()

        logger.info(
            f"Count {count.count_number}: {locked.product.sku} changed from {previous} to {quantity}"
        )
        return locked

    # ===== HELPERS =====

    def _lock(self, count):
        return (
            InventoryCount.objects.select_for_update()
            .select_related('location')
            .get(pk=count.pk, tenant=self.tenant)
        )

    def _require_in_progress(self, count):
        status = (
            InventoryCount.objects.for_tenant(self.tenant)
            .filter(pk=count.pk)
            .values_list('status', flat=True)
            .first()
        )
        if status is None:
            raise InventoryCount.DoesNotExist(f"Count {count.pk} not found.")
        if status != CountStatus.IN_PROGRESS:
            raise CountNotInProgressError(status)

    def _lock_in_progress(self, count):
        locked = self._lock(count)
        if locked.status != CountStatus.IN_PROGRESS:
            raise CountNotInProgressError(locked.status)
        return locked

    def _product_in_count(self, count, barcode):
        # Barcodes are not unique; a product expected by this count wins,
        # even if it was deactivated after the count was created.
        item = (
            InventoryCountItem.objects.for_tenant(self.tenant)
            .filter(count_id=count.pk, product__barcode=barcode)
            .select_related('product')
            .order_by('product_id')
            .first()
        )
        return item.product if item else None

    def _lock_item(self, count, product):
        try:
            return (
                InventoryCountItem.objects.select_for_update()
                .select_related('product', 'counted_by')
                .get(count_id=count.pk, product=product, tenant=self.tenant)
            )
        except InventoryCountItem.DoesNotExist:
            raise UnexpectedProductError(product)

    def _record(self, item, product, quantity, notes='', lot=None, barcode=''):
        if lot is not None and lot.product_id != product.pk:
            raise ValidationError(f"Lot {lot.lot_number} is not a lot of {product.sku}.")
        item.counted_quantity = quantity
        item.counted_at = timezone.now()
        item.counted_by = self.user
        item.scanned_barcode = barcode
        item.notes = notes or ''
        if lot is not None:
            item.lot = lot
        item.save()
        logger.info(
            f"Count {item.count.count_number}: {product.sku} counted {quantity} "
            f"(expected {item.expected_quantity}, {ledger.format_discrepancy(item.discrepancy)})"
        )

    @staticmethod
    def _validate_quantity(quantity, allow_zero):
        if isinstance(quantity, bool):
            raise ValidationError("Quantity must be an integer.")
        try:
            value = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError("Quantity must be an integer.")
        if value != quantity and str(value) != str(quantity).strip():
            raise ValidationError("Quantity must be an integer.")
        minimum = 0 if allow_zero else 1
        if value < minimum:
            raise ValidationError(f"Quantity must be at least {minimum}.")
        return value

    @staticmethod
    def _refresh(count, locked):
        """Copy the committed state onto the caller's instance."""
        if count is not locked:
            count.refresh_from_db()
        return count
