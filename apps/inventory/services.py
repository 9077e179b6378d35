# apps/inventory/services.py
"""
Inventory service for managing stock movements.

InventoryService handles:
- Receiving stock
- Reconciling stock to a physical count

All operations are atomic, lock the affected Stock row and create
StockTransaction records for the audit trail.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from .models import Stock, StockTransaction

logger = logging.getLogger(__name__)

TxType = StockTransaction.TransactionType


class InventoryService:
    """
    Service for managing stock operations.

    Usage:
        service = InventoryService(tenant, user)
        service.receive_stock(product, location, quantity=24)
        service.set_stock_level(product, location, 20, reference_type='COUNT',
                                reference_id=count.id, reference_number=count.count_number)
    """

    def __init__(self, tenant, user=None):
        """
        Initialize inventory service.

        Args:
            tenant: Tenant instance to scope operations
            user: User performing operations (for audit trail)
        """
        self.tenant = tenant
        self.user = user

    # ===== MOVEMENTS =====

    def receive_stock(self, product, location, quantity, lot=None, reference='', notes=''):
        """Add received goods to a location (PURCHASE)."""
        if quantity <= 0:
            raise ValidationError("Received quantity must be positive.")

        with transaction.atomic():
            stock = self._get_stock_for_update(product, location)
            stock.quantity += quantity
            stock.save()

            self._create_transaction(
                transaction_type=TxType.PURCHASE,
                product=product,
                location=location,
                lot=lot,
                quantity=quantity,
                reference_type='PO' if reference else '',
                reference_number=reference,
                notes=notes,
                stock=stock,
            )
        return stock

    def set_stock_level(self, product, location, counted_quantity, reference_type='COUNT',
                        reference_id=None, reference_number='', notes=''):
        """
        Reconcile stock at a location to a physically counted quantity.

        The transaction quantity is the difference against the CURRENT stock
        level, not the level snapshotted when the count was created, so sales
        recorded during the count are not double-corrected.

        Returns:
            StockTransaction, or None when stock already matches
        """
        if counted_quantity < 0:
            raise ValidationError("Counted quantity cannot be negative.")

        with transaction.atomic():
            stock = self._get_stock_for_update(product, location)
            change = counted_quantity - stock.quantity
            if change == 0:
                return None

            stock.quantity = counted_quantity
            stock.save()

            txn = self._create_transaction(
                transaction_type=TxType.COUNT,
                product=product,
                location=location,
                quantity=change,
                reference_type=reference_type,
                reference_id=reference_id,
                reference_number=reference_number,
                notes=notes or f"Physical count adjustment: {change:+d}",
                stock=stock,
            )
        logger.info(
            f"Stock of {product.sku} at {location.code} set to {counted_quantity} "
            f"({change:+d}) by {reference_number or reference_type}"
        )
        return txn

    # ===== HELPERS =====

    def _get_stock_for_update(self, product, location):
        """Get or create the stock row and lock it for the current transaction."""
        Stock.objects.get_or_create(
            tenant=self.tenant,
            product=product,
            location=location,
            defaults={'quantity': 0},
        )
        return Stock.objects.select_for_update().get(
            tenant=self.tenant, product=product, location=location,
        )

    def _create_transaction(
        self,
        transaction_type,
        product,
        location,
        quantity,
        lot=None,
        reference_type='',
        reference_id=None,
        reference_number='',
        notes='',
        stock=None,
    ):
        """Create stock transaction record."""
        return StockTransaction.objects.create(
            tenant=self.tenant,
            transaction_type=transaction_type,
            product=product,
            location=location,
            lot=lot,
            quantity=quantity,
            balance_after=stock.quantity if stock else 0,
            reference_type=reference_type,
            reference_id=reference_id,
            reference_number=reference_number,
            user=self.user,
            notes=notes,
        )
