# apps/inventory/models.py
"""
Inventory models for tracking stock levels and movements.

Models:
- Stock: Current on-hand quantity per product/location
- StockTransaction: Audit trail for all stock movements

Every change to Stock goes through InventoryService, which writes the
matching StockTransaction in the same database transaction.
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from shared.models import TenantMixin
from simple_history.models import HistoricalRecords


class Stock(TenantMixin):
    """
    Real-time stock level per product/location.

    Rows may exist with quantity 0; such products are still expected at
    the location and are included when a count is created.
    """
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.CASCADE,
        related_name='stock_levels',
    )
    location = models.ForeignKey(
        'warehousing.Location',
        on_delete=models.CASCADE,
        related_name='stock_levels',
    )
    quantity = models.IntegerField(
        default=0,
        help_text="Physical quantity on hand (base units)"
    )
    last_updated = models.DateTimeField(auto_now=True)

    # Audit trail
    history = HistoricalRecords()

    class Meta:
        verbose_name = "Stock Level"
        verbose_name_plural = "Stock Levels"
        unique_together = [('tenant', 'product', 'location')]
        indexes = [
            models.Index(fields=['tenant', 'location']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='stock_quantity_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.product.sku} @ {self.location.code}: {self.quantity}"

    def clean(self):
        super().clean()
        if self.quantity < 0:
            raise ValidationError({'quantity': "Quantity cannot be negative."})


class StockTransaction(TenantMixin):
    """
    Immutable audit trail for stock movements.

    Transaction Types:
    - PURCHASE: Goods received (increase)
    - SALE: Goods sold (decrease)
    - ADJUSTMENT: Manual correction (+/-)
    - TRANSFER_IN / TRANSFER_OUT: Movement between locations
    - COUNT: Reconciliation to a physical count
    """
    class TransactionType(models.TextChoices):
        PURCHASE = 'PURCHASE', 'Purchase'
        SALE = 'SALE', 'Sale'
        ADJUSTMENT = 'ADJUSTMENT', 'Adjustment'
        TRANSFER_IN = 'TRANSFER_IN', 'Transfer In'
        TRANSFER_OUT = 'TRANSFER_OUT', 'Transfer Out'
        COUNT = 'COUNT', 'Physical Count'

    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='stock_transactions',
    )
    location = models.ForeignKey(
        'warehousing.Location',
        on_delete=models.PROTECT,
        related_name='stock_transactions',
    )
    lot = models.ForeignKey(
        'warehousing.Lot',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='transactions',
    )
    quantity = models.IntegerField(
        help_text="Quantity changed (positive=increase, negative=decrease)"
    )
    balance_after = models.IntegerField(
        help_text="Stock quantity after this transaction"
    )
    transaction_date = models.DateTimeField(auto_now_add=True)
    reference_type = models.CharField(
        max_length=50,
        blank=True,
        help_text="Type of reference document (COUNT, PO)"
    )
    reference_id = models.PositiveIntegerField(null=True, blank=True)
    reference_number = models.CharField(
        max_length=100,
        blank=True,
        help_text="Human-readable reference (e.g., 'CC-000012')"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='stock_transactions',
    )
    notes = models.TextField(blank=True)

    class Meta:
        verbose_name = "Stock Transaction"
        verbose_name_plural = "Stock Transactions"
        ordering = ['-transaction_date', '-id']
        indexes = [
            models.Index(fields=['tenant', 'product', 'location', 'transaction_date']),
            models.Index(fields=['reference_type', 'reference_id']),
        ]

    def __str__(self):
        sign = '+' if self.quantity > 0 else ''
        return f"{self.transaction_type}: {self.product.sku} {sign}{self.quantity}"
