# apps/warehousing/models.py
"""
Warehousing models.

Models:
- Location: A physical place where stock is kept and counted (store, warehouse, backroom)
- Lot: Batch/lot of a product, optionally with an expiry date
"""
from django.db import models
from shared.models import TenantMixin, TimestampMixin


class Location(TenantMixin, TimestampMixin):
    """
    A physical stock location.

    Counts are always scoped to exactly one location.
    """
    name = models.CharField(max_length=255)
    code = models.CharField(
        max_length=30,
        help_text="Short code (e.g., 'MAIN', 'BACK-1'), unique per tenant"
    )
    address = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive locations cannot start new counts"
    )

    class Meta:
        ordering = ['code']
        unique_together = [('tenant', 'code')]
        indexes = [
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"


class Lot(TenantMixin, TimestampMixin):
    """Batch/lot tracking for a product."""
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.CASCADE,
        related_name='lots',
    )
    lot_number = models.CharField(max_length=100)
    expiry_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['expiry_date', 'lot_number']
        unique_together = [('tenant', 'product', 'lot_number')]

    def __str__(self):
        return f"{self.lot_number} ({self.product.sku})"
