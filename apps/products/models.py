# apps/products/models.py
"""
Product catalog.

Models:
- Product: Sellable/countable product, identified by SKU and optionally a barcode
"""
from django.db import models
from shared.models import TenantMixin, TimestampMixin
from simple_history.models import HistoricalRecords


class Product(TenantMixin, TimestampMixin):
    """
    A product in the tenant's catalog.

    IMPORTANT: sku is unique per tenant only, not globally. Barcodes are
    not enforced unique, but barcode resolution only considers active
    products and takes the oldest match.
    """
    sku = models.CharField(
        max_length=50,
        help_text="Stock keeping unit (unique per tenant)"
    )
    name = models.CharField(max_length=255)
    barcode = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="EAN/UPC barcode as printed on the package"
    )
    brand = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    sale_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    image_url = models.URLField(max_length=500, blank=True)
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive products are not offered for counting or scanning"
    )

    history = HistoricalRecords()

    class Meta:
        ordering = ['sku']
        unique_together = [('tenant', 'sku')]
        indexes = [
            models.Index(fields=['tenant', 'barcode']),
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"
