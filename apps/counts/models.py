# apps/counts/models.py
"""
Physical inventory count models.

Models:
- InventoryCount: A count session for one location
- InventoryCountItem: One product expected (or found) at the counted location

Workflow:
1. DRAFT: Count created, expected quantities snapshotted from stock.
2. IN_PROGRESS: Staff scan or enter counted quantities.
3. COMPLETED: Uncounted items zero-filled, optional stock adjustments applied.
4. CANCELLED: Count abandoned, with a reason.

COMPLETED and CANCELLED are terminal.
"""
from django.conf import settings
from django.db import models
from shared.models import TenantMixin, TimestampMixin
from simple_history.models import HistoricalRecords


class CountStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    IN_PROGRESS = 'IN_PROGRESS', 'In Progress'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'


# Badge variant per status. Must cover every CountStatus; looked up by
# index so a missing status fails loudly.
STATUS_BADGES = {
    CountStatus.DRAFT: 'secondary',
    CountStatus.IN_PROGRESS: 'warning',
    CountStatus.COMPLETED: 'success',
    CountStatus.CANCELLED: 'destructive',
}

ALLOWED_TRANSITIONS = {
    CountStatus.DRAFT: {CountStatus.IN_PROGRESS, CountStatus.CANCELLED},
    CountStatus.IN_PROGRESS: {CountStatus.COMPLETED, CountStatus.CANCELLED},
    CountStatus.COMPLETED: set(),
    CountStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = {CountStatus.COMPLETED, CountStatus.CANCELLED}


def can_transition(current, target):
    """True when a count in ``current`` status may move to ``target``."""
    return CountStatus(target) in ALLOWED_TRANSITIONS[CountStatus(current)]


class InventoryCount(TenantMixin, TimestampMixin):
    """
    A physical inventory count session for a single location.

    Totals (expected, counted, discrepancy, progress) are never stored;
    they are derived from the items on demand.
    """
    count_number = models.CharField(
        max_length=50,
        help_text="Count session number (e.g., CC-000001)"
    )
    location = models.ForeignKey(
        'warehousing.Location',
        on_delete=models.PROTECT,
        related_name='counts',
        help_text="Location being counted"
    )
    status = models.CharField(
        max_length=20,
        choices=CountStatus.choices,
        default=CountStatus.DRAFT,
    )
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(
        blank=True,
        help_text="Notes entered when the count was created"
    )
    completion_notes = models.TextField(
        blank=True,
        help_text="Notes entered when the count was completed"
    )
    cancellation_reason = models.TextField(blank=True)
    adjustments_applied = models.BooleanField(
        default=False,
        help_text="Whether completing this count adjusted stock levels"
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='counts_created',
    )
    started_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='counts_started',
    )
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='counts_completed',
    )
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='counts_cancelled',
    )

    history = HistoricalRecords()

    class Meta:
        ordering = ['-created_at']
        unique_together = [('tenant', 'count_number')]
        indexes = [
            models.Index(fields=['tenant', 'status']),
            models.Index(fields=['tenant', 'location']),
        ]

    def __str__(self):
        return f"{self.count_number} - {self.location.code} ({self.status})"

    @property
    def status_badge(self):
        return STATUS_BADGES[CountStatus(self.status)]

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def is_in_progress(self):
        return self.status == CountStatus.IN_PROGRESS

    def can_transition_to(self, target):
        return can_transition(self.status, target)


class InventoryCountItem(TenantMixin, TimestampMixin):
    """
    One product within a count.

    expected_quantity is snapshotted from stock when the count is created
    and never changes afterwards. discrepancy and is_counted are derived
    from counted_quantity on save.
    """
    count = models.ForeignKey(
        InventoryCount,
        on_delete=models.CASCADE,
        related_name='items',
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='count_items',
    )
    lot = models.ForeignKey(
        'warehousing.Lot',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='count_items',
    )
    expected_quantity = models.PositiveIntegerField(
        default=0,
        help_text="System quantity at the time the count was created"
    )
    counted_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Quantity physically counted"
    )
    discrepancy = models.IntegerField(
        null=True,
        blank=True,
        help_text="counted - expected (positive = surplus, negative = shortage)"
    )
    is_counted = models.BooleanField(default=False)
    scanned_barcode = models.CharField(max_length=64, blank=True)
    counted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='count_items_counted',
    )
    counted_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['product__sku']
        unique_together = [('count', 'product')]
        indexes = [
            models.Index(fields=['count', 'is_counted']),
        ]

    def __str__(self):
        return f"{self.product.sku}: expected={self.expected_quantity}, counted={self.counted_quantity}"

    def save(self, *args, **kwargs):
        if self.counted_quantity is not None:
            self.discrepancy = self.counted_quantity - self.expected_quantity
            self.is_counted = True
        else:
            self.discrepancy = None
            self.is_counted = False
        super().save(*args, **kwargs)
