# apps/counts/ledger.py
"""
Pure arithmetic over count items.

Nothing here touches the database. Functions take any iterable of objects
exposing ``expected_quantity`` and ``counted_quantity`` (and ``product``
where product details are reported), so they work on model instances,
fetched snapshots and plain test doubles alike.
"""
from dataclasses import dataclass
from typing import Optional


SHORTAGE = 'shortage'
SURPLUS = 'surplus'
MATCH = 'match'


@dataclass(frozen=True)
class CountTotals:
    """Aggregate quantities for a count."""
    expected: int
    counted: int
    discrepancy: int
    items_total: int
    items_counted: int

    @property
    def items_pending(self):
        return self.items_total - self.items_counted

    @property
    def progress(self):
        return compute_progress(self.items_counted, self.items_total)


@dataclass(frozen=True)
class DiscrepancyItem:
    """A counted item whose quantity differs from what was expected."""
    item_id: Optional[int]
    product_id: int
    product_sku: str
    product_name: str
    expected_quantity: int
    counted_quantity: int
    discrepancy: int
    discrepancy_type: str


@dataclass(frozen=True)
class AdjustmentRequest:
    """One stock correction to apply when a count completes."""
    count_id: int
    product_id: int
    location_id: int
    counted_quantity: int
    discrepancy: int


def compute_progress(items_counted, items_total):
    """Percentage of items counted, clamped to [0, 100]. Zero items is 0%."""
    if items_total <= 0:
        return 0.0
    progress = items_counted / items_total * 100
    return max(0.0, min(100.0, progress))


def compute_totals(items):
    """
    Totals over a count's items.

    ``counted`` sums counted items only, so before completion the
    discrepancy is counted minus ALL expected.
    """
    expected = counted = items_total = items_counted = 0
    for item in items:
        items_total += 1
        expected += item.expected_quantity
        if item.counted_quantity is not None:
            items_counted += 1
            counted += item.counted_quantity
    return CountTotals(
        expected=expected,
        counted=counted,
        discrepancy=counted - expected,
        items_total=items_total,
        items_counted=items_counted,
    )


def item_discrepancy(item):
    """counted - expected, or None while the item is uncounted."""
    if item.counted_quantity is None:
        return None
    return item.counted_quantity - item.expected_quantity


def discrepancy_type(value):
    if value < 0:
        return SHORTAGE
    if value > 0:
        return SURPLUS
    return MATCH


def find_discrepancies(items):
    """Counted items with a non-zero discrepancy, in input order."""
    found = []
    for item in items:
        diff = item_discrepancy(item)
        if not diff:
            continue
        product = item.product
        found.append(DiscrepancyItem(
            item_id=getattr(item, 'pk', None),
            product_id=product.pk,
            product_sku=product.sku,
            product_name=product.name,
            expected_quantity=item.expected_quantity,
            counted_quantity=item.counted_quantity,
            discrepancy=diff,
            discrepancy_type=discrepancy_type(diff),
        ))
    return found


def plan_adjustments(count, items):
    """
    Stock corrections for a completing count: exactly one request per
    counted item with a non-zero discrepancy, none for matches.
    """
    adjustments = []
    for item in items:
        diff = item_discrepancy(item)
        if not diff:
            continue
        adjustments.append(AdjustmentRequest(
            count_id=count.pk,
            product_id=item.product_id,
            location_id=count.location_id,
            counted_quantity=item.counted_quantity,
            discrepancy=diff,
        ))
    return adjustments


def format_discrepancy(value):
    """Signed display form: +3, -2, 0."""
    if value > 0:
        return f"+{value}"
    return str(value)


def format_progress(progress):
    return f"{round(progress)}%"
