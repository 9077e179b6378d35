# apps/api/v1/serializers/counts.py
"""
Serializers for inventory counts.
"""
from rest_framework import serializers

from apps.counts import ledger
from apps.counts.models import InventoryCount, InventoryCountItem
from .base import TenantModelSerializer


class InventoryCountItemSerializer(TenantModelSerializer):
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_barcode = serializers.CharField(source='product.barcode', read_only=True)
    lot_number = serializers.CharField(source='lot.lot_number', read_only=True, allow_null=True)
    counted_by_name = serializers.SerializerMethodField()
    discrepancy_display = serializers.SerializerMethodField()

    class Meta:
        model = InventoryCountItem
        fields = [
            'id', 'count', 'product', 'product_sku', 'product_name', 'product_barcode',
            'lot', 'lot_number',
            'expected_quantity', 'counted_quantity', 'discrepancy', 'discrepancy_display',
            'is_counted', 'scanned_barcode', 'counted_by', 'counted_by_name', 'counted_at',
            'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_counted_by_name(self, obj):
        return str(obj.counted_by) if obj.counted_by else None

    def get_discrepancy_display(self, obj):
        if obj.discrepancy is None:
            return None
        return ledger.format_discrepancy(obj.discrepancy)


class InventoryCountListSerializer(TenantModelSerializer):
    location_code = serializers.CharField(source='location.code', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    status_badge = serializers.CharField(read_only=True)
    items_total = serializers.SerializerMethodField()
    items_counted = serializers.SerializerMethodField()

    class Meta:
        model = InventoryCount
        fields = [
            'id', 'count_number', 'location', 'location_code', 'location_name',
            'status', 'status_display', 'status_badge',
            'items_total', 'items_counted',
            'started_at', 'completed_at', 'cancelled_at',
            'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'count_number', 'status', 'started_at', 'completed_at', 'cancelled_at',
            'created_at', 'updated_at',
        ]

    # List querysets annotate these; single instances fall back to a query.
    def get_items_total(self, obj):
        total = getattr(obj, 'items_total', None)
        return obj.items.count() if total is None else total

    def get_items_counted(self, obj):
        counted = getattr(obj, 'items_counted', None)
        return obj.items.filter(is_counted=True).count() if counted is None else counted


class InventoryCountDetailSerializer(InventoryCountListSerializer):
    items = InventoryCountItemSerializer(many=True, read_only=True)
    progress = serializers.SerializerMethodField()

    class Meta(InventoryCountListSerializer.Meta):
        fields = InventoryCountListSerializer.Meta.fields + [
            'completion_notes', 'cancellation_reason', 'adjustments_applied',
            'created_by', 'started_by', 'completed_by', 'cancelled_by',
            'progress', 'items',
        ]
        read_only_fields = InventoryCountListSerializer.Meta.read_only_fields + [
            'completion_notes', 'cancellation_reason', 'adjustments_applied',
            'created_by', 'started_by', 'completed_by', 'cancelled_by',
        ]

    def get_progress(self, obj):
        items = obj.items.all()
        return ledger.compute_progress(
            sum(1 for item in items if item.is_counted), len(items),
        )


# ==================== INPUT SERIALIZERS ====================

class CreateCountSerializer(serializers.Serializer):
    location = serializers.IntegerField(help_text="Location ID to count")
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CompleteCountSerializer(serializers.Serializer):
    apply_adjustments = serializers.BooleanField(
        default=True,
        help_text="Set stock to the counted quantity for every discrepancy",
    )
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CancelCountSerializer(serializers.Serializer):
    reason = serializers.CharField(help_text="Why the count is cancelled")


class ScanBarcodeSerializer(serializers.Serializer):
    barcode = serializers.CharField(max_length=64)
    quantity = serializers.IntegerField(min_value=1, default=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    lot = serializers.IntegerField(required=False, allow_null=True, help_text="Lot ID")


class RegisterCountSerializer(serializers.Serializer):
    """Record a count without a barcode."""
    product = serializers.IntegerField(help_text="Product ID")
    quantity = serializers.IntegerField(min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    lot = serializers.IntegerField(required=False, allow_null=True, help_text="Lot ID")


class UpdateCountItemSerializer(serializers.Serializer):
    counted_quantity = serializers.IntegerField(min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True)


# ==================== OUTPUT SERIALIZERS ====================

class ScanResultSerializer(serializers.Serializer):
    item = InventoryCountItemSerializer()
    already_counted = serializers.BooleanField()
    previous_count = serializers.IntegerField(allow_null=True)
    counted_at = serializers.DateTimeField(allow_null=True)
    counted_by = serializers.CharField(allow_null=True)
    discrepancy = serializers.IntegerField(allow_null=True)


class CountTotalsSerializer(serializers.Serializer):
    expected = serializers.IntegerField()
    counted = serializers.IntegerField()
    discrepancy = serializers.IntegerField()
    items_total = serializers.IntegerField()
    items_counted = serializers.IntegerField()
    items_pending = serializers.IntegerField()
    progress = serializers.FloatField()


class DiscrepancySerializer(serializers.Serializer):
    item_id = serializers.IntegerField(allow_null=True)
    product_id = serializers.IntegerField()
    product_sku = serializers.CharField()
    product_name = serializers.CharField()
    expected_quantity = serializers.IntegerField()
    counted_quantity = serializers.IntegerField()
    discrepancy = serializers.IntegerField()
    discrepancy_type = serializers.CharField()


class AdjustmentSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    location_id = serializers.IntegerField()
    counted_quantity = serializers.IntegerField()
    discrepancy = serializers.IntegerField()


class CompletionResultSerializer(serializers.Serializer):
    count = InventoryCountDetailSerializer()
    adjustments = AdjustmentSerializer(many=True)
    discrepancies = DiscrepancySerializer(many=True)
