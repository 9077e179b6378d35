# apps/tenants/models.py
"""
Tenant models for multi-tenant SaaS architecture.

Models:
- Tenant: Represents a single customer company
- TenantSequence: Auto-generate sequential numbers (counts, adjustments, etc.)
"""
from django.db import models, transaction


class Tenant(models.Model):
    """
    Represents a single tenant (customer company) in the SaaS system.

    Each tenant has isolated data - no tenant can see another tenant's data.
    """
    name = models.CharField(max_length=255, help_text="Company name")
    subdomain = models.CharField(
        max_length=63,
        unique=True,
        help_text="Subdomain for accessing the system (e.g., 'acme' for acme.stocktally.app)"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive tenants cannot log in"
    )
    is_default = models.BooleanField(
        default=False,
        help_text="Default tenant for development (only one should be default)"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['subdomain']),
            models.Index(fields=['is_active']),
        ]

    def __str__(self):
        return self.name


class TenantSequence(models.Model):
    """
    Sequential document numbers per tenant.

    Usage:
        number = get_next_sequence_number(tenant, 'COUNT')  # Returns 'CC-000001'
    """
    SEQUENCE_TYPES = [
        ('COUNT', 'Inventory Count'),
    ]

    DEFAULT_PREFIXES = {
        'COUNT': 'CC-',
    }

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='sequences'
    )
    sequence_type = models.CharField(
        max_length=20,
        choices=SEQUENCE_TYPES,
        help_text="Type of sequence (COUNT)"
    )
    prefix = models.CharField(
        max_length=10,
        help_text="Prefix for the number (e.g., 'CC-')"
    )
    next_value = models.PositiveIntegerField(
        default=1,
        help_text="Next number to use"
    )
    padding = models.PositiveIntegerField(
        default=6,
        help_text="Zero-pad to this width (e.g., 6 = '000001')"
    )

    class Meta:
        unique_together = [('tenant', 'sequence_type')]

    def __str__(self):
        return f"{self.tenant.name} - {self.sequence_type}"


def get_next_sequence_number(tenant, sequence_type):
    """
    Get the next sequential number for a tenant and sequence type.

    The sequence row is created on first use, so tenants created before a
    sequence type existed still get numbers.

    Returns:
        str: Formatted sequence number (e.g., 'CC-000001')
    """
    with transaction.atomic():
        seq, _ = TenantSequence.objects.select_for_update().get_or_create(
            tenant=tenant,
            sequence_type=sequence_type,
            defaults={'prefix': TenantSequence.DEFAULT_PREFIXES.get(sequence_type, f'{sequence_type}-')},
        )
        number = f"{seq.prefix}{str(seq.next_value).zfill(seq.padding)}"
        seq.next_value += 1
        seq.save(update_fields=['next_value'])
        return number
