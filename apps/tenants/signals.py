# apps/tenants/signals.py
"""
Signals for automatic tenant setup.

When a Tenant is created, sequence records are created for every
sequence type so the first count gets CC-000001.
"""
from django.db.models.signals import post_save
from django.dispatch import receiver
from .models import Tenant, TenantSequence


@receiver(post_save, sender=Tenant)
def create_tenant_sequences(sender, instance, created, **kwargs):
    if created:
        for seq_type, _label in TenantSequence.SEQUENCE_TYPES:
            TenantSequence.objects.get_or_create(
                tenant=instance,
                sequence_type=seq_type,
                defaults={'prefix': TenantSequence.DEFAULT_PREFIXES[seq_type]},
            )
