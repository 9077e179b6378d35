from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Custom User Model inheriting from AbstractUser for flexibility.

    Staff users belong to one tenant; superusers may have none and act on
    any tenant through the X-Tenant-ID header.
    """

    name = models.CharField(max_length=255, blank=True)
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='users',
    )

    def __str__(self):
        return self.name or self.username
