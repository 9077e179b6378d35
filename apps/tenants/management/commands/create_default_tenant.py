# apps/tenants/management/commands/create_default_tenant.py
"""
Management command to create a default tenant for development.

Usage:
    python manage.py create_default_tenant
    python manage.py create_default_tenant --name "Corner Store"
"""
from django.core.management.base import BaseCommand
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Create a default tenant for local development'

    def add_arguments(self, parser):
        parser.add_argument('--name', default='StockTally Demo Store')
        parser.add_argument('--subdomain', default='localhost')

    def handle(self, *args, **options):
        tenant = Tenant.objects.filter(is_default=True).first()
        if tenant:
            self.stdout.write(self.style.WARNING('Default tenant already exists.'))
            self.stdout.write(
                self.style.SUCCESS(f'Default tenant: {tenant.name} (subdomain: {tenant.subdomain})')
            )
            return

        tenant = Tenant.objects.create(
            name=options['name'],
            subdomain=options['subdomain'],
            is_active=True,
            is_default=True,
        )

        self.stdout.write(self.style.SUCCESS(f'Successfully created default tenant: {tenant.name}'))
        self.stdout.write(self.style.SUCCESS(f'  - Subdomain: {tenant.subdomain}'))
        self.stdout.write(self.style.SUCCESS(f'  - ID: {tenant.id}'))

        # TenantSequence rows are auto-created by signals
        self.stdout.write(self.style.SUCCESS(f'\nAuto-created {tenant.sequences.count()} sequence records:'))
        for seq in tenant.sequences.all():
            self.stdout.write(self.style.SUCCESS(f'  - {seq.sequence_type}: {seq.prefix}######'))
