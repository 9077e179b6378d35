# apps/counts/management/commands/count_station.py
"""
Terminal scanning station for a count session.

USB barcode scanners type the barcode followed by Enter, so every input
line is treated as a scan unless it starts with ':'.

Usage:
    python manage.py count_station 12 --user maria
    python manage.py count_station 12 --user maria --tenant acme --start

Input:
    7501234567890        scan with the default quantity
    6*7501234567890      scan with quantity 6
    :qty 12              set the default quantity
    :edit SKU 7          change a recorded count
    :add SKU 3           register a count without scanning
    :create SKU          create a product from the last suggestion
    :pending / :summary / :disc / :history
    :complete [--no-adjust] [notes]
    :cancel reason
    :quit
"""
import sys

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from apps.counts import ledger
from apps.counts.controller import CountSessionController, ScanOutcomeKind
from apps.counts.models import CountStatus, InventoryCount
from apps.products.models import Product
from apps.tenants.models import Tenant
from shared.exceptions import ServiceError
from users.models import User


class Command(BaseCommand):
    help = 'Run an interactive barcode scanning station for a count'
    stealth_options = ('stdin',)

    def add_arguments(self, parser):
        parser.add_argument('count_id', type=int)
        parser.add_argument('--user', required=True, help='Username of the person counting')
        parser.add_argument('--tenant', help='Tenant subdomain (default: the user\'s tenant)')
        parser.add_argument('--start', action='store_true', help='Start the count if it is a draft')

    def handle(self, *args, **options):
        try:
            user = User.objects.get(username=options['user'])
        except User.DoesNotExist:
            raise CommandError(f"User {options['user']} not found")

        tenant = self._resolve_tenant(user, options.get('tenant'))
        self.controller = CountSessionController(tenant, user)
        self.last_suggestion = None

        try:
            count = self.controller.load(options['count_id'])
        except InventoryCount.DoesNotExist:
            raise CommandError(f"Count {options['count_id']} not found for tenant {tenant.name}")

        if options['start'] and count.status == CountStatus.DRAFT:
            self._run(self.controller.start)

        self._print_header()
        stdin = options.get('stdin', sys.stdin)
        for raw in stdin:
            line = raw.strip()
            if not line:
                continue
            if line.startswith(':'):
                if not self._command(line[1:]):
                    break
            else:
                self._scan(line)

    def _resolve_tenant(self, user, subdomain):
        if subdomain:
            tenant = Tenant.objects.filter(subdomain=subdomain, is_active=True).first()
            if tenant is None:
                raise CommandError(f"Tenant {subdomain} not found")
            if not user.is_superuser and user.tenant_id != tenant.id:
                raise CommandError(f"User {user.username} does not belong to tenant {subdomain}")
            return tenant
        if user.tenant_id:
            return user.tenant
        tenant = Tenant.objects.filter(is_default=True, is_active=True).first()
        if tenant is None:
            raise CommandError("No tenant given and no default tenant exists")
        return tenant

    # ===== OUTPUT =====

    def _print_header(self):
        count = self.controller.count
        totals = self.controller.local_totals()
        self.stdout.write(
            f"{count.count_number} @ {count.location.code} "
            f"[{self.controller.status_label}] "
            f"{totals.items_counted}/{totals.items_total} counted "
            f"({ledger.format_progress(totals.progress)})"
        )

    def _run(self, func, *args, **kwargs):
        """Call a controller operation, printing failures instead of raising."""
        try:
            return func(*args, **kwargs)
        except (ServiceError, DatabaseError) as e:
            self.stdout.write(self.style.ERROR(getattr(e, 'message', None) or str(e)))
        except ValidationError as e:
            self.stdout.write(self.style.ERROR('; '.join(e.messages)))
        return None

    # ===== SCANNING =====

    def _scan(self, line):
        quantity = None
        barcode = line
        if '*' in line:
            qty, _, barcode = line.partition('*')
            try:
                quantity = int(qty)
            except ValueError:
                self.stdout.write(self.style.ERROR(f"Invalid quantity: {qty}"))
                return

        outcome = self.controller.scan(barcode, quantity=quantity)
        kind = outcome.kind

        if kind == ScanOutcomeKind.SUCCESS:
            item = outcome.item
            self.stdout.write(self.style.SUCCESS(
                f"OK  {item.product.sku} {item.product.name}: {item.counted_quantity} "
                f"(expected {item.expected_quantity}, {ledger.format_discrepancy(item.discrepancy)})"
            ))
        elif kind == ScanOutcomeKind.ALREADY_COUNTED:
            self.stdout.write(self.style.WARNING(
                f"ALREADY COUNTED  {outcome.product.sku}: {outcome.previous_count} "
                f"by {outcome.counted_by or 'unknown'}. Use :edit {outcome.product.sku} <qty> to change it."
            ))
        elif kind == ScanOutcomeKind.UNEXPECTED_PRODUCT:
            self.stdout.write(self.style.WARNING(f"NOT IN COUNT  {outcome.message}"))
        elif kind == ScanOutcomeKind.PRODUCT_SUGGESTION:
            self.last_suggestion = outcome.suggestion
            s = outcome.suggestion
            self.stdout.write(self.style.WARNING(
                f"UNKNOWN BARCODE {outcome.barcode}. Suggested: {s.name}"
                f"{' (' + s.brand + ')' if s.brand else ''}. Use :create <SKU> to add it."
            ))
        else:
            suffix = ' (retry)' if outcome.retryable else ''
            self.stdout.write(self.style.ERROR(f"ERROR  {outcome.message}{suffix}"))

    # ===== COMMANDS =====

    def _command(self, text):
        """Handle a ':' command. Returns False to stop the station."""
        name, _, rest = text.strip().partition(' ')
        rest = rest.strip()

        if name in ('q', 'quit', 'exit'):
            return False
        handler = getattr(self, f'_cmd_{name}', None)
        if handler is None:
            self.stdout.write(self.style.ERROR(f"Unknown command: {name}"))
            return True
        handler(rest)
        return True

    def _product_by_sku(self, sku):
        product = Product.objects.for_tenant(self.controller.tenant).filter(sku=sku).first()
        if product is None:
            self.stdout.write(self.style.ERROR(f"Unknown SKU: {sku}"))
        return product

    def _cmd_qty(self, rest):
        try:
            self.controller.set_default_quantity(int(rest))
        except (ValueError, ValidationError):
            self.stdout.write(self.style.ERROR("Quantity must be a positive integer"))
            return
        self.stdout.write(f"Default quantity: {self.controller.view.default_quantity}")

    def _cmd_edit(self, rest):
        parts = rest.split()
        if len(parts) != 2:
            self.stdout.write(self.style.ERROR("Usage: :edit SKU QTY"))
            return
        sku, qty = parts
        item = next((i for i in self.controller.items if i.product.sku == sku), None)
        if item is None:
            self.stdout.write(self.style.ERROR(f"{sku} is not part of this count"))
            return
        updated = self._run(self.controller.update_item_count, item, qty)
        if updated is not None:
            self.stdout.write(self.style.SUCCESS(f"{sku}: {updated.counted_quantity}"))

    def _cmd_add(self, rest):
        parts = rest.split()
        if len(parts) != 2:
            self.stdout.write(self.style.ERROR("Usage: :add SKU QTY"))
            return
        product = self._product_by_sku(parts[0])
        if product is None:
            return
        item = self._run(self.controller.register_manual, product, parts[1])
        if item is not None:
            self.stdout.write(self.style.SUCCESS(f"{product.sku}: {item.counted_quantity}"))

    def _cmd_create(self, rest):
        if self.last_suggestion is None:
            self.stdout.write(self.style.ERROR("No product suggestion to create"))
            return
        if not rest:
            self.stdout.write(self.style.ERROR("Usage: :create SKU"))
            return
        product = self._run(self.controller.create_product_from_suggestion, self.last_suggestion, rest)
        if product is not None:
            self.last_suggestion = None
            self.stdout.write(self.style.SUCCESS(f"Created {product}. It is not part of this count."))

    def _cmd_pending(self, rest):
        pending = self.controller.pending_items
        for item in pending:
            self.stdout.write(f"  {item.product.sku:<20} {item.product.name} (expected {item.expected_quantity})")
        self.stdout.write(f"{len(pending)} pending")

    def _cmd_summary(self, rest):
        totals = self._run(self.controller.summary)
        if totals is None:
            return
        self.stdout.write(
            f"Expected {totals.expected}, counted {totals.counted}, "
            f"discrepancy {ledger.format_discrepancy(totals.discrepancy)}, "
            f"{totals.items_counted}/{totals.items_total} items "
            f"({ledger.format_progress(totals.progress)})"
        )

    def _cmd_disc(self, rest):
        found = self._run(self.controller.discrepancies) or []
        for d in found:
            self.stdout.write(
                f"  {d.product_sku:<20} expected {d.expected_quantity}, counted {d.counted_quantity} "
                f"({ledger.format_discrepancy(d.discrepancy)} {d.discrepancy_type})"
            )
        self.stdout.write(f"{len(found)} discrepancies")

    def _cmd_history(self, rest):
        for outcome in self.controller.view.scan_history:
            self.stdout.write(
                f"  {outcome.scanned_at:%H:%M:%S} {outcome.kind.value:<18} "
                f"{outcome.barcode} x{outcome.quantity}"
            )

    def _cmd_clear(self, rest):
        self.controller.clear_history()
        self.controller.clear_error()

    def _cmd_complete(self, rest):
        tokens = rest.split()
        apply_adjustments = '--no-adjust' not in tokens
        notes = ' '.join(token for token in tokens if token != '--no-adjust')
        result = self._run(self.controller.complete, apply_adjustments=apply_adjustments, notes=notes)
        if result is None:
            return
        self.stdout.write(self.style.SUCCESS(
            f"Completed {result.count.count_number}: {len(result.discrepancies)} discrepancies, "
            f"{len(result.adjustments)} stock adjustments"
        ))

    def _cmd_cancel(self, rest):
        count = self._run(self.controller.cancel, rest)
        if count is not None:
            self.stdout.write(self.style.WARNING(f"Cancelled {count.count_number}"))
