# apps/products/services.py
"""
Service layer for the product catalog.

ProductService resolves scanned barcodes (local catalog first, then the
external product database) and creates products from suggestions.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from .exceptions import BarcodeNotFoundError
from .lookup import lookup_barcode, lookup_enabled
from .models import Product

logger = logging.getLogger(__name__)


class ProductService:
    """Catalog operations for a single tenant."""

    def __init__(self, tenant, user=None):
        self.tenant = tenant
        self.user = user

    def find_by_barcode(self, barcode):
        """Return the active local product for a barcode, or None."""
        barcode = (barcode or '').strip()
        if not barcode:
            return None
        return (
            Product.objects.for_tenant(self.tenant)
            .filter(barcode=barcode, is_active=True)
            .order_by('id')
            .first()
        )

    def resolve_barcode(self, barcode):
        """
        Resolve a scanned barcode to a local product.

        Returns:
            Product

        Raises:
            BarcodeNotFoundError: unknown locally; carries a ProductSuggestion
                when the external database knows the barcode
            LookupUnavailableError: the external lookup failed
        """
        barcode = (barcode or '').strip()
        product = self.find_by_barcode(barcode)
        if product is not None:
            return product

        suggestion = lookup_barcode(barcode) if barcode and lookup_enabled() else None
        raise BarcodeNotFoundError(barcode, suggestion=suggestion)

    def lookup(self, barcode):
        """
        Look up a barcode without raising for unknown products.

        Returns:
            dict with 'found', 'product' (Product or None) and
            'suggestion' (ProductSuggestion or None)
        """
        try:
            product = self.resolve_barcode(barcode)
        except BarcodeNotFoundError as e:
            return {'found': False, 'product': None, 'suggestion': e.suggestion}
        return {'found': True, 'product': product, 'suggestion': None}

    @transaction.atomic
    def create_product(self, sku, name, barcode='', brand='', description='',
                       cost_price=0, sale_price=0, image_url=''):
        """
        Create a product in this tenant's catalog.

        Raises:
            ValidationError: blank sku/name or duplicate sku
        """
        sku = (sku or '').strip()
        name = (name or '').strip()
        if not sku or not name:
            raise ValidationError("Product SKU and name are required.")
        if Product.objects.for_tenant(self.tenant).filter(sku=sku).exists():
            raise ValidationError(f"A product with SKU {sku} already exists.")

        product = Product.objects.create(
            tenant=self.tenant,
            sku=sku,
            name=name,
            barcode=(barcode or '').strip(),
            brand=brand,
            description=description,
            cost_price=cost_price,
            sale_price=sale_price,
            image_url=image_url,
        )
        logger.info(f"Created product {product.sku} (barcode={product.barcode or '-'}) for tenant {self.tenant.id}")
        return product

    def create_from_suggestion(self, suggestion, sku, **overrides):
        """Create a product pre-filled from a ProductSuggestion."""
        fields = {
            'name': suggestion.name,
            'barcode': suggestion.barcode,
            'brand': suggestion.brand,
            'description': suggestion.description,
            'image_url': suggestion.image_url,
        }
        fields.update(overrides)
        return self.create_product(sku=sku, **fields)
