# apps/products/lookup.py
"""
Barcode lookup against the Open Food Facts product database.

Used only when a scanned barcode is unknown in the tenant's catalog. A hit
becomes a ProductSuggestion the user may turn into a Product; it is never
saved automatically.
"""
import logging
from dataclasses import dataclass, asdict

import requests
from django.conf import settings

from .exceptions import LookupUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_URL = 'https://world.openfoodfacts.org/api/v2/product/{barcode}.json'
DEFAULT_LOOKUP_TIMEOUT = 5


@dataclass
class ProductSuggestion:
    """Product data proposed by the external database for an unknown barcode."""
    barcode: str
    name: str
    brand: str = ''
    description: str = ''
    image_url: str = ''
    quantity: str = ''
    category: str = ''
    source: str = 'openfoodfacts'

    def as_dict(self):
        return asdict(self)


def _config(key, default):
    return getattr(settings, 'STOCKTALLY', {}).get(key, default)


def lookup_enabled():
    return _config('BARCODE_LOOKUP_ENABLED', True)


def lookup_barcode(barcode):
    """
    Query Open Food Facts for a barcode.

    Returns:
        ProductSuggestion, or None when the database does not know the barcode

    Raises:
        LookupUnavailableError: network failure, timeout or server error
    """
    url = _config('BARCODE_LOOKUP_URL', DEFAULT_LOOKUP_URL).format(barcode=barcode)
    timeout = _config('BARCODE_LOOKUP_TIMEOUT', DEFAULT_LOOKUP_TIMEOUT)

    try:
        response = requests.get(url, timeout=timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Barcode lookup failed for {barcode}: {e}")
        raise LookupUnavailableError(
            "Product lookup service is unavailable",
            details={'barcode': barcode},
        ) from e
    except ValueError as e:
        logger.warning(f"Barcode lookup returned invalid JSON for {barcode}: {e}")
        raise LookupUnavailableError(
            "Product lookup service returned an invalid response",
            details={'barcode': barcode},
        ) from e

    if payload.get('status') != 1 or not payload.get('product'):
        return None

    product = payload['product']
    name = product.get('product_name') or product.get('generic_name') or ''
    if not name:
        return None

    categories = product.get('categories') or ''
    return ProductSuggestion(
        barcode=barcode,
        name=name,
        brand=(product.get('brands') or '').split(',')[0].strip(),
        description=product.get('generic_name') or '',
        image_url=product.get('image_url') or '',
        quantity=product.get('quantity') or '',
        category=categories.split(',')[0].strip(),
    )
