# apps/products/exceptions.py
"""
Errors raised while resolving barcodes to products.
"""
from shared.exceptions import ServiceError, ServiceUnavailableError


class BarcodeNotFoundError(ServiceError):
    """
    The barcode matches no product in the tenant's catalog.

    ``suggestion`` holds a ProductSuggestion when the external product
    database knows the barcode, so the caller can offer to create it.
    """
    code = 'BARCODE_NOT_FOUND'
    status_code = 404

    def __init__(self, barcode, suggestion=None):
        details = {'barcode': barcode}
        if suggestion is not None:
            details['suggestion'] = suggestion.as_dict()
        super().__init__(f"No product found for barcode {barcode}", details=details)
        self.barcode = barcode
        self.suggestion = suggestion


class LookupUnavailableError(ServiceUnavailableError):
    """The external product database could not be reached."""
