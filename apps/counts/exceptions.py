# apps/counts/exceptions.py
"""
Errors raised by the count service.

Scanning an already-counted product is NOT an error; it returns a
ScanResult with already_counted=True.
"""
from shared.exceptions import ServiceError


class InvalidStateError(ServiceError):
    """The count's status does not allow the requested operation."""
    code = 'INVALID_STATE'
    status_code = 409

    def __init__(self, message, status=None, code=None):
        details = {'status': str(status)} if status is not None else None
        super().__init__(message, code=code, details=details)
        self.status = status


class CountNotInProgressError(InvalidStateError):
    """Counting operations require an IN_PROGRESS count."""
    code = 'COUNT_NOT_IN_PROGRESS'

    def __init__(self, status):
        super().__init__(f"Count is not in progress (status: {status}).", status=status)


class UnexpectedProductError(ServiceError):
    """The product is not part of the count's item list."""
    code = 'PRODUCT_NOT_IN_COUNT'
    status_code = 422

    def __init__(self, product):
        super().__init__(
            f"Product {product.sku} is not part of this count.",
            details={'product_id': product.pk, 'product_sku': product.sku, 'product_name': product.name},
        )
        self.product = product


class ProductAlreadyCountedError(ServiceError):
    """A manual registration targeted an item that already has a count."""
    code = 'PRODUCT_ALREADY_COUNTED'
    status_code = 409

    def __init__(self, item):
        super().__init__(
            f"Product {item.product.sku} was already counted.",
            details={
                'item_id': item.pk,
                'previous_count': item.counted_quantity,
                'counted_at': item.counted_at.isoformat() if item.counted_at else None,
                'counted_by': str(item.counted_by) if item.counted_by else None,
            },
        )
        self.item = item
