# apps/counts/controller.py
"""
Interactive count session controller.

CountSessionController drives one count from a scanning station: it keeps
the last confirmed copy of the count and its items, plus view state that
never reaches the database (default quantity, scan history, last scan,
current error).

Rules:
- One request at a time. A call made while another is running raises
  RequestInFlightError.
- Transitions the cached status already forbids are rejected locally,
  without calling the service.
- The confirmed snapshot only changes after the service confirms. After a
  failed call the count is re-fetched; nothing is retried automatically.
"""
import logging
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError
from django.utils import timezone

from apps.products.exceptions import BarcodeNotFoundError
from apps.products.services import ProductService
from shared.exceptions import ServiceError

from . import ledger
from .exceptions import InvalidStateError, UnexpectedProductError
from .models import CountStatus
from .services import CountService

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class RequestInFlightError(Exception):
    """Another request of this controller has not finished yet."""


class ScanOutcomeKind(Enum):
    SUCCESS = 'success'
    ALREADY_COUNTED = 'already_counted'
    UNEXPECTED_PRODUCT = 'unexpected_product'
    PRODUCT_SUGGESTION = 'product_suggestion'
    ERROR = 'error'


@dataclass
class ScanOutcome:
    kind: ScanOutcomeKind
    barcode: str
    quantity: int
    item: Any = None
    product: Any = None
    suggestion: Any = None
    previous_count: Optional[int] = None
    counted_at: Optional[datetime] = None
    counted_by: Any = None
    code: str = ''
    message: str = ''
    retryable: bool = False
    scanned_at: datetime = field(default_factory=timezone.now)

    @property
    def ok(self):
        return self.kind == ScanOutcomeKind.SUCCESS


@dataclass
class CountViewState:
    """Local view state. Never persisted."""
    default_quantity: int = 1
    scan_history: deque = field(default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_LIMIT))
    last_scan: Optional[ScanOutcome] = None
    error: Optional[str] = None


def _config(key, default):
    return getattr(settings, 'STOCKTALLY', {}).get(key, default)


class CountSessionController:
    """
    Controller for a single count session.

    Usage:
        controller = CountSessionController(tenant, user)
        controller.load(count_id)
        controller.start()
        outcome = controller.scan('7501234567890')
        controller.complete(apply_adjustments=True)
    """

    def __init__(self, tenant, user, service=None, product_service=None):
        self.tenant = tenant
        self.user = user
        self.service = service or CountService(tenant, user)
        self.product_service = product_service or ProductService(tenant, user)

        self.count = None
        self.items = []

        history_limit = _config('SCAN_HISTORY_LIMIT', DEFAULT_HISTORY_LIMIT)
        self.view = CountViewState(
            default_quantity=_config('DEFAULT_SCAN_QUANTITY', 1),
            scan_history=deque(maxlen=history_limit),
        )
        self._in_flight = threading.Lock()

    # ===== REQUEST GUARD =====

    @property
    def busy(self):
        return self._in_flight.locked()

    @contextmanager
    def _request(self):
        if not self._in_flight.acquire(blocking=False):
            raise RequestInFlightError("A request is already in progress.")
        try:
            yield
        finally:
            self._in_flight.release()

    # ===== LOADING =====

    def load(self, count_id=None):
        """Fetch the count and its items from the service."""
        if count_id is None and self.count is None:
            raise InvalidStateError("No count loaded.")
        with self._request():
            self._fetch(count_id if count_id is not None else self.count.pk)
        return self.count

    def _fetch(self, count_id):
        count = self.service.get_count(count_id)
        items = list(self.service.list_items(count))
        self.count = count
        self.items = items

    def _refetch_after_failure(self):
        if self.count is None:
            return
        try:
            self._fetch(self.count.pk)
        except (ObjectDoesNotExist, ServiceError, DatabaseError) as e:
            logger.warning(f"Re-fetch of count {self.count.pk} failed: {e}")

    def _fail(self, error):
        self.view.error = getattr(error, 'message', None) or str(error)
        self._refetch_after_failure()

    # ===== DERIVED =====

    @property
    def status(self):
        return self.count.status if self.count else None

    @property
    def status_label(self):
        return CountStatus(self.count.status).label

    @property
    def status_badge(self):
        return self.count.status_badge

    @property
    def pending_items(self):
        return [item for item in self.items if item.counted_quantity is None]

    @property
    def counted_items(self):
        return [item for item in self.items if item.counted_quantity is not None]

    def local_totals(self):
        return ledger.compute_totals(self.items)

    # ===== TRANSITIONS =====

    def _require_transition(self, target):
        if self.count is None:
            raise InvalidStateError("No count loaded.")
        if not self.count.can_transition_to(target):
            error = InvalidStateError(
                f"Cannot move count from {self.count.status} to {target}.",
                status=self.count.status,
            )
            self.view.error = error.message
            raise error

    def start(self):
        self._require_transition(CountStatus.IN_PROGRESS)
        with self._request():
            try:
                self.service.start_count(self.count)
                self._fetch(self.count.pk)
            except (ServiceError, ValidationError, DatabaseError) as e:
                self._fail(e)
                raise
        return self.count

    def cancel(self, reason):
        self._require_transition(CountStatus.CANCELLED)
        if not (reason or '').strip():
            self.view.error = "A cancellation reason is required."
            raise ValidationError(self.view.error)
        with self._request():
            try:
                self.service.cancel_count(self.count, reason)
                self._fetch(self.count.pk)
            except (ServiceError, ValidationError, DatabaseError) as e:
                self._fail(e)
                raise
        return self.count

    def complete(self, apply_adjustments=True, notes=''):
        """
        Complete the count. Uncounted items are recorded as 0.

        Returns:
            CompletionResult
        """
        self._require_transition(CountStatus.COMPLETED)
        with self._request():
            try:
                result = self.service.complete_count(
                    self.count, apply_adjustments=apply_adjustments, notes=notes,
                )
                self._fetch(self.count.pk)
            except (ServiceError, ValidationError, DatabaseError) as e:
                self._fail(e)
                raise
        return result

    # ===== COUNTING =====

    def scan(self, barcode, quantity=None):
        """
        Scan a barcode and record the outcome in the scan history.

        Never raises for domain failures; they come back as a ScanOutcome
        with the matching kind. RequestInFlightError is still raised.
        """
        barcode = (barcode or '').strip()
        quantity = self.view.default_quantity if quantity is None else quantity

        if self.count is None or self.count.status != CountStatus.IN_PROGRESS:
            outcome = ScanOutcome(
                kind=ScanOutcomeKind.ERROR, barcode=barcode, quantity=quantity,
                code='COUNT_NOT_IN_PROGRESS', message="Count is not in progress.",
            )
            return self._remember(outcome)

        with self._request():
            outcome = self._scan(barcode, quantity)
        return self._remember(outcome)

    def _scan(self, barcode, quantity):
        try:
            result = self.service.scan_barcode(self.count, barcode, quantity=quantity)
        except BarcodeNotFoundError as e:
            if e.suggestion is not None:
                return ScanOutcome(
                    kind=ScanOutcomeKind.PRODUCT_SUGGESTION, barcode=barcode, quantity=quantity,
                    suggestion=e.suggestion, code=e.code, message=e.message,
                )
            return ScanOutcome(
                kind=ScanOutcomeKind.ERROR, barcode=barcode, quantity=quantity,
                code=e.code, message=e.message,
            )
        except UnexpectedProductError as e:
            return ScanOutcome(
                kind=ScanOutcomeKind.UNEXPECTED_PRODUCT, barcode=barcode, quantity=quantity,
                product=e.product, code=e.code, message=e.message,
            )
        except ServiceError as e:
            self._refetch_after_failure()
            return ScanOutcome(
                kind=ScanOutcomeKind.ERROR, barcode=barcode, quantity=quantity,
                code=e.code, message=e.message, retryable=e.retryable,
            )
        except ValidationError as e:
            return ScanOutcome(
                kind=ScanOutcomeKind.ERROR, barcode=barcode, quantity=quantity,
                code='VALIDATION_ERROR', message='; '.join(e.messages),
            )
        except DatabaseError as e:
            logger.warning(f"Scan of {barcode} failed: {e}")
            self._refetch_after_failure()
            return ScanOutcome(
                kind=ScanOutcomeKind.ERROR, barcode=barcode, quantity=quantity,
                code='SERVICE_UNAVAILABLE', message="Database unavailable, try again.",
                retryable=True,
            )

        if result.already_counted:
            return ScanOutcome(
                kind=ScanOutcomeKind.ALREADY_COUNTED, barcode=barcode, quantity=quantity,
                item=result.item, product=result.item.product,
                previous_count=result.previous_count, counted_at=result.counted_at,
                counted_by=result.counted_by,
            )

        self._replace_item(result.item)
        return ScanOutcome(
            kind=ScanOutcomeKind.SUCCESS, barcode=barcode, quantity=quantity,
            item=result.item, product=result.item.product,
        )

    def _remember(self, outcome):
        self.view.last_scan = outcome
        self.view.scan_history.appendleft(outcome)
        self.view.error = outcome.message if outcome.kind == ScanOutcomeKind.ERROR else None
        return outcome

    def _replace_item(self, updated):
        self.items = [updated if item.pk == updated.pk else item for item in self.items]

    def register_manual(self, product, quantity, notes=''):
        """Record a count without a barcode. Raises on failure."""
        with self._request():
            try:
                item = self.service.register_count(self.count, product, quantity, notes=notes)
            except (ServiceError, ValidationError, DatabaseError) as e:
                self._fail(e)
                raise
            self._replace_item(item)
            self.view.error = None
        return item

    def update_item_count(self, item, quantity, notes=None):
        """Explicitly change a recorded count. Raises on failure."""
        with self._request():
            try:
                updated = self.service.update_item_count(self.count, item, quantity, notes=notes)
            except (ServiceError, ValidationError, DatabaseError) as e:
                self._fail(e)
                raise
            self._replace_item(updated)
            self.view.error = None
        return updated

    # ===== REPORTING =====

    def summary(self):
        """Totals from the service, falling back to the local snapshot."""
        with self._request():
            try:
                return self.service.get_summary(self.count)
            except (ServiceError, DatabaseError) as e:
                logger.warning(f"Summary for count {self.count.pk} unavailable, using local totals: {e}")
                return ledger.compute_totals(self.items)

    def discrepancies(self):
        with self._request():
            return self.service.get_discrepancies(self.count)

    # ===== PRODUCTS =====

    def create_product_from_suggestion(self, suggestion, sku, **fields):
        """
        Create a catalog product from a suggestion.

        The new product is not added to the running count; scanning it
        again reports it as unexpected.
        """
        with self._request():
            return self.product_service.create_from_suggestion(suggestion, sku, **fields)

    # ===== VIEW STATE =====

    def set_default_quantity(self, quantity):
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Default quantity must be a positive integer.")
        self.view.default_quantity = quantity

    def clear_error(self):
        self.view.error = None

    def clear_history(self):
        self.view.scan_history.clear()
        self.view.last_scan = None
