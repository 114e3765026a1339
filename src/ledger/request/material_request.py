"""MaterialRequest aggregate (CQRS) — demand for an item at a site.

Lifecycle::

    requested ──approve──▶ ordered ──receive──▶ received
        │                     │
        ├──────allocate───────┴──allocate──▶ delivered
        │                     │
        └───────reject────────┴──reject────▶ rejected

``received``, ``delivered`` and ``rejected`` are terminal. ``received`` and
``delivered`` both mean the demand is satisfied; the stock behind them
stays on the site's record until the linked task completes and the
request is marked ``stock_deducted``.
"""

from decimal import Decimal
from enum import Enum

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from ledger.clock import MonotonicStamp, utc_now
from ledger.domain import ledger
from ledger.errors import InvalidCost, InvalidQuantity, InvalidTransition
from ledger.quantities import ZERO, to_decimal
from ledger.request.events import (
    MaterialRequestApproved,
    MaterialRequestConsumed,
    MaterialRequestDelivered,
    MaterialRequestRaised,
    MaterialRequestReceived,
    MaterialRequestRejected,
)
from ledger.stock.identity import ItemIdentity, request_lock_key

_SCAN_LIMIT = 10_000

# Creation stamps define FIFO order, so no two requests may share one
_creation_stamp = MonotonicStamp()


class RequestStatus(Enum):
    REQUESTED = "requested"
    ORDERED = "ordered"
    RECEIVED = "received"
    DELIVERED = "delivered"
    REJECTED = "rejected"


class RequestPriority(Enum):
    NORMAL = "normal"
    URGENT = "urgent"


_VALID_TRANSITIONS = {
    RequestStatus.REQUESTED: {RequestStatus.ORDERED, RequestStatus.DELIVERED, RequestStatus.REJECTED},
    RequestStatus.ORDERED: {RequestStatus.RECEIVED, RequestStatus.DELIVERED, RequestStatus.REJECTED},
    RequestStatus.RECEIVED: set(),
    RequestStatus.DELIVERED: set(),
    RequestStatus.REJECTED: set(),
}

PENDING_STATUSES = (RequestStatus.REQUESTED.value, RequestStatus.ORDERED.value)
SATISFIED_STATUSES = (RequestStatus.RECEIVED.value, RequestStatus.DELIVERED.value)


@ledger.aggregate
class MaterialRequest:
    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    item_key = String(required=True, max_length=320)
    quantity = Float(required=True)
    task_id = Identifier()
    requested_by = String(required=True, max_length=255)
    priority = String(choices=RequestPriority, default=RequestPriority.NORMAL.value)
    estimated_cost = Float()
    status = String(choices=RequestStatus, default=RequestStatus.REQUESTED.value)
    created_at = DateTime()
    approved_by = String(max_length=255)
    approved_at = DateTime()
    rejected_by = String(max_length=255)
    rejected_at = DateTime()
    rejection_reason = Text()
    received_by = String(max_length=255)
    received_at = DateTime()
    delivered_at = DateTime()
    auto_allocated = Boolean(default=False)
    stock_deducted = Boolean(default=False)

    @classmethod
    def create(
        cls,
        site_id,
        identity: ItemIdentity,
        quantity,
        requested_by,
        task_id=None,
        priority=RequestPriority.NORMAL.value,
        estimated_cost=None,
    ):
        if quantity is None or to_decimal(quantity) <= ZERO:
            raise InvalidQuantity()
        if estimated_cost is not None and to_decimal(estimated_cost) < ZERO:
            raise InvalidCost("Estimated cost cannot be negative", field="estimated_cost")

        now = _creation_stamp()
        request = cls(
            site_id=str(site_id),
            item_name=identity.name,
            unit=identity.unit,
            item_key=identity.key,
            quantity=quantity,
            task_id=task_id,
            requested_by=requested_by,
            priority=priority or RequestPriority.NORMAL.value,
            estimated_cost=estimated_cost,
            created_at=now,
        )
        request.raise_(
            MaterialRequestRaised(
                request_id=str(request.id),
                site_id=str(site_id),
                item_name=identity.name,
                unit=identity.unit,
                item_key=identity.key,
                quantity=request.quantity,
                task_id=task_id,
                requested_by=requested_by,
                priority=request.priority,
                estimated_cost=estimated_cost,
                raised_at=now,
            )
        )
        return request

    @property
    def identity(self) -> ItemIdentity:
        return ItemIdentity(name=self.item_name, unit=self.unit)

    @property
    def lock_key(self) -> str:
        return request_lock_key(self.site_id, self.identity)

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @property
    def is_satisfied(self) -> bool:
        return self.status in SATISFIED_STATUSES

    def _assert_can_transition(self, target: RequestStatus):
        current = RequestStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target.value)

    def approve(self, approved_by):
        self._assert_can_transition(RequestStatus.ORDERED)
        previous = self.status
        self.status = RequestStatus.ORDERED.value
        self.approved_by = approved_by
        self.approved_at = utc_now()
        self.raise_(
            MaterialRequestApproved(
                request_id=str(self.id),
                site_id=str(self.site_id),
                previous_status=previous,
                approved_by=approved_by,
                approved_at=self.approved_at,
            )
        )

    def reject(self, rejected_by, reason=None):
        self._assert_can_transition(RequestStatus.REJECTED)
        previous = self.status
        self.status = RequestStatus.REJECTED.value
        self.rejected_by = rejected_by
        self.rejected_at = utc_now()
        self.rejection_reason = reason
        self.raise_(
            MaterialRequestRejected(
                request_id=str(self.id),
                site_id=str(self.site_id),
                previous_status=previous,
                rejected_by=rejected_by,
                reason=reason,
                rejected_at=self.rejected_at,
            )
        )

    def receive(self, received_by):
        self._assert_can_transition(RequestStatus.RECEIVED)
        previous = self.status
        self.status = RequestStatus.RECEIVED.value
        self.received_by = received_by
        self.received_at = utc_now()
        self.raise_(
            MaterialRequestReceived(
                request_id=str(self.id),
                site_id=str(self.site_id),
                previous_status=previous,
                quantity=self.quantity,
                received_by=received_by,
                received_at=self.received_at,
            )
        )

    def deliver(self, auto_allocated=True):
        self._assert_can_transition(RequestStatus.DELIVERED)
        previous = self.status
        self.status = RequestStatus.DELIVERED.value
        self.auto_allocated = auto_allocated
        self.delivered_at = utc_now()
        self.raise_(
            MaterialRequestDelivered(
                request_id=str(self.id),
                site_id=str(self.site_id),
                previous_status=previous,
                quantity=self.quantity,
                task_id=self.task_id,
                auto_allocated=auto_allocated,
                delivered_at=self.delivered_at,
            )
        )

    def mark_consumed(self):
        if not self.is_satisfied:
            raise InvalidTransition(self.status, "consumed")
        if self.stock_deducted:
            raise InvalidTransition("consumed", "consumed")
        self.stock_deducted = True
        self.raise_(
            MaterialRequestConsumed(
                request_id=str(self.id),
                site_id=str(self.site_id),
                task_id=self.task_id,
                quantity=self.quantity,
                consumed_at=utc_now(),
            )
        )


def _oldest_first(requests):
    return sorted(requests, key=lambda request: (request.created_at, str(request.id)))


@ledger.repository(part_of=MaterialRequest)
class MaterialRequestRepository:
    """Query helpers over the request store."""

    def _matching(self, **criteria) -> list[MaterialRequest]:
        return self._dao.query.filter(**criteria).limit(_SCAN_LIMIT).all().items

    def pending_for(self, site_id, item_key) -> list[MaterialRequest]:
        """Requested or ordered requests for an item at a site, oldest first."""
        requests = self._matching(site_id=str(site_id), item_key=item_key)
        return _oldest_first(request for request in requests if request.is_pending)

    def awaiting_consumption(self, site_id, item_key) -> list[MaterialRequest]:
        """Satisfied requests whose stock is still on the site's record."""
        requests = self._matching(site_id=str(site_id), item_key=item_key)
        return _oldest_first(request for request in requests if request.is_satisfied and not request.stock_deducted)

    def promised_quantity(self, site_id, item_key) -> Decimal:
        """Stock on the site's record already handed to satisfied requests."""
        return sum((to_decimal(request.quantity) for request in self.awaiting_consumption(site_id, item_key)), ZERO)

    def awaiting_consumption_for_task(self, task_id) -> list[MaterialRequest]:
        requests = self._matching(task_id=str(task_id))
        return _oldest_first(request for request in requests if request.is_satisfied and not request.stock_deducted)

    def for_task(self, task_id) -> list[MaterialRequest]:
        return _oldest_first(self._matching(task_id=str(task_id)))

    def at_site(self, site_id, status=None) -> list[MaterialRequest]:
        criteria = {"site_id": str(site_id)}
        if status:
            criteria["status"] = status
        return _oldest_first(self._matching(**criteria))
