"""Domain events for the MaterialRequest aggregate.

Transition events carry ``previous_status`` so read models can move a
request from one bucket to another without loading the aggregate.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from ledger.domain import ledger


@ledger.event(part_of="MaterialRequest")
class MaterialRequestRaised:
    __version__ = 1

    request_id = Identifier(required=True)
    site_id = Identifier(required=True)
    item_name = String(required=True)
    unit = String(required=True)
    item_key = String(required=True)
    quantity = Float(required=True)
    task_id = Identifier()
    requested_by = String(required=True)
    priority = String(required=True)
    estimated_cost = Float()
    raised_at = DateTime(required=True)


@ledger.event(part_of="MaterialRequest")
class MaterialRequestApproved:
    """Purchase was approved; the material is on order."""

    __version__ = 1

    request_id = Identifier(required=True)
    site_id = Identifier(required=True)
    previous_status = String(required=True)
    approved_by = String(required=True)
    approved_at = DateTime(required=True)


@ledger.event(part_of="MaterialRequest")
class MaterialRequestRejected:
    __version__ = 1

    request_id = Identifier(required=True)
    site_id = Identifier(required=True)
    previous_status = String(required=True)
    rejected_by = String(required=True)
    reason = String()
    rejected_at = DateTime(required=True)


@ledger.event(part_of="MaterialRequest")
class MaterialRequestReceived:
    """Ordered material was booked into stock by hand."""

    __version__ = 1

    request_id = Identifier(required=True)
    site_id = Identifier(required=True)
    previous_status = String(required=True)
    quantity = Float(required=True)
    received_by = String(required=True)
    received_at = DateTime(required=True)


@ledger.event(part_of="MaterialRequest")
class MaterialRequestDelivered:
    """Stock on hand was allocated to the request."""

    __version__ = 1

    request_id = Identifier(required=True)
    site_id = Identifier(required=True)
    previous_status = String(required=True)
    quantity = Float(required=True)
    task_id = Identifier()
    auto_allocated = Boolean(default=True)
    delivered_at = DateTime(required=True)


@ledger.event(part_of="MaterialRequest")
class MaterialRequestConsumed:
    """The request's quantity was deducted from stock when its task finished."""

    __version__ = 1

    request_id = Identifier(required=True)
    site_id = Identifier(required=True)
    task_id = Identifier()
    quantity = Float(required=True)
    consumed_at = DateTime(required=True)
