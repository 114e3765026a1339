"""Ledger error taxonomy.

Caller mistakes and business rule violations are ``ValidationError``
subclasses carrying the usual ``{field: [message]}`` payload, missing
records are ``ObjectNotFoundError`` subclasses, and contention surfaces as
``TransientLedgerError`` which callers may retry.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class InvalidQuantity(ValidationError):
    def __init__(self, message="Quantity must be positive", field="quantity"):
        super().__init__({field: [message]})


class InvalidCost(ValidationError):
    def __init__(self, message="Unit cost cannot be negative", field="unit_cost"):
        super().__init__({field: [message]})


class InsufficientStock(ValidationError):
    def __init__(self, available, requested):
        self.available = available
        self.requested = requested
        super().__init__({"quantity": [f"Insufficient stock: {available} available, {requested} requested"]})


class InvalidTransition(ValidationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]})


class SiteUnavailable(ValidationError):
    def __init__(self, site_id, reason="Site is not registered"):
        self.site_id = site_id
        super().__init__({"site_id": [f"{reason}: {site_id}"]})


class ItemNotFound(ObjectNotFoundError):
    def __init__(self, site_id, item_name, unit):
        self.site_id = site_id
        self.item_name = item_name
        self.unit = unit
        super().__init__({"_entity": f"No stock of {item_name} ({unit}) at site {site_id}"})


class RequestNotFound(ObjectNotFoundError):
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__({"_entity": f"Material request {request_id} does not exist"})


class TransientLedgerError(Exception):
    """Contention that may clear up if the operation is retried."""

    def __init__(self, message, keys=()):
        self.keys = tuple(keys)
        super().__init__(message)


class Conflict(TransientLedgerError):
    pass


class Timeout(TransientLedgerError):
    pass
