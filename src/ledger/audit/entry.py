"""AuditEntry aggregate — one line per ledger mutation.

Entries are appended inside the same unit of work as the mutation they
describe and are never updated afterwards; nothing in the domain exposes a
way to change or remove one.
"""

from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text

from ledger.domain import ledger


class AuditKind(Enum):
    STOCK_ADDED = "stock_added"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    STOCK_CONSUMED = "stock_consumed"
    MIN_LEVEL_CHANGED = "min_level_changed"
    REQUEST_RAISED = "request_raised"
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"
    REQUEST_RECEIVED = "request_received"
    AUTO_ALLOCATED = "auto_allocated"


@ledger.aggregate
class AuditEntry:
    kind = String(required=True, choices=AuditKind)
    site_id = Identifier(required=True)
    counterpart_site_id = Identifier()
    item_name = String(max_length=255)
    unit = String(max_length=50)
    item_key = String(max_length=320)
    quantity_delta = Float(default=0.0)
    unit_cost = Float()
    transfer_id = Identifier()
    request_id = Identifier()
    task_id = Identifier()
    actor = String(required=True, max_length=255)
    description = Text(required=True)
    occurred_at = DateTime(required=True)

    @property
    def involved_sites(self):
        return [site for site in (self.site_id, self.counterpart_site_id) if site]
