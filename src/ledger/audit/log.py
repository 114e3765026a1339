"""Append and read the audit trail.

``append`` must be called from inside a command handler so the entry is
committed (or discarded) together with the mutation it describes.
"""

from protean.utils.globals import current_domain

from ledger.audit.entry import AuditEntry, AuditKind
from ledger.clock import MonotonicStamp

FEED_LIMIT = 50
_SCAN_LIMIT = 10_000

# Entries are stamped strictly after the previous one so the feed order is total
_stamp = MonotonicStamp()


def append(
    kind: AuditKind,
    site_id,
    actor,
    description,
    item_name=None,
    unit=None,
    item_key=None,
    quantity_delta=0.0,
    unit_cost=None,
    counterpart_site_id=None,
    transfer_id=None,
    request_id=None,
    task_id=None,
    occurred_at=None,
) -> AuditEntry:
    entry = AuditEntry(
        kind=kind.value,
        site_id=str(site_id),
        counterpart_site_id=str(counterpart_site_id) if counterpart_site_id else None,
        item_name=item_name,
        unit=unit,
        item_key=item_key,
        quantity_delta=float(quantity_delta),
        unit_cost=float(unit_cost) if unit_cost is not None else None,
        transfer_id=transfer_id,
        request_id=str(request_id) if request_id else None,
        task_id=str(task_id) if task_id else None,
        actor=actor or "system",
        description=description,
        occurred_at=occurred_at or _stamp(),
    )
    current_domain.repository_for(AuditEntry).add(entry)
    return entry


def _query():
    return current_domain.repository_for(AuditEntry)._dao.query


def feed(site_id=None, limit=FEED_LIMIT, kind=None) -> list[AuditEntry]:
    """Newest entries first, optionally narrowed to one site and/or kind."""
    criteria = {}
    if site_id:
        criteria["site_id"] = str(site_id)
    if kind:
        criteria["kind"] = kind.value if isinstance(kind, AuditKind) else kind
    query = _query().filter(**criteria) if criteria else _query()
    return query.order_by("-occurred_at").limit(limit).all().items


def for_transfer(transfer_id) -> list[AuditEntry]:
    entries = _query().filter(transfer_id=str(transfer_id)).limit(_SCAN_LIMIT).all().items
    return sorted(entries, key=lambda entry: entry.kind != AuditKind.TRANSFER_OUT.value)


def for_request(request_id) -> list[AuditEntry]:
    entries = _query().filter(request_id=str(request_id)).limit(_SCAN_LIMIT).all().items
    return sorted(entries, key=lambda entry: entry.occurred_at)


def count(**criteria) -> int:
    query = _query().filter(**criteria) if criteria else _query()
    return query.limit(_SCAN_LIMIT).all().total
