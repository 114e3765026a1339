"""Per-site material request counters, kept current by a projector."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from ledger.domain import ledger
from ledger.request.events import (
    MaterialRequestApproved,
    MaterialRequestDelivered,
    MaterialRequestRaised,
    MaterialRequestReceived,
    MaterialRequestRejected,
)
from ledger.request.material_request import MaterialRequest


@ledger.projection
class SiteRequestStats:
    site_id = Identifier(identifier=True, required=True)
    requested = Integer(default=0)
    ordered = Integer(default=0)
    received = Integer(default=0)
    delivered = Integer(default=0)
    rejected = Integer(default=0)
    updated_at = DateTime()

    @property
    def pending(self) -> int:
        return (self.requested or 0) + (self.ordered or 0)


def _get_or_create(site_id):
    repo = current_domain.repository_for(SiteRequestStats)
    try:
        return repo.get(site_id)
    except ObjectNotFoundError:
        return SiteRequestStats(site_id=site_id)


def _move(event, from_status, to_status, occurred_at):
    stats = _get_or_create(event.site_id)
    if from_status:
        setattr(stats, from_status, max(0, (getattr(stats, from_status) or 0) - 1))
    setattr(stats, to_status, (getattr(stats, to_status) or 0) + 1)
    stats.updated_at = occurred_at
    current_domain.repository_for(SiteRequestStats).add(stats)


@ledger.projector(projector_for=SiteRequestStats, aggregates=[MaterialRequest])
class SiteRequestStatsProjector:
    @on(MaterialRequestRaised)
    def on_request_raised(self, event):
        _move(event, None, "requested", event.raised_at)

    @on(MaterialRequestApproved)
    def on_request_approved(self, event):
        _move(event, event.previous_status, "ordered", event.approved_at)

    @on(MaterialRequestRejected)
    def on_request_rejected(self, event):
        _move(event, event.previous_status, "rejected", event.rejected_at)

    @on(MaterialRequestReceived)
    def on_request_received(self, event):
        _move(event, event.previous_status, "received", event.received_at)

    @on(MaterialRequestDelivered)
    def on_request_delivered(self, event):
        _move(event, event.previous_status, "delivered", event.delivered_at)


def stats_for(site_id) -> SiteRequestStats:
    """Counters for a site; all zero if it never had a request."""
    repo = current_domain.repository_for(SiteRequestStats)
    try:
        return repo.get(str(site_id))
    except ObjectNotFoundError:
        return SiteRequestStats(site_id=str(site_id))
