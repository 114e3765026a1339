"""Domain events for the Site aggregate."""

from protean.fields import DateTime, Identifier, String

from ledger.domain import ledger


@ledger.event(part_of="Site")
class SiteRegistered:
    """A construction site joined the registry."""

    __version__ = 1

    site_id = Identifier(required=True)
    name = String(required=True)
    registered_at = DateTime(required=True)


@ledger.event(part_of="Site")
class SiteRenamed:
    __version__ = 1

    site_id = Identifier(required=True)
    previous_name = String(required=True)
    name = String(required=True)
    renamed_at = DateTime(required=True)


@ledger.event(part_of="Site")
class SiteArchived:
    """A site was closed; it no longer takes stock or requests."""

    __version__ = 1

    site_id = Identifier(required=True)
    archived_at = DateTime(required=True)
