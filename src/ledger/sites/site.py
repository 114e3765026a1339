"""Site aggregate (CQRS) — the registry of construction sites.

Every stock record and material request belongs to a site. Archived sites
keep their history readable but accept no new stock movements or requests.
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, String

from ledger.clock import utc_now
from ledger.domain import ledger
from ledger.sites.events import SiteArchived, SiteRegistered, SiteRenamed


class SiteStatus(Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


@ledger.aggregate
class Site:
    """A construction project or location with its own inventory."""

    name = String(required=True, max_length=255)
    status = String(choices=SiteStatus, default=SiteStatus.ACTIVE.value)
    registered_at = DateTime()
    archived_at = DateTime()

    @classmethod
    def register(cls, name, site_id=None):
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": ["Site name is required"]})

        now = utc_now()
        values = {"name": name, "registered_at": now}
        if site_id:
            values["id"] = site_id
        site = cls(**values)
        site.raise_(
            SiteRegistered(
                site_id=str(site.id),
                name=name,
                registered_at=now,
            )
        )
        return site

    @property
    def is_active(self):
        return self.status == SiteStatus.ACTIVE.value

    def rename(self, name):
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": ["Site name is required"]})
        previous = self.name
        self.name = name
        self.raise_(
            SiteRenamed(
                site_id=str(self.id),
                previous_name=previous,
                name=name,
                renamed_at=utc_now(),
            )
        )

    def archive(self):
        if not self.is_active:
            raise ValidationError({"status": ["Site is already archived"]})
        self.status = SiteStatus.ARCHIVED.value
        self.archived_at = utc_now()
        self.raise_(
            SiteArchived(
                site_id=str(self.id),
                archived_at=self.archived_at,
            )
        )
