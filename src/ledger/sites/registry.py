"""Site registry — commands, handler and the lookups other modules rely on."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.errors import SiteUnavailable
from ledger.sites.site import Site


@ledger.command(part_of="Site")
class RegisterSite:
    """Add a site to the registry. ``site_id`` may be supplied by the caller."""

    site_id = Identifier()
    name = String(required=True, max_length=255)


@ledger.command(part_of="Site")
class RenameSite:
    site_id = Identifier(required=True)
    name = String(required=True, max_length=255)


@ledger.command(part_of="Site")
class ArchiveSite:
    site_id = Identifier(required=True)


def site_lock_key(site_id) -> str:
    return f"sites::{site_id}"


def find_site(site_id):
    """Return the site or ``None``."""
    if not site_id:
        return None
    try:
        return current_domain.repository_for(Site).get(str(site_id))
    except ObjectNotFoundError:
        return None


def require_active_site(site_id):
    site = find_site(site_id)
    if site is None:
        raise SiteUnavailable(site_id)
    if not site.is_active:
        raise SiteUnavailable(site_id, reason="Site is archived")
    return site


def list_sites(include_archived=False):
    sites = current_domain.repository_for(Site)._dao.query.all().items
    if not include_archived:
        sites = [site for site in sites if site.is_active]
    return sorted(sites, key=lambda site: site.name.lower())


@ledger.command_handler(part_of=Site)
class SiteRegistryHandler:
    @handle(RegisterSite)
    def register_site(self, command):
        if command.site_id and find_site(command.site_id) is not None:
            raise ValidationError({"site_id": [f"Site {command.site_id} is already registered"]})
        site = Site.register(name=command.name, site_id=command.site_id)
        current_domain.repository_for(Site).add(site)
        return str(site.id)

    @handle(RenameSite)
    def rename_site(self, command):
        repo = current_domain.repository_for(Site)
        site = repo.get(command.site_id)
        site.rename(command.name)
        repo.add(site)

    @handle(ArchiveSite)
    def archive_site(self, command):
        repo = current_domain.repository_for(Site)
        site = repo.get(command.site_id)
        site.archive()
        repo.add(site)


def register_site(name, site_id=None):
    def _register():
        return current_domain.process(RegisterSite(site_id=site_id, name=name), asynchronous=False)

    # Generated ids cannot collide; caller-supplied ones are checked under the lock
    if not site_id:
        return _register()
    return run_atomic([site_lock_key(site_id)], _register)


def rename_site(site_id, name):
    run_atomic(
        [site_lock_key(site_id)],
        lambda: current_domain.process(RenameSite(site_id=site_id, name=name), asynchronous=False),
    )


def archive_site(site_id):
    run_atomic(
        [site_lock_key(site_id)],
        lambda: current_domain.process(ArchiveSite(site_id=site_id), asynchronous=False),
    )
