import pytest
from ledger.errors import SiteUnavailable
from ledger.request.lifecycle import raise_request
from ledger.sites.registry import (
    archive_site,
    find_site,
    list_sites,
    register_site,
    rename_site,
    require_active_site,
)
from ledger.sites.site import SiteStatus
from protean.exceptions import ValidationError


class TestRegisterSite:
    def test_register_generates_id(self):
        site_id = register_site("Canal Street Offices")
        site = find_site(site_id)
        assert site.name == "Canal Street Offices"
        assert site.status == SiteStatus.ACTIVE.value

    def test_register_with_caller_id(self):
        register_site("Canal Street Offices", site_id="site-canal")
        assert find_site("site-canal").name == "Canal Street Offices"

    def test_duplicate_id_rejected(self):
        register_site("Canal Street Offices", site_id="site-canal")
        with pytest.raises(ValidationError) as exc:
            register_site("Another", site_id="site-canal")
        assert "site_id" in exc.value.messages

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            register_site("   ")


class TestSiteLookups:
    def test_unknown_site_is_none(self):
        assert find_site("site-missing") is None

    def test_require_unknown_site(self):
        with pytest.raises(SiteUnavailable):
            require_active_site("site-missing")

    def test_list_sites_sorted_by_name(self, sites):
        assert [site.name for site in list_sites()] == [
            "Harbour View Towers",
            "Northgate School",
            "Riverside Bridge",
        ]

    def test_archived_sites_hidden_by_default(self, sites):
        archive_site(sites["b"])
        assert sites["b"] not in [str(site.id) for site in list_sites()]
        assert sites["b"] in [str(site.id) for site in list_sites(include_archived=True)]


class TestSiteChanges:
    def test_rename(self, sites):
        rename_site(sites["a"], "Harbour View Phase 2")
        assert find_site(sites["a"]).name == "Harbour View Phase 2"

    def test_archive_twice_fails(self, sites):
        archive_site(sites["a"])
        with pytest.raises(ValidationError):
            archive_site(sites["a"])

    def test_archived_site_takes_no_requests(self, sites):
        archive_site(sites["a"])
        with pytest.raises(SiteUnavailable):
            raise_request(
                site_id=sites["a"],
                item_name="Sand",
                unit="tonnes",
                quantity=1,
                requested_by="foreman-jo",
            )
