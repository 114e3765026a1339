"""Tests for the Site aggregate."""

import pytest
from ledger.sites.events import SiteArchived, SiteRegistered, SiteRenamed
from ledger.sites.site import Site, SiteStatus
from protean.exceptions import ValidationError


class TestSiteRegistration:
    def test_register_with_explicit_id(self):
        site = Site.register("Harbour View Towers", site_id="site-hv")
        assert str(site.id) == "site-hv"
        assert site.name == "Harbour View Towers"
        assert site.is_active is True

    def test_register_generates_id(self):
        site = Site.register("Harbour View Towers")
        assert site.id is not None

    def test_name_is_trimmed(self):
        assert Site.register("  Riverside  ").name == "Riverside"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Site.register("   ")
        assert "name" in exc.value.messages

    def test_raises_registered_event(self):
        site = Site.register("Harbour View Towers", site_id="site-hv")
        events = [e for e in site._events if isinstance(e, SiteRegistered)]
        assert len(events) == 1
        assert events[0].site_id == "site-hv"


class TestSiteLifecycle:
    def test_rename(self):
        site = Site.register("Harbour View")
        site.rename("Harbour View Towers")
        assert site.name == "Harbour View Towers"
        event = [e for e in site._events if isinstance(e, SiteRenamed)][0]
        assert event.previous_name == "Harbour View"

    def test_archive(self):
        site = Site.register("Harbour View")
        site.archive()
        assert site.status == SiteStatus.ARCHIVED.value
        assert site.is_active is False
        assert site.archived_at is not None
        assert len([e for e in site._events if isinstance(e, SiteArchived)]) == 1

    def test_archive_twice_fails(self):
        site = Site.register("Harbour View")
        site.archive()
        with pytest.raises(ValidationError):
            site.archive()
