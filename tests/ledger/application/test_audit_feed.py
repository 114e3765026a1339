"""Application tests for reading the audit trail."""

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.request.lifecycle import raise_request
from ledger.stock.consumption import consume
from ledger.stock.receiving import receive
from ledger.stock.transfer import transfer

ITEM = {"item_name": "Steel Beam", "unit": "pcs"}


def _activity(sites):
    receive(site_id=sites["a"], quantity=10, unit_cost=200, actor="storekeeper-lee", **ITEM)
    transfer(sites["a"], sites["b"], quantity=4, actor="pm-sam", **ITEM)
    consume(sites["b"], quantity=1, actor="foreman-jo", **ITEM)
    raise_request(site_id=sites["c"], quantity=2, requested_by="foreman-kim", **ITEM)


class TestFeed:
    def test_newest_first_across_sites(self, sites):
        _activity(sites)
        kinds = [entry.kind for entry in audit_log.feed()]
        assert kinds[0] == AuditKind.REQUEST_RAISED.value
        assert kinds[-1] == AuditKind.STOCK_ADDED.value
        assert len(kinds) == 5

    def test_timestamps_never_go_backwards(self, sites):
        _activity(sites)
        stamps = [entry.occurred_at for entry in audit_log.feed()]
        assert stamps == sorted(stamps, reverse=True)

    def test_site_feed(self, sites):
        _activity(sites)
        kinds = [entry.kind for entry in audit_log.feed(site_id=sites["b"])]
        assert kinds == [AuditKind.STOCK_CONSUMED.value, AuditKind.TRANSFER_IN.value]

    def test_limit(self, sites):
        _activity(sites)
        assert len(audit_log.feed(limit=2)) == 2

    def test_filter_by_kind(self, sites):
        _activity(sites)
        entries = audit_log.feed(kind=AuditKind.TRANSFER_OUT)
        assert [entry.site_id for entry in entries] == [sites["a"]]

    def test_empty_feed(self, sites):
        assert audit_log.feed() == []


class TestEntries:
    def test_transfer_entries_name_both_sites(self, sites):
        _activity(sites)
        out_entry = audit_log.feed(kind=AuditKind.TRANSFER_OUT)[0]
        assert out_entry.counterpart_site_id == sites["b"]
        assert set(out_entry.involved_sites) == {sites["a"], sites["b"]}
        assert out_entry.quantity_delta == -4.0

    def test_count(self, sites):
        _activity(sites)
        assert audit_log.count() == 5
        assert audit_log.count(site_id=sites["a"]) == 2
