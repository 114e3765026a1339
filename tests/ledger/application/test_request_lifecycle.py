"""Application tests for the material request lifecycle."""

import pytest
from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.errors import InvalidTransition, RequestNotFound, SiteUnavailable
from ledger.request.lifecycle import approve, find_request, raise_request, receive_request, reject
from ledger.request.material_request import RequestStatus
from ledger.stock.receiving import receive
from ledger.stock.store import get_record

ITEM = {"item_name": "Plywood 18mm", "unit": "sheets"}


def _raise(site_id, **overrides):
    defaults = {
        "site_id": site_id,
        "quantity": 40,
        "requested_by": "foreman-jo",
        **ITEM,
    }
    defaults.update(overrides)
    return raise_request(**defaults)


class TestRaiseRequest:
    def test_creates_requested_request(self, sites):
        request = _raise(sites["a"], task_id="task-1", priority="urgent", estimated_cost=1200)
        stored = find_request(request.id)
        assert stored.status == RequestStatus.REQUESTED.value
        assert stored.task_id == "task-1"
        assert stored.priority == "urgent"
        assert stored.estimated_cost == 1200.0

    def test_unknown_site_rejected(self, sites):
        with pytest.raises(SiteUnavailable):
            _raise("site-nowhere")

    def test_audited(self, sites):
        request = _raise(sites["a"])
        entries = audit_log.for_request(request.id)
        assert [e.kind for e in entries] == [AuditKind.REQUEST_RAISED.value]


class TestApprove:
    def test_approve_orders_request(self, sites):
        request = _raise(sites["a"])
        approved = approve(request.id, approved_by="pm-sam")
        assert approved.status == RequestStatus.ORDERED.value
        assert approved.approved_by == "pm-sam"
        assert approved.approved_at is not None

    def test_approve_unknown_request(self, sites):
        with pytest.raises(RequestNotFound):
            approve("req-missing", approved_by="pm-sam")


class TestReject:
    def test_reject_requested(self, sites):
        request = _raise(sites["a"])
        rejected = reject(request.id, rejected_by="pm-sam", reason="Duplicate")
        assert rejected.status == RequestStatus.REJECTED.value
        assert rejected.rejection_reason == "Duplicate"

    def test_reject_has_no_stock_effect(self, sites):
        receive(site_id=sites["a"], quantity=5, unit_cost=30, actor="storekeeper-lee", **ITEM)
        request = _raise(sites["a"])
        reject(request.id, rejected_by="pm-sam")
        assert get_record(sites["a"], **ITEM).quantity == 5.0

    def test_rejecting_rejected_fails(self, sites):
        request = _raise(sites["a"])
        reject(request.id, rejected_by="pm-sam")
        with pytest.raises(InvalidTransition):
            reject(request.id, rejected_by="pm-sam")

    def test_rejecting_delivered_fails(self, sites):
        request = _raise(sites["a"], quantity=10)
        receive(site_id=sites["a"], quantity=10, unit_cost=30, actor="storekeeper-lee", **ITEM)
        assert find_request(request.id).status == RequestStatus.DELIVERED.value
        with pytest.raises(InvalidTransition):
            reject(request.id, rejected_by="pm-sam")


class TestManualReceipt:
    def test_receive_ordered_request_books_stock(self, sites):
        request = _raise(sites["a"], quantity=40)
        approve(request.id, approved_by="pm-sam")
        received = receive_request(request.id, received_by="storekeeper-lee", unit_cost=25)

        assert received.status == RequestStatus.RECEIVED.value
        record = get_record(sites["a"], **ITEM)
        assert record.quantity == 40.0
        assert record.unit_cost == 25.0

    def test_receive_defaults_to_zero_cost(self, sites):
        request = _raise(sites["a"], quantity=10)
        approve(request.id, approved_by="pm-sam")
        receive_request(request.id, received_by="storekeeper-lee")
        assert get_record(sites["a"], **ITEM).unit_cost == 0.0

    def test_receive_requested_request_fails_without_stock_change(self, sites):
        request = _raise(sites["a"])
        with pytest.raises(InvalidTransition):
            receive_request(request.id, received_by="storekeeper-lee")
        assert get_record(sites["a"], **ITEM) is None

    def test_receive_twice_fails(self, sites):
        request = _raise(sites["a"], quantity=10)
        approve(request.id, approved_by="pm-sam")
        receive_request(request.id, received_by="storekeeper-lee")
        with pytest.raises(InvalidTransition):
            receive_request(request.id, received_by="storekeeper-lee")
        assert get_record(sites["a"], **ITEM).quantity == 10.0

    def test_manual_receipt_is_audited_with_delta(self, sites):
        request = _raise(sites["a"], quantity=10)
        approve(request.id, approved_by="pm-sam")
        receive_request(request.id, received_by="storekeeper-lee", unit_cost=3)
        kinds = [e.kind for e in audit_log.for_request(request.id)]
        assert kinds == [
            AuditKind.REQUEST_RAISED.value,
            AuditKind.REQUEST_APPROVED.value,
            AuditKind.REQUEST_RECEIVED.value,
        ]
        assert audit_log.for_request(request.id)[-1].quantity_delta == 10.0
