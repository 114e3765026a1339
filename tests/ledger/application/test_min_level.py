import pytest
from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.errors import InvalidQuantity, ItemNotFound
from ledger.stock.consumption import consume
from ledger.stock.receiving import receive
from ledger.stock.record import DEFAULT_MIN_LEVEL
from ledger.stock.store import get_record
from ledger.stock.thresholds import set_min_level

ITEM = {"item_name": "Timber 4x2", "unit": "m"}


@pytest.fixture()
def stocked(sites):
    receive(site_id=sites["a"], quantity=30, unit_cost=4, actor="storekeeper-lee", **ITEM)
    return sites["a"]


def test_new_record_uses_default_min_level(stocked):
    assert get_record(stocked, **ITEM).min_level == DEFAULT_MIN_LEVEL


def test_raise_min_level_flags_low_stock(stocked):
    record = set_min_level(stocked, min_level=40, actor="pm-sam", **ITEM)
    assert record.min_level == 40.0
    assert record.is_low_stock is True


def test_consumption_below_min_level_flags_low_stock(stocked):
    record = consume(stocked, quantity=25, actor="foreman-jo", **ITEM)
    assert record.quantity == 5.0
    assert record.is_low_stock is True


def test_at_min_level_is_not_low(stocked):
    record = set_min_level(stocked, min_level=30, actor="pm-sam", **ITEM)
    assert record.is_low_stock is False


def test_negative_min_level_rejected(stocked):
    with pytest.raises(InvalidQuantity):
        set_min_level(stocked, min_level=-1, actor="pm-sam", **ITEM)


def test_unknown_item_rejected(sites):
    with pytest.raises(ItemNotFound):
        set_min_level(sites["a"], min_level=5, actor="pm-sam", **ITEM)


def test_change_is_audited(stocked):
    set_min_level(stocked, min_level=12, actor="pm-sam", **ITEM)
    entries = audit_log.feed(site_id=stocked, kind=AuditKind.MIN_LEVEL_CHANGED)
    assert len(entries) == 1
    assert entries[0].actor == "pm-sam"
    assert "from 10 to 12" in entries[0].description
