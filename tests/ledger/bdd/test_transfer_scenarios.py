"""BDD tests for stock transfers between sites."""

import pytest
from ledger.audit import log as audit_log
from ledger.sites.registry import archive_site
from ledger.stock.transfer import transfer
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/transfer.feature")


@pytest.fixture()
def outcome():
    return {"result": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("site {label} is archived"))
def site_is_archived(sites, label):
    archive_site(sites[label.lower()])


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('{quantity:g} units of "{item_name}" are transferred from site {source} to site {destination}'))
def transfer_units(sites, outcome, error, quantity, item_name, source, destination):
    try:
        outcome["result"] = transfer(
            sites[source.lower()],
            sites[destination.lower()],
            item_name=item_name,
            unit="units",
            quantity=quantity,
            actor="pm-sam",
        )
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the transfer is recorded at both sites")
def transfer_recorded(sites, outcome):
    entries = audit_log.for_transfer(outcome["result"].transfer_id)
    assert [entry.kind for entry in entries] == ["transfer_out", "transfer_in"]
    assert entries[0].site_id == sites["a"]
    assert entries[1].site_id == sites["b"]
    assert entries[0].quantity_delta == -entries[1].quantity_delta
