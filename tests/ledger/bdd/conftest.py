"""Shared BDD fixtures and step definitions for the ledger."""

import pytest
from ledger.errors import InsufficientStock, InvalidTransition, SiteUnavailable
from ledger.request.lifecycle import find_request, raise_request
from ledger.stock.receiving import receive
from ledger.stock.store import get_record
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

# Map error name strings to classes for dynamic lookup
_ERROR_CLASSES = {
    "InsufficientStock": InsufficientStock,
    "InvalidTransition": InvalidTransition,
    "SiteUnavailable": SiteUnavailable,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def requests_by_label():
    """Material requests raised in a scenario, keyed by their label."""
    return {}


def _site(sites, label):
    return sites[label.lower()]


def _item(item_name):
    return {"item_name": item_name, "unit": "units"}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("three registered sites A, B and C")
def three_sites(sites, task_signal):
    return sites


@given(parsers.cfparse('site {label} holds {quantity:g} units of "{item_name}" at {unit_cost:g} each'))
def site_holds(sites, label, quantity, item_name, unit_cost):
    receive(
        site_id=_site(sites, label),
        quantity=quantity,
        unit_cost=unit_cost,
        actor="storekeeper-lee",
        **_item(item_name),
    )


@given(parsers.cfparse('request "{request_label}" for {quantity:g} units of "{item_name}" at site {label} for task "{task_id}"'))
def request_for_task(sites, requests_by_label, request_label, quantity, item_name, label, task_id):
    requests_by_label[request_label] = raise_request(
        site_id=_site(sites, label),
        quantity=quantity,
        requested_by="foreman-jo",
        task_id=task_id,
        **_item(item_name),
    ).id


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('site {label} receives {quantity:g} units of "{item_name}" at {unit_cost:g} each'))
def site_receives(sites, label, quantity, item_name, unit_cost, error):
    try:
        receive(
            site_id=_site(sites, label),
            quantity=quantity,
            unit_cost=unit_cost,
            actor="storekeeper-lee",
            **_item(item_name),
        )
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('site {label} holds {quantity:g} units of "{item_name}"'))
def site_quantity(sites, label, quantity, item_name):
    record = get_record(_site(sites, label), **_item(item_name))
    assert record is not None
    assert record.quantity == quantity


@then(parsers.cfparse('site {label} unit cost of "{item_name}" is {unit_cost:g}'))
def site_unit_cost(sites, label, item_name, unit_cost):
    assert get_record(_site(sites, label), **_item(item_name)).unit_cost == unit_cost


@then(parsers.cfparse('request "{request_label}" is {status}'))
def request_status(requests_by_label, request_label, status):
    assert find_request(requests_by_label[request_label]).status == status


@then(parsers.cfparse("the action fails with {error_name}"))
def action_fails(error, error_name):
    assert isinstance(error["exc"], _ERROR_CLASSES[error_name])
