"""BDD tests for allocation of received stock."""

from ledger.stock.consumption import consume_for_task
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/allocation.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('task "{task_id}" completes'))
def task_completes(task_id):
    consume_for_task(task_id, actor="foreman-jo")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('task "{task_id}" has been notified'))
def task_notified(task_signal, task_id):
    assert task_signal.was_notified(task_id)


@then(parsers.cfparse('task "{task_id}" has not been notified'))
def task_not_notified(task_signal, task_id):
    assert not task_signal.was_notified(task_id)
