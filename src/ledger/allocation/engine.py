"""Allocation engine — hands stock on hand to waiting material requests.

Requests for an item at a site are served strictly oldest first in a single
greedy pass. A request is delivered only if the whole quantity fits in what
is still free; larger requests are skipped (never partially filled) and
wait for a later receipt, while smaller requests behind them may still be
served.

"Free" stock is the record's quantity minus the quantity already promised
to delivered or received requests whose task has not yet consumed it.
Allocation never changes stock quantities.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.quantities import ZERO, as_float, to_decimal
from ledger.request.material_request import MaterialRequest
from ledger.stock.identity import ItemIdentity, request_lock_key, stock_lock_key
from ledger.stock.store import InventoryStore
from ledger.tasks import get_task_signal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Allocation:
    request_id: str
    task_id: str | None
    quantity: float


@ledger.command(part_of="MaterialRequest")
class AllocateStock:
    """Match free stock of an item at a site against its pending requests."""

    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    available_quantity = Float()  # Upper bound on what may be handed out


def plan_allocation(pending, available) -> list:
    """Pick the requests a greedy oldest-first pass can fully satisfy."""
    remaining = to_decimal(available)
    chosen = []
    for request in pending:
        if remaining <= ZERO:
            break
        quantity = to_decimal(request.quantity)
        if quantity <= remaining:
            chosen.append(request)
            remaining -= quantity
    return chosen


def free_quantity(record, awaiting_consumption, cap=None) -> Decimal:
    promised = sum((to_decimal(request.quantity) for request in awaiting_consumption), ZERO)
    free = to_decimal(record.quantity) - promised
    if cap is not None:
        free = min(free, to_decimal(cap))
    return max(free, ZERO)


@ledger.command_handler(part_of=MaterialRequest)
class AllocationHandler:
    @handle(AllocateStock)
    def allocate_stock(self, command):
        identity = ItemIdentity.of(command.item_name, command.unit)
        record = InventoryStore().get(command.site_id, identity)
        if record is None:
            return []

        repo = current_domain.repository_for(MaterialRequest)
        available = free_quantity(
            record,
            repo.awaiting_consumption(command.site_id, identity.key),
            cap=command.available_quantity,
        )
        chosen = plan_allocation(repo.pending_for(command.site_id, identity.key), available)

        allocations = []
        for request in chosen:
            request.deliver(auto_allocated=True)
            repo.add(request)
            audit_log.append(
                AuditKind.AUTO_ALLOCATED,
                site_id=request.site_id,
                actor="allocation-engine",
                description=f"Allocated {request.quantity:g} {request.unit} of {request.item_name} to request",
                item_name=request.item_name,
                unit=request.unit,
                item_key=request.item_key,
                request_id=request.id,
                task_id=request.task_id,
            )
            allocations.append(
                Allocation(
                    request_id=str(request.id),
                    task_id=str(request.task_id) if request.task_id else None,
                    quantity=request.quantity,
                )
            )
        return allocations


def _signal_tasks(allocations):
    signal = get_task_signal()
    signalled = set()
    for allocation in allocations:
        if not allocation.task_id or allocation.task_id in signalled:
            continue
        signalled.add(allocation.task_id)
        try:
            signal.notify_material_available(allocation.task_id)
        except Exception:
            logger.exception(
                "Task signal failed",
                task_id=allocation.task_id,
                request_id=allocation.request_id,
            )


def allocate(site_id, item_name, unit, available_quantity=None) -> list[Allocation]:
    """Deliver pending requests for an item at a site from its free stock.

    Task signals go out after the allocation has committed; a failing signal
    is logged and does not undo the allocation.
    """
    identity = ItemIdentity.of(item_name, unit)
    keys = [stock_lock_key(site_id, identity), request_lock_key(site_id, identity)]

    allocations = run_atomic(
        keys,
        lambda: current_domain.process(
            AllocateStock(
                site_id=site_id,
                item_name=identity.name,
                unit=identity.unit,
                available_quantity=available_quantity,
            ),
            asynchronous=False,
        ),
    )
    if allocations:
        logger.info(
            "Stock allocated to requests",
            site_id=str(site_id),
            item_key=identity.key,
            requests=[allocation.request_id for allocation in allocations],
            quantity=as_float(sum((to_decimal(allocation.quantity) for allocation in allocations), ZERO)),
        )
        _signal_tasks(allocations)
    return allocations
