"""Stock consumption — explicit debits and task-completion deduction.

``consume`` records material used on site and may only draw free stock.
Stock promised to a satisfied request is released by ``consume_for_task``
when the task finishes: every satisfied request linked to the task that has
not yet been charged to stock is debited and flagged, all in one unit of
work, so calling it twice for the same task deducts nothing the second time.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, List, String
from protean.utils.globals import current_domain

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.errors import InvalidQuantity
from ledger.quantities import ZERO, to_decimal
from ledger.request.material_request import MaterialRequest
from ledger.stock.identity import ItemIdentity, request_lock_key, stock_lock_key
from ledger.stock.record import InventoryRecord, Movement
from ledger.stock.store import InventoryStore

logger = structlog.get_logger(__name__)


@ledger.command(part_of="InventoryRecord")
class ConsumeStock:
    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    quantity = Float(required=True)
    actor = String(required=True, max_length=255)
    reason = String(max_length=255)


@ledger.command(part_of="InventoryRecord")
class ConsumeTaskMaterials:
    """Charge the stock delivered for a task once the task is done."""

    task_id = Identifier(required=True)
    actor = String(required=True, max_length=255)
    request_ids = List(content_type=String)  # Limit to requests the caller locked


@ledger.command_handler(part_of=InventoryRecord)
class ConsumptionHandler:
    @handle(ConsumeStock)
    def consume_stock(self, command):
        if command.quantity is None or to_decimal(command.quantity) <= ZERO:
            raise InvalidQuantity()
        identity = ItemIdentity.of(command.item_name, command.unit)

        store = InventoryStore()
        record = store.require(command.site_id, identity)
        promised = current_domain.repository_for(MaterialRequest).promised_quantity(command.site_id, record.item_key)
        record.debit(command.quantity, movement=Movement.CONSUMPTION, promised=promised)
        store.save(record)

        description = f"Used {command.quantity:g} {record.unit} of {record.item_name}"
        if command.reason:
            description += f": {command.reason}"
        audit_log.append(
            AuditKind.STOCK_CONSUMED,
            site_id=command.site_id,
            actor=command.actor,
            description=description,
            item_name=record.item_name,
            unit=record.unit,
            item_key=record.item_key,
            quantity_delta=-command.quantity,
            unit_cost=record.unit_cost,
        )
        return str(record.id)

    @handle(ConsumeTaskMaterials)
    def consume_task_materials(self, command):
        request_repo = current_domain.repository_for(MaterialRequest)
        requests = request_repo.awaiting_consumption_for_task(command.task_id)
        if command.request_ids:
            allowed = set(command.request_ids)
            requests = [request for request in requests if str(request.id) in allowed]
        if not requests:
            return []

        store = InventoryStore()
        records = {}
        for request in requests:
            identity = request.identity
            key = stock_lock_key(request.site_id, identity)
            record = records.get(key)
            if record is None:
                record = records[key] = store.require(request.site_id, identity)
            record.debit(request.quantity, movement=Movement.TASK_CONSUMPTION)
            request.mark_consumed()

        store.save(*records.values())
        for request in requests:
            request_repo.add(request)
            audit_log.append(
                AuditKind.STOCK_CONSUMED,
                site_id=request.site_id,
                actor=command.actor,
                description=(
                    f"Used {request.quantity:g} {request.unit} of {request.item_name} "
                    f"on completion of task {command.task_id}"
                ),
                item_name=request.item_name,
                unit=request.unit,
                item_key=request.item_key,
                quantity_delta=-request.quantity,
                request_id=request.id,
                task_id=command.task_id,
            )
        return [str(request.id) for request in requests]


def consume(site_id, item_name, unit, quantity, actor, reason=None) -> InventoryRecord:
    """Debit stock used on site."""
    if quantity is None or to_decimal(quantity) <= ZERO:
        raise InvalidQuantity()
    identity = ItemIdentity.of(item_name, unit)

    def _consume():
        result = current_domain.process(
            ConsumeStock(
                site_id=site_id,
                item_name=identity.name,
                unit=identity.unit,
                quantity=quantity,
                actor=actor,
                reason=reason,
            ),
            asynchronous=False,
        )
        return current_domain.repository_for(InventoryRecord).get(result)

    return run_atomic([stock_lock_key(site_id, identity)], _consume)


def consume_for_task(task_id, actor) -> list[str]:
    """Deduct the stock delivered for a completed task. Returns the request ids charged."""
    pending = current_domain.repository_for(MaterialRequest).awaiting_consumption_for_task(task_id)
    if not pending:
        return []

    keys = set()
    for request in pending:
        keys.add(stock_lock_key(request.site_id, request.identity))
        keys.add(request_lock_key(request.site_id, request.identity))

    charged = run_atomic(
        sorted(keys),
        lambda: current_domain.process(
            ConsumeTaskMaterials(
                task_id=task_id,
                actor=actor,
                request_ids=[str(request.id) for request in pending],
            ),
            asynchronous=False,
        ),
    )
    logger.info("Task materials consumed", task_id=str(task_id), requests=len(charged))
    return charged
