"""Stock receipt — command, handler and the ``receive`` entry point.

A receipt credits the site's record at the supplied unit cost, writes a
``stock_added`` audit entry in the same unit of work, and then hands the
item to the allocation engine. Allocation runs after the receipt has
committed; if it fails the receipt stands and the failure is logged.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.errors import InvalidCost, InvalidQuantity
from ledger.quantities import ZERO, to_decimal
from ledger.sites.registry import require_active_site
from ledger.stock.identity import ItemIdentity, stock_lock_key
from ledger.stock.record import InventoryRecord, Movement
from ledger.stock.store import InventoryStore

logger = structlog.get_logger(__name__)


@ledger.command(part_of="InventoryRecord")
class ReceiveStock:
    """Add delivered stock of an item to a site."""

    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    quantity = Float(required=True)
    unit_cost = Float(default=0.0)
    actor = String(required=True, max_length=255)
    reference = String(max_length=255)  # Delivery note / invoice number


def validate_receipt(quantity, unit_cost):
    if quantity is None or to_decimal(quantity) <= ZERO:
        raise InvalidQuantity()
    if unit_cost is None or to_decimal(unit_cost) < ZERO:
        raise InvalidCost()


@ledger.command_handler(part_of=InventoryRecord)
class ReceiveStockHandler:
    @handle(ReceiveStock)
    def receive_stock(self, command):
        validate_receipt(command.quantity, command.unit_cost)
        require_active_site(command.site_id)
        identity = ItemIdentity.of(command.item_name, command.unit)

        store = InventoryStore()
        record = store.apply_delta(
            command.site_id,
            identity,
            command.quantity,
            cost_hint=command.unit_cost,
            movement=Movement.RECEIPT,
        )
        store.save(record)

        description = f"Received {command.quantity:g} {record.unit} of {record.item_name} at {command.unit_cost:g} per unit"
        if command.reference:
            description += f" (ref {command.reference})"
        audit_log.append(
            AuditKind.STOCK_ADDED,
            site_id=command.site_id,
            actor=command.actor,
            description=description,
            item_name=record.item_name,
            unit=record.unit,
            item_key=record.item_key,
            quantity_delta=command.quantity,
            unit_cost=command.unit_cost,
        )
        return str(record.id)


def receive(site_id, item_name, unit, quantity, unit_cost, actor, reference=None) -> InventoryRecord:
    """Receive stock at a site and allocate it to waiting requests.

    Returns the record as committed by the receipt.
    """
    validate_receipt(quantity, unit_cost)
    identity = ItemIdentity.of(item_name, unit)

    def _receive():
        result = current_domain.process(
            ReceiveStock(
                site_id=site_id,
                item_name=identity.name,
                unit=identity.unit,
                quantity=quantity,
                unit_cost=unit_cost,
                actor=actor,
                reference=reference,
            ),
            asynchronous=False,
        )
        return current_domain.repository_for(InventoryRecord).get(result)

    record = run_atomic([stock_lock_key(site_id, identity)], _receive)
    logger.info(
        "Stock received",
        site_id=str(site_id),
        item_key=identity.key,
        quantity=quantity,
        unit_cost=unit_cost,
        on_hand=record.quantity,
    )

    from ledger.allocation.engine import allocate

    try:
        allocate(site_id, identity.name, identity.unit)
    except Exception:
        logger.exception(
            "Allocation after receipt failed",
            site_id=str(site_id),
            item_key=identity.key,
        )

    return record
