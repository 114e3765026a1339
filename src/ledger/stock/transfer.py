"""Stock transfer between sites.

A transfer debits the source record and credits the destination record in
one unit of work, holding the lock keys of both records. The destination
receives the stock at the source's current unit cost, so moving stock never
changes the value held across all sites. Two audit entries (one per site)
share a transfer id.

The source quantity is checked inside the handler, after both keys are
held, so a caller that picked a quantity from a stale read still cannot
overdraw the source. Stock promised to satisfied requests at the source
stays put; only free stock can be transferred.
"""

from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.errors import InvalidQuantity
from ledger.quantities import ZERO, to_decimal
from ledger.request.material_request import MaterialRequest
from ledger.sites.registry import require_active_site
from ledger.stock.identity import ItemIdentity, stock_lock_key
from ledger.stock.record import InventoryRecord, Movement
from ledger.stock.store import InventoryStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransferIntent:
    """What the caller asked to move. Lives only for the duration of a call."""

    source_site_id: str
    destination_site_id: str
    identity: ItemIdentity
    quantity: float

    @classmethod
    def of(cls, source_site_id, destination_site_id, item_name, unit, quantity):
        intent = cls(
            source_site_id=str(source_site_id or ""),
            destination_site_id=str(destination_site_id or ""),
            identity=ItemIdentity.of(item_name, unit),
            quantity=quantity,
        )
        intent.validate()
        return intent

    def validate(self):
        if self.quantity is None or to_decimal(self.quantity) <= ZERO:
            raise InvalidQuantity()
        if not self.source_site_id or not self.destination_site_id:
            raise ValidationError({"site_id": ["Source and destination sites are required"]})
        if self.source_site_id == self.destination_site_id:
            raise ValidationError({"destination_site_id": ["Destination must differ from source"]})

    @property
    def lock_keys(self):
        return [
            stock_lock_key(self.source_site_id, self.identity),
            stock_lock_key(self.destination_site_id, self.identity),
        ]


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    source: InventoryRecord
    destination: InventoryRecord


@ledger.command(part_of="InventoryRecord")
class TransferStock:
    transfer_id = Identifier(required=True)
    source_site_id = Identifier(required=True)
    destination_site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    quantity = Float(required=True)
    actor = String(required=True, max_length=255)


@ledger.command_handler(part_of=InventoryRecord)
class TransferStockHandler:
    @handle(TransferStock)
    def transfer_stock(self, command):
        intent = TransferIntent.of(
            command.source_site_id,
            command.destination_site_id,
            command.item_name,
            command.unit,
            command.quantity,
        )
        require_active_site(intent.source_site_id)
        require_active_site(intent.destination_site_id)

        store = InventoryStore()
        source = store.require(intent.source_site_id, intent.identity)
        cost_hint = source.unit_cost

        promised = current_domain.repository_for(MaterialRequest).promised_quantity(intent.source_site_id, source.item_key)
        source.debit(intent.quantity, movement=Movement.TRANSFER_OUT, promised=promised)
        destination = store.apply_delta(
            intent.destination_site_id,
            source.identity,
            intent.quantity,
            cost_hint=cost_hint,
            movement=Movement.TRANSFER_IN,
            min_level=source.min_level,
        )
        store.save(source, destination)

        common = {
            "actor": command.actor,
            "item_name": source.item_name,
            "unit": source.unit,
            "item_key": source.item_key,
            "unit_cost": cost_hint,
            "transfer_id": command.transfer_id,
        }
        audit_log.append(
            AuditKind.TRANSFER_OUT,
            site_id=intent.source_site_id,
            counterpart_site_id=intent.destination_site_id,
            quantity_delta=-intent.quantity,
            description=(
                f"Transferred {intent.quantity:g} {source.unit} of {source.item_name} "
                f"to site {intent.destination_site_id}"
            ),
            **common,
        )
        audit_log.append(
            AuditKind.TRANSFER_IN,
            site_id=intent.destination_site_id,
            counterpart_site_id=intent.source_site_id,
            quantity_delta=intent.quantity,
            description=(
                f"Received {intent.quantity:g} {source.unit} of {source.item_name} "
                f"from site {intent.source_site_id}"
            ),
            **common,
        )
        return command.transfer_id


def transfer(source_site_id, destination_site_id, item_name, unit, quantity, actor) -> TransferResult:
    """Move stock from one site to another as a single atomic unit."""
    intent = TransferIntent.of(source_site_id, destination_site_id, item_name, unit, quantity)
    transfer_id = str(uuid4())

    def _transfer():
        current_domain.process(
            TransferStock(
                transfer_id=transfer_id,
                source_site_id=intent.source_site_id,
                destination_site_id=intent.destination_site_id,
                item_name=intent.identity.name,
                unit=intent.identity.unit,
                quantity=intent.quantity,
                actor=actor,
            ),
            asynchronous=False,
        )
        store = InventoryStore()
        return TransferResult(
            transfer_id=transfer_id,
            source=store.require(intent.source_site_id, intent.identity),
            destination=store.require(intent.destination_site_id, intent.identity),
        )

    result = run_atomic(intent.lock_keys, _transfer)
    logger.info(
        "Stock transferred",
        transfer_id=transfer_id,
        source_site_id=intent.source_site_id,
        destination_site_id=intent.destination_site_id,
        item_key=intent.identity.key,
        quantity=quantity,
    )
    return result
