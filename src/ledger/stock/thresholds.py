"""Reorder thresholds — the minimum level below which a record is low on stock."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.errors import InvalidQuantity
from ledger.quantities import ZERO, to_decimal
from ledger.stock.identity import ItemIdentity, stock_lock_key
from ledger.stock.record import InventoryRecord
from ledger.stock.store import InventoryStore


@ledger.command(part_of="InventoryRecord")
class SetMinLevel:
    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    min_level = Float(required=True)
    actor = String(required=True, max_length=255)


@ledger.command_handler(part_of=InventoryRecord)
class SetMinLevelHandler:
    @handle(SetMinLevel)
    def set_min_level(self, command):
        store = InventoryStore()
        record = store.require(command.site_id, ItemIdentity.of(command.item_name, command.unit))
        previous = record.min_level
        record.change_min_level(command.min_level)
        store.save(record)

        audit_log.append(
            AuditKind.MIN_LEVEL_CHANGED,
            site_id=command.site_id,
            actor=command.actor,
            description=f"Minimum level for {record.item_name} changed from {previous:g} to {record.min_level:g} {record.unit}",
            item_name=record.item_name,
            unit=record.unit,
            item_key=record.item_key,
        )
        return str(record.id)


def set_min_level(site_id, item_name, unit, min_level, actor) -> InventoryRecord:
    if min_level is None or to_decimal(min_level) < ZERO:
        raise InvalidQuantity("Minimum level cannot be negative", field="min_level")
    identity = ItemIdentity.of(item_name, unit)

    def _set():
        result = current_domain.process(
            SetMinLevel(
                site_id=site_id,
                item_name=identity.name,
                unit=identity.unit,
                min_level=min_level,
                actor=actor,
            ),
            asynchronous=False,
        )
        return current_domain.repository_for(InventoryRecord).get(result)

    return run_atomic([stock_lock_key(site_id, identity)], _set)
