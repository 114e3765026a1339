"""InventoryStore — keyed access to InventoryRecords.

Lookups go straight to the deterministic record id, so "does the record
exist" and "create or update it" are the same key. ``apply_delta`` mutates
the record in memory only; handlers validate every record they touch first
and then ``save`` them, so a failure leaves nothing half written.

Must be used from inside a command handler running under the atomic unit
for the touched keys (see ``ledger.concurrency``).
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ledger.errors import ItemNotFound
from ledger.quantities import ZERO, to_decimal
from ledger.stock.identity import ItemIdentity, record_id
from ledger.stock.record import InventoryRecord

_SCAN_LIMIT = 10_000


class InventoryStore:
    def __init__(self):
        self.repo = current_domain.repository_for(InventoryRecord)

    def get(self, site_id, identity: ItemIdentity) -> InventoryRecord | None:
        try:
            return self.repo.get(record_id(site_id, identity))
        except ObjectNotFoundError:
            return None

    def require(self, site_id, identity: ItemIdentity) -> InventoryRecord:
        record = self.get(site_id, identity)
        if record is None:
            raise ItemNotFound(site_id, identity.name, identity.unit)
        return record

    def apply_delta(
        self,
        site_id,
        identity: ItemIdentity,
        quantity_delta,
        cost_hint=None,
        movement=None,
        min_level=None,
    ) -> InventoryRecord:
        """Apply a signed quantity change, opening the record on first credit.

        ``min_level`` only applies when the record has to be opened.
        """
        record = self.get(site_id, identity)
        if record is None:
            if to_decimal(quantity_delta) <= ZERO:
                raise ItemNotFound(site_id, identity.name, identity.unit)
            record = InventoryRecord.open(site_id, identity, min_level=min_level)
        record.apply_delta(quantity_delta, cost_hint=cost_hint, movement=movement)
        return record

    def save(self, *records: InventoryRecord) -> None:
        for record in records:
            self.repo.add(record)

    def records_at(self, site_id) -> list[InventoryRecord]:
        records = self.repo._dao.query.filter(site_id=str(site_id)).limit(_SCAN_LIMIT).all().items
        return sorted(records, key=lambda record: record.item_key)

    def records_for_item(self, identity: ItemIdentity) -> list[InventoryRecord]:
        return self.repo._dao.query.filter(item_key=identity.key).limit(_SCAN_LIMIT).all().items

    def all_records(self) -> list[InventoryRecord]:
        return self.repo._dao.query.limit(_SCAN_LIMIT).all().items


def get_record(site_id, item_name, unit) -> InventoryRecord | None:
    """Read a site's record of an item, or ``None``."""
    return InventoryStore().get(site_id, ItemIdentity.of(item_name, unit))
