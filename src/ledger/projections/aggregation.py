"""Cross-site stock rollups for reporting.

Computed on demand from InventoryStore reads; nothing here is stored, so a
rollup is always consistent with the records it was read from. Items are
grouped by their canonical identity, so the same material booked with
different capitalisation at two sites lands in one row.
"""

from dataclasses import dataclass, field

from ledger.quantities import ZERO, as_float, quantize_cost, stock_value, to_decimal
from ledger.stock.identity import ItemIdentity
from ledger.stock.store import InventoryStore


@dataclass
class SiteLine:
    site_id: str
    quantity: float
    unit_cost: float
    min_level: float
    value: float
    low_stock: bool


@dataclass
class ItemRollup:
    item_key: str
    item_name: str
    unit: str
    total_quantity: float = 0.0
    total_min_level: float = 0.0
    total_value: float = 0.0
    average_cost: float = 0.0
    has_low_stock: bool = False
    sites: list[SiteLine] = field(default_factory=list)

    @property
    def site_count(self) -> int:
        return len(self.sites)


@dataclass
class InventorySummary:
    total_value: float
    item_count: int
    low_stock_count: int


def _rollup(records) -> ItemRollup:
    ordered = sorted(records, key=lambda record: str(record.site_id))
    first = ordered[0]
    quantity = ZERO
    min_level = ZERO
    value = ZERO
    lines = []
    for record in ordered:
        line_value = stock_value(record.quantity, record.unit_cost)
        quantity += to_decimal(record.quantity)
        min_level += to_decimal(record.min_level)
        value += line_value
        lines.append(
            SiteLine(
                site_id=str(record.site_id),
                quantity=record.quantity,
                unit_cost=record.unit_cost,
                min_level=record.min_level,
                value=as_float(line_value),
                low_stock=record.is_low_stock,
            )
        )

    return ItemRollup(
        item_key=first.item_key,
        item_name=first.item_name,
        unit=first.unit,
        total_quantity=as_float(quantity),
        total_min_level=as_float(min_level),
        total_value=as_float(quantize_cost(value)),
        average_cost=as_float(quantize_cost(value / quantity)) if quantity > ZERO else 0.0,
        has_low_stock=any(line.low_stock for line in lines),
        sites=lines,
    )


class AggregationView:
    """Read-only rollups over every site's stock."""

    def __init__(self, store: InventoryStore | None = None):
        self.store = store or InventoryStore()

    def list_all(self) -> list[ItemRollup]:
        groups = {}
        for record in self.store.all_records():
            groups.setdefault(record.item_key, []).append(record)
        return [_rollup(groups[key]) for key in sorted(groups)]

    def by_item(self, item_name, unit) -> ItemRollup | None:
        records = self.store.records_for_item(ItemIdentity.of(item_name, unit))
        if not records:
            return None
        return _rollup(records)

    def low_stock(self) -> list[ItemRollup]:
        return [rollup for rollup in self.list_all() if rollup.has_low_stock]

    def summary(self) -> InventorySummary:
        rollups = self.list_all()
        total = sum((to_decimal(rollup.total_value) for rollup in rollups), ZERO)
        return InventorySummary(
            total_value=as_float(quantize_cost(total)),
            item_count=len(rollups),
            low_stock_count=sum(1 for rollup in rollups if rollup.has_low_stock),
        )
