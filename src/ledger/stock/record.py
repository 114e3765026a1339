"""InventoryRecord aggregate (CQRS) — stock of one item at one site.

A record exists per (site, item identity) and its id is derived from that
pair, so it doubles as the lock key for every movement of the item at the
site. Records are never deleted: a record drained to zero stays as the
canonical slot for the next receipt.

Quantities and costs are stored as floats but every change is computed in
``Decimal`` (see ``ledger.quantities``).
"""

from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from ledger.clock import next_timestamp, utc_now
from ledger.domain import ledger
from ledger.errors import InsufficientStock, InvalidCost, InvalidQuantity
from ledger.quantities import (
    ZERO,
    as_float,
    quantize_quantity,
    stock_value,
    to_decimal,
    weighted_average_cost,
)
from ledger.stock.events import InventoryRecordOpened, MinLevelChanged, StockCredited, StockDebited
from ledger.stock.identity import ItemIdentity, record_id

DEFAULT_MIN_LEVEL = 10.0


class Movement(Enum):
    RECEIPT = "receipt"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    REQUEST_RECEIPT = "request_receipt"
    CONSUMPTION = "consumption"
    TASK_CONSUMPTION = "task_consumption"


@ledger.aggregate
class InventoryRecord:
    """Quantity on hand, weighted-average unit cost and reorder threshold."""

    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    item_key = String(required=True, max_length=320)
    quantity = Float(default=0.0, min_value=0.0)
    unit_cost = Float(default=0.0, min_value=0.0)
    min_level = Float(default=DEFAULT_MIN_LEVEL, min_value=0.0)
    created_at = DateTime()
    last_updated = DateTime()

    @invariant.post
    def quantity_cannot_be_negative(self):
        if self.quantity is not None and self.quantity < 0:
            raise ValidationError({"quantity": ["Stock quantity cannot be negative"]})

    @classmethod
    def open(cls, site_id, identity: ItemIdentity, min_level=None):
        """Create the empty slot for an item at a site."""
        now = utc_now()
        min_level = DEFAULT_MIN_LEVEL if min_level is None else float(min_level)
        record = cls(
            id=record_id(site_id, identity),
            site_id=str(site_id),
            item_name=identity.name,
            unit=identity.unit,
            item_key=identity.key,
            quantity=0.0,
            unit_cost=0.0,
            min_level=min_level,
            created_at=now,
            last_updated=now,
        )
        record.raise_(
            InventoryRecordOpened(
                record_id=str(record.id),
                site_id=str(site_id),
                item_name=identity.name,
                unit=identity.unit,
                item_key=identity.key,
                min_level=min_level,
                opened_at=now,
            )
        )
        return record

    @property
    def identity(self) -> ItemIdentity:
        return ItemIdentity(name=self.item_name, unit=self.unit)

    @property
    def total_value(self) -> float:
        return as_float(stock_value(self.quantity, self.unit_cost))

    @property
    def is_low_stock(self) -> bool:
        return to_decimal(self.quantity) < to_decimal(self.min_level)

    def _touch(self):
        self.last_updated = next_timestamp(self.last_updated)
        return self.last_updated

    def credit(self, quantity, cost_hint, movement=Movement.RECEIPT):
        """Add stock and blend ``cost_hint`` into the unit cost."""
        added = quantize_quantity(quantity)
        if added <= ZERO:
            raise InvalidQuantity()
        if cost_hint is None or to_decimal(cost_hint) < ZERO:
            raise InvalidCost()

        previous_quantity = to_decimal(self.quantity)
        previous_cost = to_decimal(self.unit_cost)
        new_quantity = quantize_quantity(previous_quantity + added)
        new_cost = weighted_average_cost(previous_quantity, previous_cost, added, cost_hint)

        self.quantity = as_float(new_quantity)
        self.unit_cost = as_float(new_cost)
        occurred_at = self._touch()
        self.raise_(
            StockCredited(
                record_id=str(self.id),
                site_id=str(self.site_id),
                item_key=self.item_key,
                movement=movement.value,
                quantity=as_float(added),
                cost_hint=float(cost_hint),
                previous_quantity=as_float(previous_quantity),
                new_quantity=self.quantity,
                previous_unit_cost=as_float(previous_cost),
                new_unit_cost=self.unit_cost,
                occurred_at=occurred_at,
            )
        )

    def debit(self, quantity, movement=Movement.CONSUMPTION, promised=None):
        """Remove stock. The unit cost of what remains does not change.

        ``promised`` is stock held for satisfied requests; it cannot be drawn.
        """
        removed = quantize_quantity(quantity)
        if removed <= ZERO:
            raise InvalidQuantity()

        previous_quantity = to_decimal(self.quantity)
        available = previous_quantity - to_decimal(promised)
        if removed > available:
            raise InsufficientStock(available=as_float(max(available, ZERO)), requested=as_float(removed))

        self.quantity = as_float(quantize_quantity(previous_quantity - removed))
        occurred_at = self._touch()
        self.raise_(
            StockDebited(
                record_id=str(self.id),
                site_id=str(self.site_id),
                item_key=self.item_key,
                movement=movement.value,
                quantity=as_float(removed),
                previous_quantity=as_float(previous_quantity),
                new_quantity=self.quantity,
                unit_cost=self.unit_cost,
                occurred_at=occurred_at,
            )
        )

    def apply_delta(self, quantity_delta, cost_hint=None, movement=None):
        """Signed form of ``credit``/``debit``."""
        delta = to_decimal(quantity_delta)
        if delta > ZERO:
            self.credit(delta, cost_hint, movement=movement or Movement.RECEIPT)
        elif delta < ZERO:
            self.debit(-delta, movement=movement or Movement.CONSUMPTION)
        else:
            raise InvalidQuantity("Quantity change cannot be zero")

    def change_min_level(self, min_level):
        level = to_decimal(min_level)
        if level < ZERO:
            raise InvalidQuantity("Minimum level cannot be negative", field="min_level")

        previous = self.min_level
        self.min_level = as_float(quantize_quantity(level))
        changed_at = self._touch()
        self.raise_(
            MinLevelChanged(
                record_id=str(self.id),
                site_id=str(self.site_id),
                item_key=self.item_key,
                previous_min_level=previous,
                min_level=self.min_level,
                changed_at=changed_at,
            )
        )
