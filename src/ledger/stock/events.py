"""Domain events for the InventoryRecord aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from ledger.domain import ledger


@ledger.event(part_of="InventoryRecord")
class InventoryRecordOpened:
    """First stock of an item arrived at a site."""

    __version__ = 1

    record_id = Identifier(required=True)
    site_id = Identifier(required=True)
    item_name = String(required=True)
    unit = String(required=True)
    item_key = String(required=True)
    min_level = Float(default=0.0)
    opened_at = DateTime(required=True)


@ledger.event(part_of="InventoryRecord")
class StockCredited:
    """Quantity was added to a record and its unit cost re-blended."""

    __version__ = 1

    record_id = Identifier(required=True)
    site_id = Identifier(required=True)
    item_key = String(required=True)
    movement = String(required=True)
    quantity = Float(required=True)
    cost_hint = Float(default=0.0)
    previous_quantity = Float(default=0.0)
    new_quantity = Float(default=0.0)
    previous_unit_cost = Float(default=0.0)
    new_unit_cost = Float(default=0.0)
    occurred_at = DateTime(required=True)


@ledger.event(part_of="InventoryRecord")
class StockDebited:
    """Quantity left a record. Unit cost is unaffected by debits."""

    __version__ = 1

    record_id = Identifier(required=True)
    site_id = Identifier(required=True)
    item_key = String(required=True)
    movement = String(required=True)
    quantity = Float(required=True)
    previous_quantity = Float(default=0.0)
    new_quantity = Float(default=0.0)
    unit_cost = Float(default=0.0)
    occurred_at = DateTime(required=True)


@ledger.event(part_of="InventoryRecord")
class MinLevelChanged:
    __version__ = 1

    record_id = Identifier(required=True)
    site_id = Identifier(required=True)
    item_key = String(required=True)
    previous_min_level = Float(default=0.0)
    min_level = Float(default=0.0)
    changed_at = DateTime(required=True)
