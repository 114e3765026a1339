"""Canonical item identity and the deterministic stock record id.

An item is identified by its (name, unit) pair compared case-insensitively
with whitespace collapsed, so " Portland  Cement" in "Bags" and
"portland cement" in "bags" are the same stock-keeping unit. The record id
for a site's stock of an item is a UUID5 of the site and that identity:
looking a record up and creating it resolve to the same key, so two first
receipts can never create two records.
"""

from dataclasses import dataclass
from uuid import NAMESPACE_URL, uuid5

from protean.exceptions import ValidationError

STOCK_NAMESPACE = uuid5(NAMESPACE_URL, "urn:siteledger:inventory-record")


def normalize(value) -> str:
    return " ".join(str(value or "").split()).lower()


@dataclass(frozen=True)
class ItemIdentity:
    name: str
    unit: str

    @classmethod
    def of(cls, name, unit):
        """Build an identity keeping the caller's display spelling."""
        display_name = " ".join(str(name or "").split())
        display_unit = " ".join(str(unit or "").split())
        errors = {}
        if not display_name:
            errors["item_name"] = ["Item name is required"]
        if not display_unit:
            errors["unit"] = ["Unit is required"]
        if errors:
            raise ValidationError(errors)
        return cls(name=display_name, unit=display_unit)

    @property
    def name_key(self) -> str:
        return normalize(self.name)

    @property
    def unit_key(self) -> str:
        return normalize(self.unit)

    @property
    def key(self) -> str:
        return f"{self.name_key}_{self.unit_key}"

    def matches(self, other: "ItemIdentity") -> bool:
        return self.key == other.key


def record_id(site_id, identity: ItemIdentity) -> str:
    return str(uuid5(STOCK_NAMESPACE, f"{site_id}::{identity.name_key}::{identity.unit_key}"))


def stock_lock_key(site_id, identity: ItemIdentity) -> str:
    return f"stock::{record_id(site_id, identity)}"


def request_lock_key(site_id, identity: ItemIdentity) -> str:
    return f"requests::{site_id}::{identity.key}"
