"""Pydantic request/response schemas for the ledger API.

These are external contracts, kept separate from the Protean commands they
are translated into.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------
class RegisterSiteRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    site_id: str | None = None


class RenameSiteRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class SiteResponse(BaseModel):
    site_id: str
    name: str
    status: str


class SiteListResponse(BaseModel):
    sites: list[SiteResponse]


class SiteIdResponse(BaseModel):
    site_id: str


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class ReceiveStockRequest(BaseModel):
    site_id: str
    item_name: str
    unit: str
    quantity: float = Field(gt=0)
    unit_cost: float = Field(ge=0, default=0.0)
    actor: str
    reference: str | None = None


class TransferStockRequest(BaseModel):
    source_site_id: str
    destination_site_id: str
    item_name: str
    unit: str
    quantity: float = Field(gt=0)
    actor: str


class ConsumeStockRequest(BaseModel):
    site_id: str
    item_name: str
    unit: str
    quantity: float = Field(gt=0)
    actor: str
    reason: str | None = None


class SetMinLevelRequest(BaseModel):
    site_id: str
    item_name: str
    unit: str
    min_level: float = Field(ge=0)
    actor: str


class RecordResponse(BaseModel):
    record_id: str
    site_id: str
    item_name: str
    unit: str
    quantity: float
    unit_cost: float
    min_level: float
    total_value: float
    low_stock: bool
    last_updated: str | None = None


class RecordListResponse(BaseModel):
    records: list[RecordResponse]


class TransferResponse(BaseModel):
    transfer_id: str
    source: RecordResponse
    destination: RecordResponse


# ---------------------------------------------------------------------------
# Material requests
# ---------------------------------------------------------------------------
class RaiseRequestRequest(BaseModel):
    site_id: str
    item_name: str
    unit: str
    quantity: float = Field(gt=0)
    requested_by: str
    task_id: str | None = None
    priority: str = Field(default="normal", pattern="^(normal|urgent)$")
    estimated_cost: float | None = Field(default=None, ge=0)


class ApproveRequestRequest(BaseModel):
    approved_by: str


class RejectRequestRequest(BaseModel):
    rejected_by: str
    reason: str | None = None


class ReceiveRequestRequest(BaseModel):
    received_by: str
    unit_cost: float = Field(ge=0, default=0.0)


class AllocateRequest(BaseModel):
    site_id: str
    item_name: str
    unit: str
    available_quantity: float | None = Field(default=None, ge=0)


class ConsumeTaskRequest(BaseModel):
    actor: str


class MaterialRequestResponse(BaseModel):
    request_id: str
    site_id: str
    item_name: str
    unit: str
    quantity: float
    status: str
    priority: str
    task_id: str | None = None
    requested_by: str
    approved_by: str | None = None
    auto_allocated: bool = False
    stock_deducted: bool = False
    created_at: str | None = None


class MaterialRequestListResponse(BaseModel):
    requests: list[MaterialRequestResponse]


class AllocationResponse(BaseModel):
    delivered: list[str]


class ConsumedRequestsResponse(BaseModel):
    request_ids: list[str]


class RequestStatsResponse(BaseModel):
    site_id: str
    requested: int
    ordered: int
    received: int
    delivered: int
    rejected: int
    pending: int


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
class SiteLineResponse(BaseModel):
    site_id: str
    quantity: float
    unit_cost: float
    min_level: float
    value: float
    low_stock: bool


class ItemRollupResponse(BaseModel):
    item_key: str
    item_name: str
    unit: str
    total_quantity: float
    total_min_level: float
    total_value: float
    average_cost: float
    has_low_stock: bool
    sites: list[SiteLineResponse]


class ItemRollupListResponse(BaseModel):
    items: list[ItemRollupResponse]


class SummaryResponse(BaseModel):
    total_value: float
    item_count: int
    low_stock_count: int


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
class AuditEntryResponse(BaseModel):
    entry_id: str
    kind: str
    site_id: str
    counterpart_site_id: str | None = None
    item_name: str | None = None
    unit: str | None = None
    quantity_delta: float = 0.0
    transfer_id: str | None = None
    request_id: str | None = None
    actor: str
    description: str
    occurred_at: str


class AuditFeedResponse(BaseModel):
    entries: list[AuditEntryResponse]


class StatusResponse(BaseModel):
    status: str = "ok"
