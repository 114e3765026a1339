"""FastAPI routes for the ledger — sites, stock, material requests, reports, audit.

Routes that change the ledger are plain functions: they wait on key locks and
retry with backoff, so FastAPI runs them in its threadpool.
"""

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from ledger.allocation.engine import allocate
from ledger.api.schemas import (
    AllocateRequest,
    AllocationResponse,
    ApproveRequestRequest,
    AuditEntryResponse,
    AuditFeedResponse,
    ConsumedRequestsResponse,
    ConsumeStockRequest,
    ConsumeTaskRequest,
    ItemRollupListResponse,
    ItemRollupResponse,
    MaterialRequestListResponse,
    MaterialRequestResponse,
    RaiseRequestRequest,
    ReceiveRequestRequest,
    ReceiveStockRequest,
    RecordListResponse,
    RecordResponse,
    RegisterSiteRequest,
    RejectRequestRequest,
    RenameSiteRequest,
    RequestStatsResponse,
    SetMinLevelRequest,
    SiteIdResponse,
    SiteLineResponse,
    SiteListResponse,
    SiteResponse,
    StatusResponse,
    SummaryResponse,
    TransferResponse,
    TransferStockRequest,
)
from ledger.audit import log as audit_log
from ledger.errors import ItemNotFound, TransientLedgerError
from ledger.projections.aggregation import AggregationView
from ledger.projections.request_stats import stats_for
from ledger.request import lifecycle
from ledger.request.material_request import MaterialRequest
from ledger.sites import registry
from ledger.stock.consumption import consume, consume_for_task
from ledger.stock.identity import ItemIdentity
from ledger.stock.receiving import receive
from ledger.stock.store import InventoryStore
from ledger.stock.thresholds import set_min_level
from ledger.stock.transfer import transfer

logger = structlog.get_logger(__name__)


async def transient_error_handler(request: Request, exc: TransientLedgerError):
    """Contention that outlasted every retry; the client may try again."""
    logger.warning("Ledger contention surfaced to client", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"error": str(exc), "retryable": True})


def _iso(value):
    return value.isoformat() if value else None


def _record_response(record) -> RecordResponse:
    return RecordResponse(
        record_id=str(record.id),
        site_id=str(record.site_id),
        item_name=record.item_name,
        unit=record.unit,
        quantity=record.quantity,
        unit_cost=record.unit_cost,
        min_level=record.min_level,
        total_value=record.total_value,
        low_stock=record.is_low_stock,
        last_updated=_iso(record.last_updated),
    )


def _request_response(request) -> MaterialRequestResponse:
    return MaterialRequestResponse(
        request_id=str(request.id),
        site_id=str(request.site_id),
        item_name=request.item_name,
        unit=request.unit,
        quantity=request.quantity,
        status=request.status,
        priority=request.priority,
        task_id=str(request.task_id) if request.task_id else None,
        requested_by=request.requested_by,
        approved_by=request.approved_by,
        auto_allocated=bool(request.auto_allocated),
        stock_deducted=bool(request.stock_deducted),
        created_at=_iso(request.created_at),
    )


def _rollup_response(rollup) -> ItemRollupResponse:
    return ItemRollupResponse(
        item_key=rollup.item_key,
        item_name=rollup.item_name,
        unit=rollup.unit,
        total_quantity=rollup.total_quantity,
        total_min_level=rollup.total_min_level,
        total_value=rollup.total_value,
        average_cost=rollup.average_cost,
        has_low_stock=rollup.has_low_stock,
        sites=[SiteLineResponse(**line.__dict__) for line in rollup.sites],
    )


def _entry_response(entry) -> AuditEntryResponse:
    return AuditEntryResponse(
        entry_id=str(entry.id),
        kind=entry.kind,
        site_id=str(entry.site_id),
        counterpart_site_id=str(entry.counterpart_site_id) if entry.counterpart_site_id else None,
        item_name=entry.item_name,
        unit=entry.unit,
        quantity_delta=entry.quantity_delta or 0.0,
        transfer_id=str(entry.transfer_id) if entry.transfer_id else None,
        request_id=str(entry.request_id) if entry.request_id else None,
        actor=entry.actor,
        description=entry.description,
        occurred_at=_iso(entry.occurred_at),
    )


# ---------------------------------------------------------------------------
# Sites Router
# ---------------------------------------------------------------------------
sites_router = APIRouter(prefix="/sites", tags=["sites"])


@sites_router.post("", status_code=201, response_model=SiteIdResponse)
def register_site(body: RegisterSiteRequest) -> SiteIdResponse:
    site_id = registry.register_site(name=body.name, site_id=body.site_id)
    return SiteIdResponse(site_id=site_id)


@sites_router.get("", response_model=SiteListResponse)
async def list_sites(include_archived: bool = False) -> SiteListResponse:
    return SiteListResponse(
        sites=[
            SiteResponse(site_id=str(site.id), name=site.name, status=site.status)
            for site in registry.list_sites(include_archived=include_archived)
        ]
    )


@sites_router.put("/{site_id}", response_model=StatusResponse)
def rename_site(site_id: str, body: RenameSiteRequest) -> StatusResponse:
    registry.rename_site(site_id, body.name)
    return StatusResponse()


@sites_router.put("/{site_id}/archive", response_model=StatusResponse)
def archive_site(site_id: str) -> StatusResponse:
    registry.archive_site(site_id)
    return StatusResponse()


@sites_router.get("/{site_id}/stock", response_model=RecordListResponse)
async def site_stock(site_id: str) -> RecordListResponse:
    return RecordListResponse(records=[_record_response(record) for record in InventoryStore().records_at(site_id)])


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


@stock_router.post("/receipts", status_code=201, response_model=RecordResponse)
def receive_stock(body: ReceiveStockRequest) -> RecordResponse:
    record = receive(
        site_id=body.site_id,
        item_name=body.item_name,
        unit=body.unit,
        quantity=body.quantity,
        unit_cost=body.unit_cost,
        actor=body.actor,
        reference=body.reference,
    )
    return _record_response(record)


@stock_router.post("/transfers", status_code=201, response_model=TransferResponse)
def transfer_stock(body: TransferStockRequest) -> TransferResponse:
    result = transfer(
        source_site_id=body.source_site_id,
        destination_site_id=body.destination_site_id,
        item_name=body.item_name,
        unit=body.unit,
        quantity=body.quantity,
        actor=body.actor,
    )
    return TransferResponse(
        transfer_id=result.transfer_id,
        source=_record_response(result.source),
        destination=_record_response(result.destination),
    )


@stock_router.post("/consumptions", status_code=201, response_model=RecordResponse)
def consume_stock(body: ConsumeStockRequest) -> RecordResponse:
    record = consume(
        site_id=body.site_id,
        item_name=body.item_name,
        unit=body.unit,
        quantity=body.quantity,
        actor=body.actor,
        reason=body.reason,
    )
    return _record_response(record)


@stock_router.put("/min-level", response_model=RecordResponse)
def change_min_level(body: SetMinLevelRequest) -> RecordResponse:
    record = set_min_level(
        site_id=body.site_id,
        item_name=body.item_name,
        unit=body.unit,
        min_level=body.min_level,
        actor=body.actor,
    )
    return _record_response(record)


@stock_router.get("/record", response_model=RecordResponse)
async def get_record(site_id: str, item_name: str, unit: str) -> RecordResponse:
    identity = ItemIdentity.of(item_name, unit)
    record = InventoryStore().get(site_id, identity)
    if record is None:
        raise ItemNotFound(site_id, identity.name, identity.unit)
    return _record_response(record)


# ---------------------------------------------------------------------------
# Material Requests Router
# ---------------------------------------------------------------------------
requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", status_code=201, response_model=MaterialRequestResponse)
def raise_request(body: RaiseRequestRequest) -> MaterialRequestResponse:
    request = lifecycle.raise_request(
        site_id=body.site_id,
        item_name=body.item_name,
        unit=body.unit,
        quantity=body.quantity,
        requested_by=body.requested_by,
        task_id=body.task_id,
        priority=body.priority,
        estimated_cost=body.estimated_cost,
    )
    return _request_response(request)


@requests_router.post("/allocate", response_model=AllocationResponse)
def allocate_stock(body: AllocateRequest) -> AllocationResponse:
    allocations = allocate(
        site_id=body.site_id,
        item_name=body.item_name,
        unit=body.unit,
        available_quantity=body.available_quantity,
    )
    return AllocationResponse(delivered=[allocation.request_id for allocation in allocations])


@requests_router.get("/sites/{site_id}", response_model=MaterialRequestListResponse)
async def site_requests(site_id: str, status: str | None = None) -> MaterialRequestListResponse:
    requests = current_domain.repository_for(MaterialRequest).at_site(site_id, status=status)
    return MaterialRequestListResponse(requests=[_request_response(request) for request in requests])


@requests_router.get("/sites/{site_id}/stats", response_model=RequestStatsResponse)
async def site_request_stats(site_id: str) -> RequestStatsResponse:
    stats = stats_for(site_id)
    return RequestStatsResponse(
        site_id=str(stats.site_id),
        requested=stats.requested or 0,
        ordered=stats.ordered or 0,
        received=stats.received or 0,
        delivered=stats.delivered or 0,
        rejected=stats.rejected or 0,
        pending=stats.pending,
    )


@requests_router.post("/tasks/{task_id}/consume", response_model=ConsumedRequestsResponse)
def consume_task_materials(task_id: str, body: ConsumeTaskRequest) -> ConsumedRequestsResponse:
    return ConsumedRequestsResponse(request_ids=consume_for_task(task_id, actor=body.actor))


@requests_router.get("/{request_id}", response_model=MaterialRequestResponse)
async def get_request(request_id: str) -> MaterialRequestResponse:
    return _request_response(lifecycle.find_request(request_id))


@requests_router.put("/{request_id}/approve", response_model=MaterialRequestResponse)
def approve_request(request_id: str, body: ApproveRequestRequest) -> MaterialRequestResponse:
    return _request_response(lifecycle.approve(request_id, approved_by=body.approved_by))


@requests_router.put("/{request_id}/reject", response_model=MaterialRequestResponse)
def reject_request(request_id: str, body: RejectRequestRequest) -> MaterialRequestResponse:
    return _request_response(lifecycle.reject(request_id, rejected_by=body.rejected_by, reason=body.reason))


@requests_router.put("/{request_id}/receive", response_model=MaterialRequestResponse)
def receive_request(request_id: str, body: ReceiveRequestRequest) -> MaterialRequestResponse:
    return _request_response(
        lifecycle.receive_request(request_id, received_by=body.received_by, unit_cost=body.unit_cost)
    )


# ---------------------------------------------------------------------------
# Reports Router
# ---------------------------------------------------------------------------
reports_router = APIRouter(prefix="/reports", tags=["reports"])


@reports_router.get("/stock", response_model=ItemRollupListResponse)
async def stock_rollups(low_stock_only: bool = False) -> ItemRollupListResponse:
    view = AggregationView()
    rollups = view.low_stock() if low_stock_only else view.list_all()
    return ItemRollupListResponse(items=[_rollup_response(rollup) for rollup in rollups])


@reports_router.get("/stock/item", response_model=ItemRollupResponse)
async def stock_rollup_for_item(item_name: str, unit: str) -> ItemRollupResponse:
    rollup = AggregationView().by_item(item_name, unit)
    if rollup is None:
        raise HTTPException(status_code=404, detail=f"No stock of {item_name} ({unit}) at any site")
    return _rollup_response(rollup)


@reports_router.get("/summary", response_model=SummaryResponse)
async def inventory_summary() -> SummaryResponse:
    summary = AggregationView().summary()
    return SummaryResponse(
        total_value=summary.total_value,
        item_count=summary.item_count,
        low_stock_count=summary.low_stock_count,
    )


# ---------------------------------------------------------------------------
# Audit Router
# ---------------------------------------------------------------------------
audit_router = APIRouter(prefix="/audit", tags=["audit"])


@audit_router.get("", response_model=AuditFeedResponse)
async def audit_feed(
    site_id: str | None = None,
    limit: int = Query(default=audit_log.FEED_LIMIT, ge=1, le=500),
) -> AuditFeedResponse:
    return AuditFeedResponse(entries=[_entry_response(entry) for entry in audit_log.feed(site_id=site_id, limit=limit)])


@audit_router.get("/transfers/{transfer_id}", response_model=AuditFeedResponse)
async def transfer_trail(transfer_id: str) -> AuditFeedResponse:
    return AuditFeedResponse(entries=[_entry_response(entry) for entry in audit_log.for_transfer(transfer_id)])
