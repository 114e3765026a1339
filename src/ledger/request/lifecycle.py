"""Material request lifecycle — intake, approval, rejection and manual receipt.

Request mutations hold the request-set key of the request's (site, item) so
they serialize with allocation runs over the same requests. Manually
receiving an ordered request also holds the stock key, because the request's
quantity is booked into the site's record in the same unit of work.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ledger.audit import log as audit_log
from ledger.audit.entry import AuditKind
from ledger.concurrency import run_atomic
from ledger.domain import ledger
from ledger.errors import InvalidCost, RequestNotFound
from ledger.quantities import ZERO, to_decimal
from ledger.request.material_request import MaterialRequest, RequestPriority
from ledger.sites.registry import require_active_site
from ledger.stock.identity import ItemIdentity, request_lock_key, stock_lock_key
from ledger.stock.record import Movement
from ledger.stock.store import InventoryStore

logger = structlog.get_logger(__name__)


@ledger.command(part_of="MaterialRequest")
class RaiseMaterialRequest:
    """Ask for material at a site, optionally on behalf of a task."""

    site_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    unit = String(required=True, max_length=50)
    quantity = Float(required=True)
    requested_by = String(required=True, max_length=255)
    task_id = Identifier()
    priority = String(max_length=20)
    estimated_cost = Float()


@ledger.command(part_of="MaterialRequest")
class ApproveMaterialRequest:
    request_id = Identifier(required=True)
    approved_by = String(required=True, max_length=255)


@ledger.command(part_of="MaterialRequest")
class RejectMaterialRequest:
    request_id = Identifier(required=True)
    rejected_by = String(required=True, max_length=255)
    reason = Text()


@ledger.command(part_of="MaterialRequest")
class ReceiveMaterialRequest:
    """Book an ordered request's quantity into stock by hand."""

    request_id = Identifier(required=True)
    received_by = String(required=True, max_length=255)
    unit_cost = Float(default=0.0)


def find_request(request_id) -> MaterialRequest:
    try:
        return current_domain.repository_for(MaterialRequest).get(str(request_id))
    except ObjectNotFoundError as exc:
        raise RequestNotFound(request_id) from exc


def _describe(request):
    return f"{request.quantity:g} {request.unit} of {request.item_name}"


@ledger.command_handler(part_of=MaterialRequest)
class MaterialRequestLifecycleHandler:
    @handle(RaiseMaterialRequest)
    def raise_material_request(self, command):
        require_active_site(command.site_id)
        request = MaterialRequest.create(
            site_id=command.site_id,
            identity=ItemIdentity.of(command.item_name, command.unit),
            quantity=command.quantity,
            requested_by=command.requested_by,
            task_id=command.task_id,
            priority=command.priority or RequestPriority.NORMAL.value,
            estimated_cost=command.estimated_cost,
        )
        current_domain.repository_for(MaterialRequest).add(request)

        audit_log.append(
            AuditKind.REQUEST_RAISED,
            site_id=request.site_id,
            actor=command.requested_by,
            description=f"Requested {_describe(request)}",
            item_name=request.item_name,
            unit=request.unit,
            item_key=request.item_key,
            request_id=request.id,
            task_id=request.task_id,
        )
        return str(request.id)

    @handle(ApproveMaterialRequest)
    def approve_material_request(self, command):
        repo = current_domain.repository_for(MaterialRequest)
        request = find_request(command.request_id)
        request.approve(command.approved_by)
        repo.add(request)

        audit_log.append(
            AuditKind.REQUEST_APPROVED,
            site_id=request.site_id,
            actor=command.approved_by,
            description=f"Approved order of {_describe(request)}",
            item_name=request.item_name,
            unit=request.unit,
            item_key=request.item_key,
            request_id=request.id,
            task_id=request.task_id,
        )

    @handle(RejectMaterialRequest)
    def reject_material_request(self, command):
        repo = current_domain.repository_for(MaterialRequest)
        request = find_request(command.request_id)
        request.reject(command.rejected_by, reason=command.reason)
        repo.add(request)

        description = f"Rejected request for {_describe(request)}"
        if command.reason:
            description += f": {command.reason}"
        audit_log.append(
            AuditKind.REQUEST_REJECTED,
            site_id=request.site_id,
            actor=command.rejected_by,
            description=description,
            item_name=request.item_name,
            unit=request.unit,
            item_key=request.item_key,
            request_id=request.id,
            task_id=request.task_id,
        )

    @handle(ReceiveMaterialRequest)
    def receive_material_request(self, command):
        unit_cost = command.unit_cost or 0.0
        if to_decimal(unit_cost) < ZERO:
            raise InvalidCost()

        repo = current_domain.repository_for(MaterialRequest)
        request = find_request(command.request_id)
        request.receive(command.received_by)
        require_active_site(request.site_id)

        store = InventoryStore()
        record = store.apply_delta(
            request.site_id,
            request.identity,
            request.quantity,
            cost_hint=unit_cost,
            movement=Movement.REQUEST_RECEIPT,
        )
        store.save(record)
        repo.add(request)

        audit_log.append(
            AuditKind.REQUEST_RECEIVED,
            site_id=request.site_id,
            actor=command.received_by,
            description=f"Received {_describe(request)} against request",
            item_name=record.item_name,
            unit=record.unit,
            item_key=record.item_key,
            quantity_delta=request.quantity,
            unit_cost=unit_cost,
            request_id=request.id,
            task_id=request.task_id,
        )


def raise_request(
    site_id,
    item_name,
    unit,
    quantity,
    requested_by,
    task_id=None,
    priority=RequestPriority.NORMAL.value,
    estimated_cost=None,
) -> MaterialRequest:
    identity = ItemIdentity.of(item_name, unit)

    def _raise():
        request_id = current_domain.process(
            RaiseMaterialRequest(
                site_id=site_id,
                item_name=identity.name,
                unit=identity.unit,
                quantity=quantity,
                requested_by=requested_by,
                task_id=task_id,
                priority=priority,
                estimated_cost=estimated_cost,
            ),
            asynchronous=False,
        )
        return find_request(request_id)

    request = run_atomic([request_lock_key(site_id, identity)], _raise)
    logger.info(
        "Material request raised",
        request_id=str(request.id),
        site_id=str(site_id),
        item_key=identity.key,
        quantity=quantity,
        task_id=task_id,
    )
    return request


def _transition(request_id, command, extra_keys=()):
    request = find_request(request_id)
    keys = [request.lock_key, *extra_keys]

    def _run():
        current_domain.process(command, asynchronous=False)
        return find_request(request_id)

    return run_atomic(keys, _run)


def approve(request_id, approved_by) -> MaterialRequest:
    return _transition(request_id, ApproveMaterialRequest(request_id=request_id, approved_by=approved_by))


def reject(request_id, rejected_by, reason=None) -> MaterialRequest:
    return _transition(
        request_id,
        RejectMaterialRequest(request_id=request_id, rejected_by=rejected_by, reason=reason),
    )


def receive_request(request_id, received_by, unit_cost=0.0) -> MaterialRequest:
    """Manually reconcile an ordered request: stock goes up, request becomes ``received``."""
    if unit_cost is not None and to_decimal(unit_cost) < ZERO:
        raise InvalidCost()
    request = find_request(request_id)
    return _transition(
        request_id,
        ReceiveMaterialRequest(request_id=request_id, received_by=received_by, unit_cost=unit_cost or 0.0),
        extra_keys=[stock_lock_key(request.site_id, request.identity)],
    )
