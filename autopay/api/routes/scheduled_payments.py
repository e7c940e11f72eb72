"""Scheduled Payments — create, list, inspect, cancel and externally settle schedules.

Invariants:
    - Every route is scoped to the caller (X-Owner-Id); other owners' entries are 404
    - Creation never executes anything; the Ticker picks the entry up when it is due
    - DELETE and POST /cancel are the same operation (cancellation removes the entry)

Design Decisions:
    - /ready and /external-transfers are declared before /{payment_id} so they are not
      swallowed by the path parameter
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from autopay.api.dependencies import current_owner_id, schedule_service
from autopay.core.errors import ResourceNotFoundError
from autopay.schemas.schedule import (
    CancelResult, ExternalTransfer, ExternalTransferResult, ScheduleCreate,
    ScheduleResponse,
)
from autopay.services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/scheduled-payments", tags=["scheduled-payments"])


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_scheduled_payment(
    body: ScheduleCreate,
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    payment = await service.create_schedule(body.to_request(owner_id), body.to_decision())
    return ScheduleResponse.from_model(payment)


@router.get("", response_model=list[ScheduleResponse])
async def list_scheduled_payments(
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    return [ScheduleResponse.from_model(p) for p in await service.list_schedules(owner_id)]


@router.get("/ready", response_model=list[ScheduleResponse])
async def list_ready_payments(
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    """Caller's entries that are due now."""
    ready = await service.get_ready_payments(owner_id)
    return [ScheduleResponse.from_model(p) for p in ready]


@router.post("/external-transfers", response_model=ExternalTransferResult)
async def report_external_transfer(
    body: ExternalTransfer,
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    """Count a manual transfer against the matching active schedule, if any."""
    payment = await service.match_external_transfer(
        owner_id, body.to_address, body.amount, body.transaction_hash,
    )
    if payment is None:
        return ExternalTransferResult(matched=False)
    return ExternalTransferResult(matched=True, schedule=ScheduleResponse.from_model(payment))


@router.get("/{payment_id}", response_model=ScheduleResponse)
async def get_scheduled_payment(
    payment_id: UUID,
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    return ScheduleResponse.from_model(await service.get_schedule(owner_id, payment_id))


async def _cancel(service: ScheduleService, owner_id: UUID, payment_id: UUID) -> CancelResult:
    if not await service.cancel_schedule(owner_id, payment_id):
        raise ResourceNotFoundError("ScheduledPayment", str(payment_id))
    return CancelResult(cancelled=True, id=payment_id)


@router.delete("/{payment_id}", response_model=CancelResult)
async def delete_scheduled_payment(
    payment_id: UUID,
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    return await _cancel(service, owner_id, payment_id)


@router.post("/{payment_id}/cancel", response_model=CancelResult)
async def cancel_scheduled_payment(
    payment_id: UUID,
    owner_id: UUID = Depends(current_owner_id),
    service: ScheduleService = Depends(schedule_service),
):
    return await _cancel(service, owner_id, payment_id)
