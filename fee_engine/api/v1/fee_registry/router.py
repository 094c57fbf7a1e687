"""Fee registry router: breakdown, allocation preview, default selection, invoice payment request."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from fee_engine.clients.fee_api import FeeApiClient, get_fee_api_client
from fee_engine.core.exceptions import ServiceError

from .schemas import (
    DefaultSelectionRequest,
    DefaultSelectionResponse,
    FeeBreakdownResponse,
    InvoicePaymentRequest,
    InvoicePaymentRequestCreate,
    PaymentAllocationRequest,
    PaymentAllocationResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-registry", tags=["fee-registry"])


# --- Breakdown ---
@router.get(
    "/students/{student_id}/breakdown",
    response_model=FeeBreakdownResponse,
)
async def get_fee_breakdown(
    student_id: int,
    school_id: int = Query(..., description="School the student belongs to"),
    academic_year_id: Optional[int] = Query(None, description="Defaults to the student's academic year"),
    as_of: Optional[date] = Query(None, description="Reference date; the schedule ends the month before it"),
    client: FeeApiClient = Depends(get_fee_api_client),
) -> FeeBreakdownResponse:
    try:
        return await service.compute_fee_breakdown(
            client,
            school_id,
            student_id,
            academic_year_id=academic_year_id,
            as_of=as_of,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Allocation ---
@router.post(
    "/allocations",
    response_model=PaymentAllocationResponse,
)
async def preview_allocation(payload: PaymentAllocationRequest) -> PaymentAllocationResponse:
    try:
        return service.compute_allocation(payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/default-selection",
    response_model=DefaultSelectionResponse,
)
async def get_default_selection(payload: DefaultSelectionRequest) -> DefaultSelectionResponse:
    try:
        return service.pick_default_selection(payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Invoice payment request ---
@router.post(
    "/students/{student_id}/invoice-payment-request",
    response_model=InvoicePaymentRequest,
    status_code=status.HTTP_200_OK,
)
async def build_invoice_payment_request(
    student_id: int,
    payload: InvoicePaymentRequestCreate,
) -> InvoicePaymentRequest:
    try:
        return service.build_invoice_payment_request(student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
