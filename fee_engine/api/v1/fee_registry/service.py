"""Fee registry service: student breakdown, payment allocation, invoice payment request."""

import logging
from datetime import date
from typing import List, Optional

from fee_engine.clients.fee_api import FeeApiClient
from fee_engine.clients.schemas import Invoice, Student
from fee_engine.core.exceptions import AllocationValidationError, PreconditionError, UpstreamError
from fee_engine.engine.allocation import (
    AllocationResult,
    allocate_payment,
    build_fee_allocations,
    default_selection,
)
from fee_engine.engine.breakdown import (
    BreakdownSnapshot,
    FeeBreakdownLine,
    assemble_breakdown,
    breakdown_totals,
    find_line,
    month_columns,
)
from fee_engine.engine.catalog import FeeCatalogResolver, gather_settled
from fee_engine.engine.heads import FeeHeadId

from .schemas import (
    AllocationEntry,
    BreakdownTotalsSchema,
    DefaultSelectionRequest,
    DefaultSelectionResponse,
    FeeAllocationItem,
    FeeBreakdownLineSchema,
    FeeBreakdownResponse,
    InvoicePaymentRequest,
    InvoicePaymentRequestCreate,
    PaymentAllocationRequest,
    PaymentAllocationResponse,
)

logger = logging.getLogger(__name__)


# --- Conversions ---
def _line_to_schema(line: FeeBreakdownLine) -> FeeBreakdownLineSchema:
    return FeeBreakdownLineSchema(
        fee_head=line.fee_head,
        head_kind=line.head.kind,
        fee_structure_id=line.fee_structure_id,
        selection_id=line.head.selection_id,
        route_price_id=line.route_price_id,
        monthly_amounts=dict(line.monthly_amounts),
        total=line.total,
        received=line.received,
        balance=line.balance,
    )


def _decode_head(selection_id: int) -> FeeHeadId:
    try:
        return FeeHeadId.from_selection(selection_id)
    except ValueError as e:
        raise AllocationValidationError(str(e))


def _schema_to_line(item: FeeBreakdownLineSchema) -> FeeBreakdownLine:
    return FeeBreakdownLine(
        fee_head=item.fee_head,
        head=_decode_head(item.selection_id),
        monthly_amounts=dict(item.monthly_amounts),
        total=item.total,
        received=item.received,
        balance=item.balance,
        route_price_id=item.route_price_id,
    )


# --- Breakdown ---
def check_preconditions(student: Student, academic_year_id: Optional[int]) -> None:
    """Raise PreconditionError naming every assignment the student record lacks."""
    missing: List[str] = []
    if student.class_id is None:
        missing.append("class")
    if student.category_head_id is None:
        missing.append("category head")
    if student.route_id is None:
        missing.append("route")
    if academic_year_id is None:
        missing.append("academic year")
    if missing:
        raise PreconditionError(missing)


async def _fetch_invoices(client: FeeApiClient, student_id: int, school_id: int) -> List[Invoice]:
    try:
        return await client.list_invoices(student_id, school_id)
    except UpstreamError as e:
        # Without history every head shows its full amount as outstanding.
        logger.warning("Invoice history unavailable for student %s, continuing without it: %s", student_id, e.message)
        return []


async def compute_fee_breakdown(
    client: FeeApiClient,
    school_id: int,
    student_id: int,
    academic_year_id: Optional[int] = None,
    as_of: Optional[date] = None,
) -> FeeBreakdownResponse:
    today = as_of or date.today()
    student = await client.get_student(student_id, school_id)
    effective_year_id = academic_year_id or student.academic_year_id
    check_preconditions(student, effective_year_id)

    academic_year = await client.get_academic_year(effective_year_id)

    resolver = FeeCatalogResolver(client)
    catalog, invoices = await gather_settled(
        resolver.resolve(school_id, student.class_id, student.category_head_id, student.route_id),
        _fetch_invoices(client, student_id, school_id),
    )

    snapshot = BreakdownSnapshot(
        academic_year_start=academic_year.start_date,
        today=today,
        catalog=catalog,
        invoices=invoices,
        opening_balance=student.opening_balance,
        class_label=student.class_label,
        category_label=student.category_label,
    )
    lines = assemble_breakdown(snapshot)
    columns = month_columns(snapshot.academic_year_start, today)
    totals = breakdown_totals(lines, columns)

    return FeeBreakdownResponse(
        student_id=student_id,
        school_id=school_id,
        academic_year_id=effective_year_id,
        as_of=today,
        month_columns=columns,
        lines=[_line_to_schema(line) for line in lines],
        totals=BreakdownTotalsSchema(
            monthly_totals=totals.monthly_totals,
            grand_total=totals.grand_total,
            grand_received=totals.grand_received,
            grand_balance=totals.grand_balance,
        ),
    )


# --- Allocation ---
def _allocate(payload: PaymentAllocationRequest) -> tuple[AllocationResult, List[FeeBreakdownLine]]:
    lines = [_schema_to_line(item) for item in payload.lines]
    selected = [_decode_head(value) for value in payload.selected_heads]
    result = allocate_payment(payload.amount_received, payload.discount, selected, lines)
    return result, lines


def compute_allocation(payload: PaymentAllocationRequest) -> PaymentAllocationResponse:
    result, lines = _allocate(payload)
    entries = [
        AllocationEntry(
            selection_id=head.selection_id,
            fee_head=find_line(lines, head).fee_head,
            amount=amount,
        )
        for head, amount in result.allocations.items()
    ]
    return PaymentAllocationResponse(
        net_amount=result.net_amount,
        allocations=entries,
        allocation={e.selection_id: e.amount for e in entries},
        total_allocated=result.total_allocated,
        unallocated=result.unallocated,
    )


def pick_default_selection(payload: DefaultSelectionRequest) -> DefaultSelectionResponse:
    lines = [_schema_to_line(item) for item in payload.lines]
    head = default_selection(lines)
    if head is None:
        raise AllocationValidationError("No outstanding fees to pay. All fees appear to be fully paid.")
    return DefaultSelectionResponse(selected_heads=[head.selection_id])


def build_invoice_payment_request(
    student_id: int,
    payload: InvoicePaymentRequestCreate,
) -> InvoicePaymentRequest:
    """Body for the external invoice-plus-payment endpoint. Nothing is posted from here."""
    result, lines = _allocate(payload)
    fee_allocations = build_fee_allocations(result, lines)
    if not fee_allocations:
        raise AllocationValidationError("No valid fees selected for payment")

    return InvoicePaymentRequest(
        student_id=student_id,
        academic_year_id=payload.academic_year_id,
        school_id=payload.school_id,
        fee_allocations=[
            FeeAllocationItem(
                fee_id=fa.fee_id,
                amount=fa.amount,
                description=fa.description,
                source_type=fa.source_type,
                source_id=fa.source_id,
            )
            for fa in fee_allocations
        ],
        total_amount=result.net_amount,
        discount=payload.discount,
        payment_method=payload.payment_method,
        payment_date=payload.payment_date,
        transaction_id=payload.transaction_id,
        notes=payload.notes,
        unallocated=result.unallocated,
    )
