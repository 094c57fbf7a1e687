"""Fee registry schemas."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from fee_engine.core.enums import FeeHeadKind, InvoiceSourceType, PaymentMethod


# --- Breakdown ---
class FeeBreakdownLineSchema(BaseModel):
    """One row of the fee registry. ``selection_id`` is the id the UI uses to pick this head."""

    fee_head: str
    head_kind: FeeHeadKind
    fee_structure_id: int
    selection_id: int
    route_price_id: Optional[int] = None
    monthly_amounts: Dict[str, Decimal] = Field(default_factory=dict)
    total: Decimal
    received: Decimal
    balance: Decimal


class BreakdownTotalsSchema(BaseModel):
    monthly_totals: Dict[str, Decimal]
    grand_total: Decimal
    grand_received: Decimal
    grand_balance: Decimal


class FeeBreakdownResponse(BaseModel):
    student_id: int
    school_id: int
    academic_year_id: int
    as_of: date
    month_columns: List[str]
    lines: List[FeeBreakdownLineSchema]
    totals: BreakdownTotalsSchema


# --- Allocation ---
class PaymentAllocationRequest(BaseModel):
    amount_received: Decimal = Field(..., ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    selected_heads: List[int] = Field(..., description="Selection ids in priority order: 0 ledger, -1 transport, else fee structure id")
    lines: List[FeeBreakdownLineSchema]


class AllocationEntry(BaseModel):
    selection_id: int
    fee_head: str
    amount: Decimal


class PaymentAllocationResponse(BaseModel):
    net_amount: Decimal
    allocations: List[AllocationEntry]
    allocation: Dict[int, Decimal]
    total_allocated: Decimal
    unallocated: Decimal


class DefaultSelectionRequest(BaseModel):
    lines: List[FeeBreakdownLineSchema]


class DefaultSelectionResponse(BaseModel):
    selected_heads: List[int]


# --- Invoice payment request ---
class InvoicePaymentRequestCreate(PaymentAllocationRequest):
    school_id: int
    academic_year_id: int
    payment_method: PaymentMethod = PaymentMethod.cash
    payment_date: date
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class FeeAllocationItem(BaseModel):
    fee_id: int = Field(..., alias="feeId")
    amount: Decimal
    description: str
    source_type: Optional[InvoiceSourceType] = Field(None, alias="sourceType")
    source_id: Optional[int] = Field(None, alias="sourceId")

    class Config:
        populate_by_name = True


class InvoicePaymentRequest(BaseModel):
    """Body for the external invoice-plus-payment endpoint (camelCase on the wire)."""

    student_id: int = Field(..., alias="studentId")
    academic_year_id: int = Field(..., alias="academicYearId")
    school_id: int = Field(..., alias="schoolId")
    fee_allocations: List[FeeAllocationItem] = Field(..., alias="feeAllocations")
    total_amount: Decimal = Field(..., alias="totalAmount")
    discount: Decimal
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")
    payment_date: date = Field(..., alias="paymentDate")
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    notes: Optional[str] = None
    unallocated: Decimal

    class Config:
        populate_by_name = True
