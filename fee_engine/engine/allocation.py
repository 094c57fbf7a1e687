"""
Waterfall allocation of a payment across selected fee heads.

Selection order is payment priority: the first selected head is paid first, up to its
balance, then the next, until the net amount or the heads run out.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from fee_engine.core.enums import FeeHeadKind, InvoiceSourceType
from fee_engine.core.exceptions import AllocationValidationError

from .attribution import ZERO
from .breakdown import FeeBreakdownLine, find_line
from .heads import FeeHeadId

LEDGER_ALLOCATION_DESCRIPTION = "Ledger Balance"


@dataclass(frozen=True)
class AllocationResult:
    net_amount: Decimal
    # Insertion order follows payment priority.
    allocations: Dict[FeeHeadId, Decimal] = field(default_factory=dict)
    unallocated: Decimal = ZERO

    @property
    def total_allocated(self) -> Decimal:
        return sum(self.allocations.values(), ZERO)


@dataclass(frozen=True)
class FeeAllocation:
    """One line of the invoice-plus-payment request."""

    fee_id: int
    amount: Decimal
    description: str
    source_type: Optional[InvoiceSourceType] = None
    source_id: Optional[int] = None


def dedupe_selection(selected: Sequence[FeeHeadId]) -> List[FeeHeadId]:
    """Keep each head at its first selected position."""
    seen = set()
    ordered: List[FeeHeadId] = []
    for head in selected:
        if head in seen:
            continue
        seen.add(head)
        ordered.append(head)
    return ordered


def validate_payment(amount_received: Decimal, discount: Decimal, selected: Sequence[FeeHeadId]) -> Decimal:
    """Return the net amount, or raise before anything is allocated."""
    if amount_received is None or amount_received <= 0:
        raise AllocationValidationError("Please enter a valid amount received")
    if discount is None:
        discount = ZERO
    if discount < 0:
        raise AllocationValidationError("Discount cannot be negative")
    if discount >= amount_received:
        raise AllocationValidationError("Discount cannot equal or exceed the amount received")
    if not selected:
        raise AllocationValidationError("Please select at least one fee head to pay")
    net_amount = amount_received - discount
    if net_amount <= 0:
        raise AllocationValidationError("Please enter an amount to pay")
    return net_amount


def waterfall(
    net_amount: Decimal,
    selected: Sequence[FeeHeadId],
    lines: List[FeeBreakdownLine],
) -> AllocationResult:
    """Allocate ``net_amount`` in selection order. Unselected or settled heads get nothing."""
    allocations: Dict[FeeHeadId, Decimal] = {}
    remaining = net_amount
    for head in dedupe_selection(selected):
        if remaining <= 0:
            break
        line = find_line(lines, head)
        if line is None or not line.is_payable:
            continue
        allocated = min(remaining, line.balance)
        allocations[head] = allocated
        remaining -= allocated
    return AllocationResult(net_amount=net_amount, allocations=allocations, unallocated=remaining)


def allocate_payment(
    amount_received: Decimal,
    discount: Decimal,
    selected: Sequence[FeeHeadId],
    lines: List[FeeBreakdownLine],
) -> AllocationResult:
    net_amount = validate_payment(amount_received, discount, selected)
    return waterfall(net_amount, selected, lines)


def default_selection(lines: List[FeeBreakdownLine]) -> Optional[FeeHeadId]:
    """First payable head in display order, or None when nothing is outstanding."""
    for line in lines:
        if line.is_payable:
            return line.head
    return None


def build_fee_allocations(result: AllocationResult, lines: List[FeeBreakdownLine]) -> List[FeeAllocation]:
    """
    Translate an allocation into invoice request lines.

    Transport is always tagged TRANSPORT with the route price id and ledger items are left
    untagged, so later attribution classifies the new invoice items without description text.
    """
    fee_allocations: List[FeeAllocation] = []
    for head, amount in result.allocations.items():
        if amount <= 0:
            continue
        line = find_line(lines, head)
        if line is None:
            continue
        if head.kind == FeeHeadKind.LEDGER:
            fee_allocations.append(
                FeeAllocation(
                    fee_id=head.selection_id,
                    amount=amount,
                    description=LEDGER_ALLOCATION_DESCRIPTION,
                )
            )
        elif head.kind == FeeHeadKind.TRANSPORT:
            fee_allocations.append(
                FeeAllocation(
                    fee_id=head.selection_id,
                    amount=amount,
                    description=line.fee_head,
                    source_type=InvoiceSourceType.TRANSPORT,
                    source_id=line.route_price_id,
                )
            )
        else:
            fee_allocations.append(
                FeeAllocation(
                    fee_id=head.selection_id,
                    amount=amount,
                    description=line.fee_head,
                    source_type=InvoiceSourceType.FEE,
                    source_id=head.fee_structure_id,
                )
            )
    return fee_allocations
