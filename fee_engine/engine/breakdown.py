"""
Fee breakdown assembly.

Pure and synchronous: everything it needs is already fetched into a ``BreakdownSnapshot``.
Line order is fixed: opening ledger balance, fee structures in catalog order, transport.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional

from fee_engine.clients.schemas import Invoice
from fee_engine.core.exceptions import FeePlanNotConfiguredError

from .attribution import ZERO, received_for_head
from .catalog import FeeCatalog
from .heads import FeeHeadId
from .schedule import build_monthly_amounts, build_months

logger = logging.getLogger(__name__)

LEDGER_OUTSTANDING_LABEL = "Ledger Balance (Outstanding)"
LEDGER_CREDIT_LABEL = "Ledger Balance (Credit)"
TRANSPORT_LABEL = "Transport Fee"


@dataclass(frozen=True)
class FeeBreakdownLine:
    fee_head: str
    head: FeeHeadId
    monthly_amounts: Dict[str, Decimal]
    total: Decimal
    received: Decimal
    balance: Decimal
    route_price_id: Optional[int] = None

    @property
    def fee_structure_id(self) -> int:
        return self.head.breakdown_fee_structure_id

    @property
    def is_payable(self) -> bool:
        return self.balance > 0


@dataclass(frozen=True)
class BreakdownSnapshot:
    """Everything fetched for one student, frozen for recomputation."""

    academic_year_start: date
    today: date
    catalog: FeeCatalog
    invoices: List[Invoice] = field(default_factory=list)
    opening_balance: Optional[Decimal] = None
    class_label: str = ""
    category_label: str = ""


@dataclass(frozen=True)
class BreakdownTotals:
    monthly_totals: Dict[str, Decimal]
    grand_total: Decimal
    grand_received: Decimal
    grand_balance: Decimal


def clamped_balance(total: Decimal, received: Decimal) -> Decimal:
    balance = total - received
    return balance if balance > 0 else ZERO


def _ledger_line(
    opening_balance: Decimal,
    invoices: List[Invoice],
    fee_structure_ids: FrozenSet[int],
) -> FeeBreakdownLine:
    head = FeeHeadId.ledger()
    received = received_for_head(head, invoices, fee_structure_ids)
    return FeeBreakdownLine(
        fee_head=LEDGER_OUTSTANDING_LABEL if opening_balance > 0 else LEDGER_CREDIT_LABEL,
        head=head,
        monthly_amounts={},
        total=opening_balance,
        received=received,
        # A negative ledger balance is a credit and stays visible.
        balance=opening_balance - received,
    )


def assemble_breakdown(snapshot: BreakdownSnapshot) -> List[FeeBreakdownLine]:
    if not snapshot.catalog.fee_structures:
        raise FeePlanNotConfiguredError(snapshot.class_label, snapshot.category_label)

    months = build_months(snapshot.academic_year_start, snapshot.today)
    fee_structure_ids = snapshot.catalog.fee_structure_ids
    lines: List[FeeBreakdownLine] = []

    if snapshot.opening_balance is not None and snapshot.opening_balance != 0:
        lines.append(_ledger_line(snapshot.opening_balance, snapshot.invoices, fee_structure_ids))

    for resolved in snapshot.catalog.fee_structures:
        fs = resolved.fee_structure
        head = FeeHeadId.fee_structure(fs.id)
        monthly, total = build_monthly_amounts(months, fs.amount, resolved.applicable_months)
        received = received_for_head(head, snapshot.invoices, fee_structure_ids)
        lines.append(
            FeeBreakdownLine(
                fee_head=fs.name,
                head=head,
                monthly_amounts=monthly,
                total=total,
                received=received,
                balance=clamped_balance(total, received),
            )
        )

    transport = snapshot.catalog.transport
    if transport is not None:
        head = FeeHeadId.transport()
        monthly, total = build_monthly_amounts(months, transport.route_price.amount, transport.applicable_months)
        received = received_for_head(head, snapshot.invoices, fee_structure_ids)
        lines.append(
            FeeBreakdownLine(
                fee_head=TRANSPORT_LABEL,
                head=head,
                monthly_amounts=monthly,
                total=total,
                received=received,
                balance=clamped_balance(total, received),
                route_price_id=transport.route_price.id,
            )
        )

    logger.debug(
        "Assembled %d breakdown line(s) over %d month(s) from %d invoice(s)",
        len(lines),
        len(months),
        len(snapshot.invoices),
    )
    return lines


def month_columns(academic_year_start: date, today: date) -> List[str]:
    return [bucket.label for bucket in build_months(academic_year_start, today)]


def breakdown_totals(lines: List[FeeBreakdownLine], columns: List[str]) -> BreakdownTotals:
    """Footer row: per-month totals and grand total/received/balance."""
    monthly_totals: Dict[str, Decimal] = {label: ZERO for label in columns}
    grand_total = ZERO
    grand_received = ZERO
    grand_balance = ZERO
    for line in lines:
        grand_total += line.total
        grand_received += line.received
        grand_balance += line.balance
        for label in columns:
            monthly_totals[label] += line.monthly_amounts.get(label, ZERO)
    return BreakdownTotals(
        monthly_totals=monthly_totals,
        grand_total=grand_total,
        grand_received=grand_received,
        grand_balance=grand_balance,
    )


def find_line(lines: List[FeeBreakdownLine], head: FeeHeadId) -> Optional[FeeBreakdownLine]:
    for line in lines:
        if line.head == head:
            return line
    return None

