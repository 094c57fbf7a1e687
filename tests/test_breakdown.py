"""Unit tests for breakdown assembly over an already-fetched snapshot."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

import pytest

from fee_engine.clients.schemas import FeeStructure, Invoice, RoutePrice
from fee_engine.core.enums import FeeHeadKind
from fee_engine.core.exceptions import FeePlanNotConfiguredError
from fee_engine.engine.breakdown import (
    BreakdownSnapshot,
    assemble_breakdown,
    breakdown_totals,
    month_columns,
)
from fee_engine.engine.catalog import FeeCatalog, ResolvedFeeStructure, ResolvedTransport
from fee_engine.engine.heads import FeeHeadId

START = date(2024, 4, 1)
TODAY = date(2024, 7, 15)


def _fee(fee_id: int, name: str, amount: str, months=frozenset(range(1, 13))) -> ResolvedFeeStructure:
    return ResolvedFeeStructure(
        FeeStructure(id=fee_id, name=name, amount=Decimal(amount), feeCategoryId=None),
        frozenset(months),
    )


def _transport(amount: str = "400", months=frozenset(range(1, 13))) -> ResolvedTransport:
    return ResolvedTransport(
        RoutePrice(id=56, routeId=7, classId=10, categoryHeadId=3, amount=Decimal(amount)),
        frozenset(months),
    )


def _invoice(invoice_id: int, total: str, paid: str, items: list) -> Invoice:
    return Invoice.model_validate({"id": invoice_id, "totalAmount": total, "paidAmount": paid, "items": items})


def _snapshot(
    fees: List[ResolvedFeeStructure],
    transport: Optional[ResolvedTransport] = None,
    invoices: Optional[List[Invoice]] = None,
    opening_balance: Optional[str] = None,
) -> BreakdownSnapshot:
    return BreakdownSnapshot(
        academic_year_start=START,
        today=TODAY,
        catalog=FeeCatalog(fee_structures=fees, transport=transport),
        invoices=invoices or [],
        opening_balance=Decimal(opening_balance) if opening_balance is not None else None,
        class_label="Class 5",
        category_label="General",
    )


def test_single_fee_half_paid_scenario() -> None:
    """500 x 3 months = 1500; invoice of 1500 half paid leaves 750 outstanding."""
    invoice = _invoice(1, "1500", "750", [{"description": "Tuition", "amount": "1500", "sourceType": "FEE", "sourceId": 101}])
    lines = assemble_breakdown(_snapshot([_fee(101, "Tuition Fee", "500")], invoices=[invoice]))
    assert len(lines) == 1
    line = lines[0]
    assert line.fee_head == "Tuition Fee"
    assert line.fee_structure_id == 101
    assert line.monthly_amounts == {"Apr 24": Decimal("500"), "May 24": Decimal("500"), "Jun 24": Decimal("500")}
    assert line.total == Decimal("1500")
    assert line.received == Decimal("750.00")
    assert line.balance == Decimal("750.00")


def test_line_order_is_ledger_fees_transport() -> None:
    lines = assemble_breakdown(
        _snapshot(
            [_fee(101, "Tuition Fee", "500"), _fee(102, "Exam Fee", "200", {6})],
            transport=_transport(),
            opening_balance="300",
        )
    )
    assert [line.fee_head for line in lines] == [
        "Ledger Balance (Outstanding)",
        "Tuition Fee",
        "Exam Fee",
        "Transport Fee",
    ]
    assert [line.head.kind for line in lines] == [
        FeeHeadKind.LEDGER,
        FeeHeadKind.FEE_STRUCTURE,
        FeeHeadKind.FEE_STRUCTURE,
        FeeHeadKind.TRANSPORT,
    ]
    assert lines[0].fee_structure_id == 0
    assert lines[-1].fee_structure_id == 0
    assert lines[-1].route_price_id == 56
    assert lines[-1].total == Decimal("1200")


def test_zero_opening_balance_has_no_ledger_line() -> None:
    lines = assemble_breakdown(_snapshot([_fee(101, "Tuition Fee", "500")], opening_balance="0"))
    assert all(line.head != FeeHeadId.ledger() for line in lines)


def test_credit_ledger_balance_is_not_clamped() -> None:
    lines = assemble_breakdown(_snapshot([_fee(101, "Tuition Fee", "500")], opening_balance="-250"))
    ledger = lines[0]
    assert ledger.fee_head == "Ledger Balance (Credit)"
    assert ledger.total == Decimal("-250")
    assert ledger.balance == Decimal("-250.00")
    assert not ledger.is_payable


def test_ledger_received_comes_from_invoice_history() -> None:
    invoice = _invoice(1, "400", "400", [{"description": "Ledger Balance", "amount": "400"}])
    lines = assemble_breakdown(_snapshot([_fee(101, "Tuition Fee", "500")], invoices=[invoice], opening_balance="300"))
    ledger = lines[0]
    assert ledger.received == Decimal("400.00")
    # Overpaid ledger shows as a negative balance rather than zero.
    assert ledger.balance == Decimal("-100.00")


def test_overpaid_fee_balance_is_clamped_to_zero() -> None:
    invoice = _invoice(1, "2000", "2000", [{"description": "Tuition", "amount": "2000", "sourceType": "FEE", "sourceId": 101}])
    lines = assemble_breakdown(_snapshot([_fee(101, "Tuition Fee", "500")], invoices=[invoice]))
    assert lines[0].received == Decimal("2000.00")
    assert lines[0].balance == Decimal("0")


def test_non_ledger_balance_never_negative() -> None:
    invoices = [
        _invoice(1, "1000", "700", [
            {"description": "Tuition", "amount": "600", "sourceType": "FEE", "sourceId": 101},
            {"description": "Transport", "amount": "400", "sourceType": "TRANSPORT", "sourceId": 56},
        ]),
        _invoice(2, "900", "900", [{"description": "Exam", "amount": "900", "sourceType": "FEE", "sourceId": 102}]),
    ]
    lines = assemble_breakdown(
        _snapshot(
            [_fee(101, "Tuition Fee", "500"), _fee(102, "Exam Fee", "200", {6})],
            transport=_transport("100"),
            invoices=invoices,
            opening_balance="50",
        )
    )
    for line in lines:
        if line.head.kind == FeeHeadKind.LEDGER:
            continue
        assert line.balance == max(Decimal("0"), line.total - line.received)


def test_empty_catalog_is_a_configuration_error() -> None:
    with pytest.raises(FeePlanNotConfiguredError) as exc:
        assemble_breakdown(_snapshot([], transport=_transport(), opening_balance="300"))
    assert "Class 5" in exc.value.message
    assert "General" in exc.value.message
    assert exc.value.status_code == 422


def test_year_not_started_gives_zero_totals() -> None:
    snapshot = BreakdownSnapshot(
        academic_year_start=date(2024, 8, 1),
        today=TODAY,
        catalog=FeeCatalog(fee_structures=[_fee(101, "Tuition Fee", "500")], transport=_transport()),
    )
    lines = assemble_breakdown(snapshot)
    assert [line.total for line in lines] == [Decimal("0"), Decimal("0")]
    assert all(line.monthly_amounts == {} for line in lines)


def test_assembly_is_idempotent() -> None:
    invoice = _invoice(1, "1500", "750", [{"description": "Tuition", "amount": "1500", "sourceType": "FEE", "sourceId": 101}])
    snapshot = _snapshot([_fee(101, "Tuition Fee", "500")], transport=_transport(), invoices=[invoice], opening_balance="120")
    assert assemble_breakdown(snapshot) == assemble_breakdown(snapshot)
    assert repr(assemble_breakdown(snapshot)) == repr(assemble_breakdown(snapshot))


def test_totals_sum_columns_and_lines() -> None:
    lines = assemble_breakdown(
        _snapshot(
            [_fee(101, "Tuition Fee", "500"), _fee(102, "Exam Fee", "200", {6})],
            transport=_transport("400", {5, 6}),
            opening_balance="300",
        )
    )
    columns = month_columns(START, TODAY)
    totals = breakdown_totals(lines, columns)
    assert totals.monthly_totals == {
        "Apr 24": Decimal("500"),
        "May 24": Decimal("900"),
        "Jun 24": Decimal("1100"),
    }
    assert totals.grand_total == Decimal("2800")
    assert totals.grand_received == Decimal("0")
    assert totals.grand_balance == Decimal("2800")


def test_fee_tagged_transport_payment_reduces_transport_balance() -> None:
    """Transport paid on a FEE item whose id is not a catalog fee structure."""
    invoice = _invoice(
        1,
        "400",
        "400",
        [{"description": "Transport Fee - Route 7", "amount": "400", "sourceType": "FEE", "sourceId": 205}],
    )
    lines = assemble_breakdown(_snapshot([_fee(101, "Tuition Fee", "500")], transport=_transport(), invoices=[invoice]))
    tuition, transport = lines
    assert tuition.received == Decimal("0.00")
    assert transport.total == Decimal("1200")
    assert transport.received == Decimal("400.00")
    assert transport.balance == Decimal("800.00")
