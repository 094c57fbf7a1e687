"""
Attribution of historical invoice payments to fee heads.

Invoices carry only an invoice-level paid amount. The share of it that applies to a fee
head is paid_amount * (matching item amounts / invoice total).
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import AbstractSet, Dict, Iterable, List, Optional

from fee_engine.clients.schemas import Invoice

from .heads import FeeHeadId, classify_invoice_item, item_pays_head

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def invoice_contribution(
    invoice: Invoice,
    head: FeeHeadId,
    fee_structure_ids: Optional[AbstractSet[int]] = None,
) -> Decimal:
    """
    Portion of one invoice's paid amount attributable to ``head``. Never raises.
    ``fee_structure_ids`` are the student's catalog ids, see ``classify_invoice_item``.
    """
    if invoice.paid_amount <= 0 or not invoice.items:
        return ZERO

    item_total = sum(
        (item.amount for item in invoice.items if item_pays_head(classify_invoice_item(item, fee_structure_ids), head)),
        ZERO,
    )
    if item_total == 0:
        return ZERO
    if invoice.total_amount <= 0:
        logger.warning(
            "Invoice %s has total %s with matching items; ignoring it for attribution",
            invoice.id,
            invoice.total_amount,
        )
        return ZERO

    # paid * (item_total / total), multiplied first so a full share returns paid exactly
    return invoice.paid_amount * item_total / invoice.total_amount


def received_for_head(
    head: FeeHeadId,
    invoices: Iterable[Invoice],
    fee_structure_ids: Optional[AbstractSet[int]] = None,
) -> Decimal:
    """Cumulative received amount for one head, rounded to cents."""
    received = sum((invoice_contribution(invoice, head, fee_structure_ids) for invoice in invoices), ZERO)
    return quantize_money(received)


def received_by_head(
    heads: Iterable[FeeHeadId],
    invoices: List[Invoice],
    fee_structure_ids: Optional[AbstractSet[int]] = None,
) -> Dict[FeeHeadId, Decimal]:
    return {head: received_for_head(head, invoices, fee_structure_ids) for head in heads}
