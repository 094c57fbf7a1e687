"""
Fee-head identity and invoice-item classification.

A fee head is one of: the opening ledger balance, the transport fee, or a stored fee
structure. The UI selects heads with integers (ledger 0, transport -1, fee structure id);
that encoding is only used at the API boundary via ``from_selection`` / ``selection_id``.
"""

from dataclasses import dataclass
from typing import AbstractSet, Optional

from fee_engine.clients.schemas import InvoiceItem
from fee_engine.core.enums import FeeHeadKind, InvoiceSourceType, ItemClassKind

LEDGER_SELECTION_ID = 0
TRANSPORT_SELECTION_ID = -1

LEDGER_DESCRIPTION_MARKERS = ("ledger balance",)
TRANSPORT_DESCRIPTION_MARKERS = ("transport", "bus")


@dataclass(frozen=True)
class FeeHeadId:
    kind: FeeHeadKind
    fee_structure_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind == FeeHeadKind.FEE_STRUCTURE:
            if self.fee_structure_id is None or self.fee_structure_id <= 0:
                raise ValueError("Fee structure heads need a positive fee_structure_id")
        elif self.fee_structure_id is not None:
            raise ValueError(f"{self.kind.value} heads do not carry a fee_structure_id")

    @classmethod
    def ledger(cls) -> "FeeHeadId":
        return cls(FeeHeadKind.LEDGER)

    @classmethod
    def transport(cls) -> "FeeHeadId":
        return cls(FeeHeadKind.TRANSPORT)

    @classmethod
    def fee_structure(cls, fee_structure_id: int) -> "FeeHeadId":
        return cls(FeeHeadKind.FEE_STRUCTURE, fee_structure_id)

    @classmethod
    def from_selection(cls, value: int) -> "FeeHeadId":
        """Decode a UI selection id. Raises ValueError for ids below -1."""
        if value == LEDGER_SELECTION_ID:
            return cls.ledger()
        if value == TRANSPORT_SELECTION_ID:
            return cls.transport()
        if value > 0:
            return cls.fee_structure(value)
        raise ValueError(f"Invalid fee head selection id: {value}")

    @property
    def selection_id(self) -> int:
        if self.kind == FeeHeadKind.LEDGER:
            return LEDGER_SELECTION_ID
        if self.kind == FeeHeadKind.TRANSPORT:
            return TRANSPORT_SELECTION_ID
        return self.fee_structure_id  # type: ignore[return-value]

    @property
    def breakdown_fee_structure_id(self) -> int:
        """Id shown on breakdown rows: 0 for both synthetic heads."""
        return self.fee_structure_id if self.kind == FeeHeadKind.FEE_STRUCTURE else 0


@dataclass(frozen=True)
class ItemClass:
    kind: ItemClassKind
    source_id: Optional[int] = None


def _description_has(description: str, markers) -> bool:
    return any(marker in description for marker in markers)


def classify_invoice_item(
    item: InvoiceItem,
    fee_structure_ids: Optional[AbstractSet[int]] = None,
) -> ItemClass:
    """
    Decide which fee head an invoice item pays for.

    Order: TRANSPORT tag, FEE tag with a real id, "ledger balance" text,
    transport/bus text, untagged item (ledger), otherwise UNKNOWN.

    When ``fee_structure_ids`` is given, a FEE-tagged item whose id is not one of them
    but whose description names transport or a bus counts toward transport. Older
    invoices recorded transport payments that way.
    """
    source_type = (item.source_type or "").strip().upper()
    description = (item.description or "").lower()

    if source_type == InvoiceSourceType.TRANSPORT.value:
        return ItemClass(ItemClassKind.TRANSPORT, item.source_id)
    if source_type == InvoiceSourceType.FEE.value and item.source_id:
        if (
            fee_structure_ids is not None
            and item.source_id not in fee_structure_ids
            and _description_has(description, TRANSPORT_DESCRIPTION_MARKERS)
        ):
            return ItemClass(ItemClassKind.TRANSPORT, item.source_id)
        return ItemClass(ItemClassKind.FEE, item.source_id)
    if _description_has(description, LEDGER_DESCRIPTION_MARKERS):
        return ItemClass(ItemClassKind.LEDGER)
    if _description_has(description, TRANSPORT_DESCRIPTION_MARKERS):
        return ItemClass(ItemClassKind.TRANSPORT, item.source_id)
    if not source_type and not item.source_id:
        return ItemClass(ItemClassKind.LEDGER)
    return ItemClass(ItemClassKind.UNKNOWN, item.source_id)


def item_pays_head(item_class: ItemClass, head: FeeHeadId) -> bool:
    if head.kind == FeeHeadKind.LEDGER:
        return item_class.kind == ItemClassKind.LEDGER
    if head.kind == FeeHeadKind.TRANSPORT:
        return item_class.kind == ItemClassKind.TRANSPORT
    return item_class.kind == ItemClassKind.FEE and item_class.source_id == head.fee_structure_id
