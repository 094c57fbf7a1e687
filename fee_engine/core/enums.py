from enum import Enum


class InvoiceSourceType(str, Enum):
    FEE = "FEE"
    TRANSPORT = "TRANSPORT"
    HOSTEL = "HOSTEL"
    FINE = "FINE"
    MISC = "MISC"


class FeeHeadKind(str, Enum):
    LEDGER = "LEDGER"
    TRANSPORT = "TRANSPORT"
    FEE_STRUCTURE = "FEE_STRUCTURE"


class ItemClassKind(str, Enum):
    LEDGER = "LEDGER"
    TRANSPORT = "TRANSPORT"
    FEE = "FEE"
    UNKNOWN = "UNKNOWN"


class PaymentMethod(str, Enum):
    cash = "cash"
    bank_transfer = "bank_transfer"
    card = "card"
    online = "online"
    cheque = "cheque"
