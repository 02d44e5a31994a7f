from .ledger import CancelReason, Provider, Subscriber, SettlementResult
from .money import MONEY_MAX, checked_add, checked_sub, checked_mul

__all__ = [
    "CancelReason",
    "Provider",
    "Subscriber",
    "SettlementResult",
    "MONEY_MAX",
    "checked_add",
    "checked_sub",
    "checked_mul",
]
