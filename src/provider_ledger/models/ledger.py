from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CancelReason(str, Enum):
    """Why a pairing stopped accruing."""
    PAUSED = "paused"
    EXHAUSTED = "exhausted"
    PROVIDER_REMOVED = "provider_removed"


@dataclass
class Provider:
    """A service provider billing a fixed fee per period.

    ``removed`` is terminal; the id is never reused. A removed provider
    keeps its ``active`` flag and its pairings until they are next
    settled.
    """
    id: int
    owner: str
    fee: int
    register_key: str = ""
    balance: int = 0
    subscriber_count: int = 0
    active: bool = True
    removed: bool = False


@dataclass
class Subscriber:
    """A prepaid account consumed by the providers it is paired with."""
    id: int
    owner: str
    balance: int
    plan: str
    paused: bool = False


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of settling one pairing.

    Attributes:
        provider_id / subscriber_id: The pairing settled
        periods: Whole periods billed
        owed: ``periods * fee`` before clamping to the subscriber balance
        earned: Amount actually moved from subscriber to provider
        exhausted: Subscriber balance could not cover ``owed``
        provider_removed: Provider was removed; nothing accrues any more
        settled_at: New ``last_settled`` of the pairing (None if cancelled)
    """
    provider_id: int
    subscriber_id: int
    periods: int
    owed: int
    earned: int
    exhausted: bool = False
    provider_removed: bool = False
    settled_at: Optional[datetime] = None

    @property
    def must_cancel(self) -> bool:
        return self.exhausted or self.provider_removed

    @property
    def cancel_reason(self) -> Optional[CancelReason]:
        if self.provider_removed:
            return CancelReason.PROVIDER_REMOVED
        if self.exhausted:
            return CancelReason.EXHAUSTED
        return None
