"""Time-based fee accrual.

Only whole periods are billed. Settling advances the pairing clock by
exactly ``periods * period_length`` so the unbilled remainder carries
over to the next settlement and nothing drifts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..config import LedgerConfig
from ..models.ledger import SettlementResult
from ..models.money import checked_mul, checked_sub
from .state import LedgerState

logger = logging.getLogger(__name__)


class AccrualEngine:
    def __init__(self, cfg: Optional[LedgerConfig] = None):
        self.cfg = cfg or LedgerConfig()

    def periods_elapsed(self, last_settled: datetime, now: datetime) -> int:
        if now <= last_settled:
            return 0
        return (now - last_settled) // self.cfg.period_length

    def owed(self, st: LedgerState, provider_id: int, subscriber_id: int, now: datetime) -> int:
        provider = st.provider(provider_id)
        if provider.removed:
            return 0
        periods = self.periods_elapsed(st.pairings.last_settled(provider_id, subscriber_id), now)
        return checked_mul(periods, provider.fee, self.cfg.money_max)

    def settle(self, st: LedgerState, provider_id: int, subscriber_id: int, now: datetime) -> SettlementResult:
        """Debit the subscriber for whole elapsed periods.

        The caller credits ``earned`` to the provider and cancels the
        pairing when ``must_cancel`` is set.
        """
        provider = st.provider(provider_id)
        subscriber = st.subscriber(subscriber_id)

        if provider.removed:
            logger.debug("settle p=%s s=%s: provider removed", provider_id, subscriber_id)
            return SettlementResult(
                provider_id=provider_id,
                subscriber_id=subscriber_id,
                periods=0,
                owed=0,
                earned=0,
                provider_removed=True,
            )

        last = st.pairings.last_settled(provider_id, subscriber_id)
        periods = self.periods_elapsed(last, now)
        owed = checked_mul(periods, provider.fee, self.cfg.money_max)
        settled_at = last + self.cfg.period_length * periods
        st.pairings.set_last_settled(provider_id, subscriber_id, settled_at)

        if subscriber.balance < owed:
            earned = subscriber.balance
            subscriber.balance = 0
            exhausted = True
        else:
            subscriber.balance = checked_sub(subscriber.balance, owed, self.cfg.money_max)
            earned = owed
            exhausted = False

        logger.debug(
            "settle p=%s s=%s periods=%d owed=%d earned=%d exhausted=%s",
            provider_id, subscriber_id, periods, owed, earned, exhausted,
        )
        return SettlementResult(
            provider_id=provider_id,
            subscriber_id=subscriber_id,
            periods=periods,
            owed=owed,
            earned=earned,
            exhausted=exhausted,
            settled_at=settled_at,
        )

    def peek(self, st: LedgerState, provider_id: int, subscriber_id: int, now: datetime) -> int:
        """What ``settle`` would move right now, without touching any state."""
        owed = self.owed(st, provider_id, subscriber_id, now)
        return min(owed, st.subscriber(subscriber_id).balance)

