from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass
class TimeController:
    """Clock the ledger reads ``now`` from; freeze it for deterministic billing."""
    tz: timezone = timezone.utc
    _frozen_now: Optional[datetime] = None

    def now(self) -> datetime:
        if self._frozen_now is not None:
            return self._frozen_now
        return datetime.now(self.tz)

    def freeze_at(self, dt: datetime) -> None:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=self.tz)
        self._frozen_now = dt.astimezone(self.tz)

    def advance(self, delta: timedelta) -> None:
        if self._frozen_now is None:
            # Freeze at current real time first
            self._frozen_now = datetime.now(self.tz)
        self._frozen_now = self._frozen_now + delta
