"""Ledger configuration.

Defaults: weekly billing periods, a 250 gwei minimum fee and an 8 period
minimum deposit.

Configs can also be loaded from JSON:

    {
        "period_length": 604800,
        "min_fee": 250000000000,
        "min_deposit_periods": 8
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Union

from .exceptions import ValidationError


@dataclass
class LedgerConfig:
    """Tunable constants of the accounting engine."""
    period_length: timedelta = timedelta(days=7)
    min_fee: int = 250_000_000_000  # 250 gwei
    min_deposit_periods: int = 8

    # Providers a subscriber must pick at registration (inclusive)
    min_providers_per_subscriber: int = 3
    max_providers_per_subscriber: int = 14

    # Checked arithmetic bounds
    money_max: int = 2**256 - 1
    id_max: int = 2**64 - 1

    def validate(self) -> "LedgerConfig":
        if self.period_length <= timedelta(0):
            raise ValidationError("period_length must be positive", details={"period_length": str(self.period_length)})
        if self.min_fee <= 0:
            raise ValidationError("min_fee must be positive", details={"min_fee": self.min_fee})
        if self.min_deposit_periods < 0:
            raise ValidationError("min_deposit_periods must not be negative")
        if not 0 < self.min_providers_per_subscriber <= self.max_providers_per_subscriber:
            raise ValidationError(
                "provider bounds must satisfy 0 < min <= max",
                details={
                    "min_providers_per_subscriber": self.min_providers_per_subscriber,
                    "max_providers_per_subscriber": self.max_providers_per_subscriber,
                },
            )
        if self.money_max <= 0 or self.id_max <= 0:
            raise ValidationError("arithmetic bounds must be positive")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        """Build a config from plain data; ``period_length`` is given in seconds."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError("unknown config keys", details={"keys": unknown})

        kwargs = dict(data)
        if "period_length" in kwargs:
            kwargs["period_length"] = timedelta(seconds=kwargs["period_length"])
        return cls(**kwargs).validate()

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["period_length"] = int(self.period_length.total_seconds())
        return out


def load_config(path: Union[str, Path]) -> LedgerConfig:
    """Load a ``LedgerConfig`` from a JSON file."""
    path = Path(path)
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValidationError("config file must contain a JSON object", details={"path": str(path)})
    return LedgerConfig.from_dict(data)
