"""
Provider Ledger

Subscription billing ledger: providers charge a fixed fee per period,
subscribers prepay a deposit that their providers draw down over time.
"""

__version__ = "0.1.0"

from .config import LedgerConfig, load_config
from .exceptions import LedgerError, LedgerOverflow

# Engine
from .engine import (
    AccrualEngine,
    EventTopic,
    IndexedSet,
    LedgerService,
    LedgerState,
    PairingIndex,
    check_invariants,
)

# Models
from .models import Provider, Subscriber, SettlementResult

__all__ = [
    "__version__",
    # Config
    "LedgerConfig",
    "load_config",
    # Errors
    "LedgerError",
    "LedgerOverflow",
    # Engine
    "AccrualEngine",
    "EventTopic",
    "IndexedSet",
    "LedgerService",
    "LedgerState",
    "PairingIndex",
    "check_invariants",
    # Models
    "Provider",
    "Subscriber",
    "SettlementResult",
]
