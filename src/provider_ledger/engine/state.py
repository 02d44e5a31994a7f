from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from ..exceptions import ProviderNotFound, SubscriberNotFound
from ..models.ledger import Provider, Subscriber
from .pairing_index import PairingIndex


@dataclass
class LedgerState:
    """Everything the ledger owns: both tables, the pairing index and the id counters.

    Counters hold the last id handed out; ids start at 1 and are never reused.
    """
    providers: Dict[int, Provider] = field(default_factory=dict)
    subscribers: Dict[int, Subscriber] = field(default_factory=dict)
    pairings: PairingIndex = field(default_factory=PairingIndex)
    last_provider_id: int = 0
    last_subscriber_id: int = 0

    def provider(self, provider_id: int) -> Provider:
        try:
            return self.providers[provider_id]
        except KeyError:
            raise ProviderNotFound(provider_id) from None

    def subscriber(self, subscriber_id: int) -> Subscriber:
        try:
            return self.subscribers[subscriber_id]
        except KeyError:
            raise SubscriberNotFound(subscriber_id) from None
