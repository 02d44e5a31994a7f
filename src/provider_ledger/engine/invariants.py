from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .state import LedgerState


@dataclass
class InvariantViolation(Exception):
    code: str
    message: str


def _check_positions(name: str, owner_id: int, iset, violations: List[InvariantViolation]) -> None:
    keys = iset.keys()
    if len(set(keys)) != len(keys):
        violations.append(InvariantViolation(
            code="IDX-DUP",
            message=f"{name}[{owner_id}] holds a duplicate id",
        ))
    positions = iset.positions()
    if len(positions) != len(keys):
        violations.append(InvariantViolation(
            code="IDX-POSITION",
            message=f"{name}[{owner_id}] has {len(positions)} positions for {len(keys)} entries",
        ))
    for idx, key in enumerate(keys, start=1):
        if positions.get(key) != idx:
            violations.append(InvariantViolation(
                code="IDX-POSITION",
                message=f"{name}[{owner_id}] maps {key} to {positions.get(key)}, stored at {idx}",
            ))


def check_invariants(st: LedgerState) -> List[InvariantViolation]:
    """Return every index, balance and counter invariant the state breaks."""
    violations: List[InvariantViolation] = []
    pairings = st.pairings

    for provider_id in pairings.provider_ids():
        iset = pairings.subscriber_set(provider_id)
        _check_positions("providerSubscribers", provider_id, iset, violations)
        for subscriber_id in iset.keys():
            provs = pairings.provider_set(subscriber_id)
            if provs is None or provider_id not in provs:
                violations.append(InvariantViolation(
                    code="IDX-MIRROR",
                    message=f"p={provider_id} lists s={subscriber_id} but not the reverse",
                ))

    for subscriber_id in pairings.subscriber_ids():
        iset = pairings.provider_set(subscriber_id)
        _check_positions("subscriberProviders", subscriber_id, iset, violations)
        for provider_id in iset.keys():
            if not pairings.is_paired(provider_id, subscriber_id):
                violations.append(InvariantViolation(
                    code="IDX-MIRROR",
                    message=f"s={subscriber_id} lists p={provider_id} but not the reverse",
                ))

    for provider_id, subscriber_id, _ in pairings.pairs():
        if not pairings.is_paired(provider_id, subscriber_id):
            violations.append(InvariantViolation(
                code="IDX-MIRROR",
                message=f"clock kept for dead pairing p={provider_id} s={subscriber_id}",
            ))
    live = sum(len(pairings.subscribers_of(p)) for p in pairings.provider_ids())
    if live != len(pairings):
        violations.append(InvariantViolation(
            code="IDX-MIRROR",
            message=f"{live} live pairings but {len(pairings)} clocks",
        ))

    for provider in st.providers.values():
        listed = len(pairings.subscribers_of(provider.id))
        if provider.subscriber_count != listed:
            violations.append(InvariantViolation(
                code="IDX-COUNT",
                message=f"provider {provider.id} count {provider.subscriber_count} != {listed} listed",
            ))
        if provider.balance < 0:
            violations.append(InvariantViolation(code="BAL-NEG", message=f"provider {provider.id} balance negative"))

    for subscriber in st.subscribers.values():
        if subscriber.balance < 0:
            violations.append(InvariantViolation(code="BAL-NEG", message=f"subscriber {subscriber.id} balance negative"))
        if subscriber.paused and pairings.providers_of(subscriber.id):
            violations.append(InvariantViolation(
                code="IDX-MIRROR",
                message=f"paused subscriber {subscriber.id} still paired",
            ))

    if st.providers and max(st.providers) > st.last_provider_id:
        violations.append(InvariantViolation(code="ID-COUNTER", message="provider id above counter"))
    if st.subscribers and max(st.subscribers) > st.last_subscriber_id:
        violations.append(InvariantViolation(code="ID-COUNTER", message="subscriber id above counter"))

    return violations
