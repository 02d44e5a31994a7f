#!/usr/bin/env python3
"""
Basic billing walkthrough.

Registers three providers, subscribes a customer to all of them, lets
eight weeks pass and pays the providers out.
"""

import logging
import os
import sys
from datetime import datetime, timedelta, timezone

# Add the src directory to the path so we can import provider_ledger
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from provider_ledger import LedgerService, check_invariants
from provider_ledger.harness import (
    AccessPolicy,
    EventBus,
    RegisterKeyRegistry,
    TimeController,
    TokenVault,
    register_key,
)

GWEI = 1_000_000_000


def main():
    """Run the billing walkthrough."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("Provider Ledger Example")
    print("=" * 40)

    clock = TimeController()
    clock.freeze_at(datetime(2024, 1, 1, tzinfo=timezone.utc))
    vault = TokenVault()
    bus = EventBus(clock)
    service = LedgerService(
        transfer=vault,
        keys=RegisterKeyRegistry(),
        access=AccessPolicy(admin="deployer"),
        events=bus,
        time=clock,
    )

    # Providers
    fees = [250 * GWEI, 300 * GWEI, 400 * GWEI]
    provider_ids = [
        service.register_provider("alice", register_key(f"Provider {i}"), fee)
        for i, fee in enumerate(fees)
    ]
    print(f"Registered providers: {provider_ids}")

    # Subscriber pays the minimum deposit (8 periods per provider)
    deposit = sum(fees) * 8
    vault.mint("bob", deposit)
    vault.approve("bob", deposit)
    subscriber_id = service.register_subscriber("bob", deposit, "starter", provider_ids)
    print(f"Subscriber {subscriber_id} deposited {deposit / GWEI:.0f} gwei")

    # Eight weeks later
    clock.advance(timedelta(weeks=8))
    remaining = service.get_subscriber_remaining(subscriber_id)
    print(f"Remaining after 8 weeks: {remaining / GWEI:.0f} gwei")

    print("\nPayouts:")
    for provider_id in provider_ids:
        payout = service.withdraw_provider_earnings("alice", provider_id)
        print(f"  provider {provider_id}: {payout / GWEI:.0f} gwei")

    print("\nEvents:")
    for event in bus.drain():
        print(f"  #{event.id} {event.topic} {event.payload}")

    violations = check_invariants(service.state)
    print(f"\nInvariant violations: {len(violations)}")


if __name__ == "__main__":
    main()
