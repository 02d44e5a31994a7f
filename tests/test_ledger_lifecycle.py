"""Test Suite - Provider / subscriber lifecycle.

Walks one ledger end to end: 201 providers, state
toggles, subscriber registration at the deposit boundary, pause, top-up,
eight weeks of accrual, withdrawal, removal, views and a fee update.

Test IDs use the LS- prefix (Ledger Service).
"""

import pytest

from provider_ledger import EventTopic, check_invariants
from provider_ledger.exceptions import (
    AlreadyPaired,
    AlreadyRemoved,
    DepositTooSmall,
    FeeTooSmall,
    InvalidParam,
    KeyAlreadyUsed,
    NotRegistered,
    ParamMismatch,
    PermissionDenied,
    ProviderInactive,
    ProviderRemoved,
    SubscriptionPaused,
    TransferFailed,
)
from provider_ledger.harness import LEDGER_ACCOUNT, register_key

from tests.test_constants import ALICE, BOB, DEPLOYER, FEE, WEEK, fund


@pytest.mark.case("LS-001")
@pytest.mark.prio1
def test_full_lifecycle_end_to_end(service, vault, bus, time_ctl):
    """Test Case - Full provider and subscriber lifecycle.

    Preconditions:
    -----------------
    1. Ledger admin is the deployer
    2. Alice owns every provider, Bob every subscriber
    3. Clock frozen; nothing accrues until it is advanced

    Expected Results:
    ---------------------------
    1. Every rejection raises the expected error type
    2. Provider 3 pays out 8 * 250 gwei after eight weeks
    3. Views report 2000 gwei earned (provider 4) and 6000 gwei
       remaining (subscriber 2)
    4. Fee update settles provider 4 at the old fee first
    5. Invariants hold throughout
    """
    # -- register provider --------------------------------------------------
    key0 = register_key("Provider 0")
    with pytest.raises(FeeTooSmall):
        service.register_provider(ALICE, key0, 200_000_000_000)

    assert service.register_provider(ALICE, key0, FEE) == 1
    added = bus.events(EventTopic.PROVIDER_ADDED)
    assert added[-1].payload == {"id": 1, "owner": ALICE, "register_key": key0, "fee": FEE}

    p1 = service.get_provider(1)
    assert p1.owner == ALICE
    assert p1.subscriber_count == 0
    assert p1.fee == FEE
    assert p1.balance == 0
    assert p1.active is True

    # -- same key again -----------------------------------------------------
    with pytest.raises(KeyAlreadyUsed):
        service.register_provider(ALICE, key0, FEE)

    # -- more than 200 ------------------------------------------------------
    for i in range(1, 201):
        service.register_provider(ALICE, register_key(f"Provider {i}"), FEE)
    assert service.state.last_provider_id == 201

    # -- update provider state ----------------------------------------------
    with pytest.raises(PermissionDenied):
        service.update_providers_state(ALICE, [1, 2], [True])
    with pytest.raises(ParamMismatch):
        service.update_providers_state(DEPLOYER, [1, 2], [True])

    service.update_providers_state(DEPLOYER, [1], [False])
    assert bus.events(EventTopic.PROVIDER_STATE_CHANGED)[-1].payload == {"id": 1, "active": False}
    assert service.get_provider(1).active is False

    service.remove_provider(ALICE, 2)
    with pytest.raises(NotRegistered):
        service.update_providers_state(DEPLOYER, [2], [True])

    # -- register subscriber ------------------------------------------------
    deposit = 5_000_000_000_000
    with pytest.raises(InvalidParam):
        service.register_subscriber(BOB, deposit, "test", [1, 2])
    with pytest.raises(InvalidParam):
        service.register_subscriber(BOB, deposit, "test", list(range(1, 16)))
    with pytest.raises(ProviderInactive):
        service.register_subscriber(BOB, deposit, "test", [1, 2, 3])
    with pytest.raises(ProviderRemoved):
        service.register_subscriber(BOB, deposit, "test", [2, 3, 4])
    with pytest.raises(DepositTooSmall):
        service.register_subscriber(BOB, deposit, "test", [3, 4, 5])

    deposit = 6_000_000_000_000
    with pytest.raises(TransferFailed, match="insufficient allowance"):
        service.register_subscriber(BOB, deposit, "test", [3, 4, 5])
    assert service.state.last_subscriber_id == 0

    fund(vault, BOB, deposit)
    assert service.register_subscriber(BOB, deposit, "test", [3, 4, 5]) == 1
    assert bus.events(EventTopic.SUBSCRIBER_ADDED)[-1].payload == {
        "id": 1, "owner": BOB, "plan": "test", "deposit": deposit,
    }
    assert vault.transfers[-1].sender == BOB
    assert vault.transfers[-1].recipient == LEDGER_ACCOUNT
    assert vault.transfers[-1].amount == deposit

    assert service.get_provider(3).subscriber_count == 1
    sub1 = service.get_subscriber(1)
    assert sub1.owner == BOB
    assert sub1.balance == deposit
    assert sub1.plan == "test"
    assert sub1.paused is False

    # -- pause --------------------------------------------------------------
    with pytest.raises(PermissionDenied):
        service.pause_subscription(ALICE, 1)
    service.pause_subscription(BOB, 1)
    assert service.get_subscriber(1).paused is True
    assert service.get_provider(3).subscriber_count == 0

    # -- deposit ------------------------------------------------------------
    with pytest.raises(PermissionDenied):
        service.deposit(ALICE, 1, deposit)
    with pytest.raises(SubscriptionPaused):
        service.deposit(BOB, 1, deposit)

    fund(vault, BOB, 2 * deposit)
    assert service.register_subscriber(BOB, deposit, "test", [3, 4, 5]) == 2
    assert service.get_subscriber(2).balance == deposit

    service.deposit(BOB, 2, deposit)
    assert vault.transfers[-1].amount == deposit
    assert service.get_subscriber(2).balance == 2 * deposit

    # -- withdraw provider earning -----------------------------------------
    time_ctl.advance(8 * WEEK)
    with pytest.raises(PermissionDenied):
        service.withdraw_provider_earnings(BOB, 1)
    with pytest.raises(ProviderInactive):
        service.withdraw_provider_earnings(ALICE, 1)
    with pytest.raises(ProviderRemoved):
        service.withdraw_provider_earnings(ALICE, 2)

    assert service.withdraw_provider_earnings(ALICE, 3) == 2_000_000_000_000
    last = vault.transfers[-1]
    assert (last.sender, last.recipient, last.amount) == (LEDGER_ACCOUNT, ALICE, 2_000_000_000_000)
    assert service.get_subscriber(2).balance == 10_000_000_000_000

    # -- remove provider ----------------------------------------------------
    with pytest.raises(PermissionDenied):
        service.remove_provider(BOB, 1)
    with pytest.raises(ProviderInactive):
        service.remove_provider(ALICE, 1)
    with pytest.raises(AlreadyRemoved):
        service.remove_provider(ALICE, 2)
    service.remove_provider(ALICE, 3)
    assert bus.events(EventTopic.PROVIDER_REMOVED)[-1].payload == {"id": 3}

    # -- views ----------------------------------------------------------------
    assert service.get_provider_earning(4) == 2_000_000_000_000
    assert service.get_subscriber_remaining(2) == 6_000_000_000_000

    # -- update provider fee -------------------------------------------------
    with pytest.raises(FeeTooSmall):
        service.update_provider_fee(BOB, 1, 200_000_000_000)
    with pytest.raises(PermissionDenied):
        service.update_provider_fee(BOB, 1, 300_000_000_000)
    with pytest.raises(ProviderInactive):
        service.update_provider_fee(ALICE, 1, 300_000_000_000)
    with pytest.raises(AlreadyRemoved):
        service.update_provider_fee(ALICE, 2, 300_000_000_000)

    service.update_provider_fee(ALICE, 4, 300_000_000_000)
    assert bus.events(EventTopic.PROVIDER_FEE_UPDATED)[-1].payload == {"id": 4, "fee": 300_000_000_000}
    p4 = service.get_provider(4)
    assert p4.balance == 2_000_000_000_000
    assert p4.fee == 300_000_000_000

    assert check_invariants(service.state) == []


@pytest.mark.case("LS-002")
def test_removed_provider_keeps_pairings_until_next_settlement(service, vault, time_ctl):
    """Removal leaves pairings in place; the next pause cleans them up."""
    ids = [service.register_provider(ALICE, register_key(f"P{i}"), FEE) for i in range(3)]
    fund(vault, BOB, 3 * 8 * FEE)
    sid = service.register_subscriber(BOB, 3 * 8 * FEE, "basic", ids)

    service.remove_provider(ALICE, ids[0])
    assert service.get_provider(ids[0]).subscriber_count == 1
    assert ids[0] in service.providers_of(sid)
    assert check_invariants(service.state) == []

    time_ctl.advance(2 * WEEK)
    settled = service.pause_subscription(BOB, sid)

    # Only the two live providers billed
    assert settled == 2 * 2 * FEE
    assert service.get_provider(ids[0]).subscriber_count == 0
    assert service.get_provider(ids[0]).balance == 0
    assert service.get_provider(ids[1]).balance == 2 * FEE
    assert service.providers_of(sid) == []
    assert check_invariants(service.state) == []


@pytest.mark.case("LS-003")
def test_remove_provider_refunds_balance_to_owner(service, vault, time_ctl):
    ids = [service.register_provider(ALICE, register_key(f"P{i}"), FEE) for i in range(3)]
    fund(vault, BOB, 24 * FEE)
    sid = service.register_subscriber(BOB, 24 * FEE, "basic", ids)

    time_ctl.advance(3 * WEEK)
    service.pause_subscription(BOB, sid)
    assert service.get_provider(ids[0]).balance == 3 * FEE

    refund = service.remove_provider(ALICE, ids[0])
    assert refund == 3 * FEE
    assert vault.balance_of(ALICE) == 3 * FEE
    p = service.get_provider(ids[0])
    assert p.balance == 0
    assert p.fee == 0
    assert p.removed is True


@pytest.mark.case("LS-004")
def test_duplicate_provider_in_registration_rejected(service, vault):
    ids = [service.register_provider(ALICE, register_key(f"P{i}"), FEE) for i in range(3)]
    fund(vault, BOB, 100 * FEE)

    with pytest.raises(AlreadyPaired):
        service.register_subscriber(BOB, 100 * FEE, "basic", [ids[0], ids[1], ids[0]])
    assert service.state.subscribers == {}
    assert vault.balance_of(BOB) == 100 * FEE


@pytest.mark.case("LS-005")
def test_unknown_provider_in_registration_is_not_registered(service, vault):
    ids = [service.register_provider(ALICE, register_key(f"P{i}"), FEE) for i in range(2)]
    with pytest.raises(NotRegistered):
        service.register_subscriber(BOB, 100 * FEE, "basic", ids + [99])


@pytest.mark.case("LS-006")
def test_ids_are_never_reused(service, vault):
    first = service.register_provider(ALICE, register_key("A"), FEE)
    service.remove_provider(ALICE, first)
    second = service.register_provider(ALICE, register_key("B"), FEE)
    assert second == first + 1

    ids = [second] + [service.register_provider(ALICE, register_key(f"C{i}"), FEE) for i in range(2)]
    fund(vault, BOB, 48 * FEE)
    s1 = service.register_subscriber(BOB, 24 * FEE, "basic", ids)
    service.pause_subscription(BOB, s1)
    s2 = service.register_subscriber(BOB, 24 * FEE, "basic", ids)
    assert s2 == s1 + 1


def test_pause_twice_is_noop(service, vault):
    ids = [service.register_provider(ALICE, register_key(f"P{i}"), FEE) for i in range(3)]
    fund(vault, BOB, 24 * FEE)
    sid = service.register_subscriber(BOB, 24 * FEE, "basic", ids)
    service.pause_subscription(BOB, sid)
    assert service.pause_subscription(BOB, sid) == 0
    assert service.get_subscriber(sid).paused is True
