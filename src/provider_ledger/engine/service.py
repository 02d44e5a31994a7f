"""Ledger service: every public operation on providers and subscribers.

Each operation runs inside ``_atomic``: the state is snapshotted first and
restored if anything raises, so a rejected call (including a failed token
transfer) leaves no trace. Token transfers are always the last fallible
step of an operation and events are only published once it commits.

The snapshot is a deep copy of the whole ``LedgerState``, so each mutating
call costs O(state size) on top of its O(1) index updates. That is the
intended trade for an in-memory ledger: rollback restores every table.

Usage:
    service = LedgerService(
        transfer=TokenVault(),
        keys=RegisterKeyRegistry(),
        access=AccessPolicy(admin="deployer"),
    )
    pid = service.register_provider("alice", register_key("Provider 0"), 250_000_000_000)
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import fields, replace
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import LedgerConfig
from ..exceptions import (
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
)
from ..harness.event_bus import EventBus
from ..harness.time_control import TimeController
from ..models.ledger import CancelReason, Provider, SettlementResult, Subscriber
from ..models.money import checked_add, checked_sub
from .accrual import AccrualEngine
from .collaborators import AccessControl, EventSink, KeyRegistry, ValueTransfer
from .state import LedgerState

logger = logging.getLogger(__name__)

PendingEvents = List[Tuple[str, Dict[str, Any]]]


class EventTopic:
    PROVIDER_ADDED = "ProviderAdded"
    PROVIDER_REMOVED = "ProviderRemoved"
    PROVIDER_FEE_UPDATED = "ProviderFeeUpdated"
    PROVIDER_STATE_CHANGED = "ProviderStateChanged"
    PROVIDER_EARNINGS_WITHDRAWN = "ProviderEarningsWithdrawn"
    SUBSCRIBER_ADDED = "SubscriberAdded"
    SUBSCRIBER_DEPOSITED = "SubscriberDeposited"
    SUBSCRIPTION_PAUSED = "SubscriptionPaused"
    PAIRING_CANCELLED = "PairingCancelled"


class LedgerService:
    def __init__(
        self,
        transfer: ValueTransfer,
        keys: KeyRegistry,
        access: AccessControl,
        events: Optional[EventSink] = None,
        time: Optional[TimeController] = None,
        cfg: Optional[LedgerConfig] = None,
        state: Optional[LedgerState] = None,
    ):
        self.cfg = (cfg or LedgerConfig()).validate()
        self.time = time or TimeController()
        self.transfer = transfer
        self.keys = keys
        self.access = access
        self.events = events if events is not None else EventBus(self.time)
        self.state = state or LedgerState()
        self.accrual = AccrualEngine(self.cfg)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def _atomic(self, op: str) -> Iterator[PendingEvents]:
        backup = copy.deepcopy(self.state)
        pending: PendingEvents = []
        try:
            yield pending
        except Exception as e:
            self._restore(backup)
            logger.warning("%s rolled back: %s", op, e)
            raise
        for topic, payload in pending:
            self.events.publish(topic, payload)

    def _restore(self, backup: LedgerState) -> None:
        # In place, so references to ``self.state`` stay valid
        for f in fields(LedgerState):
            setattr(self.state, f.name, getattr(backup, f.name))

    def _now(self) -> datetime:
        return self.time.now()

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _require_owner(self, caller: str, owner: str) -> None:
        if not self.access.is_owner(caller, owner):
            raise PermissionDenied("permission denied", details={"caller": caller})

    def _require_live_provider(self, provider: Provider, removed_error: type) -> None:
        if not provider.active:
            raise ProviderInactive(provider.id)
        if provider.removed:
            raise removed_error(provider.id)

    def _check_money(self, name: str, amount: int) -> None:
        if amount > self.cfg.money_max:
            raise InvalidParam(
                f"{name} exceeds the money range",
                details={name: amount, "max": self.cfg.money_max},
            )

    def _check_fee(self, fee: int) -> None:
        if fee < self.cfg.min_fee:
            raise FeeTooSmall(fee, self.cfg.min_fee)
        self._check_money("fee", fee)

    # -------------------------------------------------------------------------
    # Pairing helpers
    # -------------------------------------------------------------------------

    def _link(self, provider: Provider, subscriber_id: int, now: datetime) -> None:
        self.state.pairings.add_pairing(provider.id, subscriber_id, now)
        provider.subscriber_count = checked_add(provider.subscriber_count, 1, self.cfg.id_max)

    def _cancel_pairing(
        self, provider_id: int, subscriber_id: int, reason: CancelReason, pending: PendingEvents
    ) -> None:
        if not self.state.pairings.remove_pairing(provider_id, subscriber_id):
            return
        provider = self.state.provider(provider_id)
        provider.subscriber_count = checked_sub(provider.subscriber_count, 1, self.cfg.id_max)
        if reason is CancelReason.EXHAUSTED:
            logger.warning("pairing p=%s s=%s cancelled: subscriber exhausted", provider_id, subscriber_id)
        else:
            logger.info("pairing p=%s s=%s cancelled: %s", provider_id, subscriber_id, reason.value)
        pending.append((EventTopic.PAIRING_CANCELLED, {
            "provider_id": provider_id,
            "subscriber_id": subscriber_id,
            "reason": reason.value,
        }))

    def _settle_into_provider(self, provider_id: int, subscriber_id: int, now: datetime) -> SettlementResult:
        result = self.accrual.settle(self.state, provider_id, subscriber_id, now)
        if result.earned:
            provider = self.state.provider(provider_id)
            provider.balance = checked_add(provider.balance, result.earned, self.cfg.money_max)
        return result

    def _settle_provider(self, provider: Provider, now: datetime, pending: PendingEvents) -> int:
        """Settle every live pairing of ``provider``; cancel the exhausted ones.

        Cancellation swap-deletes inside the set being walked, so walk a
        snapshot and cancel once the walk is over.
        """
        earned = 0
        to_cancel: List[Tuple[int, CancelReason]] = []
        for subscriber_id in self.state.pairings.subscribers_of(provider.id):
            result = self._settle_into_provider(provider.id, subscriber_id, now)
            earned = checked_add(earned, result.earned, self.cfg.money_max)
            if result.must_cancel:
                to_cancel.append((subscriber_id, result.cancel_reason))
        for subscriber_id, reason in to_cancel:
            self._cancel_pairing(provider.id, subscriber_id, reason, pending)
        return earned

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    def register_provider(self, caller: str, register_key: str, fee: int) -> int:
        with self._atomic("register_provider") as pending:
            self._check_fee(fee)
            if self.keys.is_used(register_key):
                raise KeyAlreadyUsed(register_key)

            provider_id = checked_add(self.state.last_provider_id, 1, self.cfg.id_max)
            self.state.last_provider_id = provider_id
            self.state.providers[provider_id] = Provider(
                id=provider_id,
                owner=caller,
                fee=fee,
                register_key=register_key,
            )
            self.keys.mark_used(register_key)
            pending.append((EventTopic.PROVIDER_ADDED, {
                "id": provider_id,
                "owner": caller,
                "register_key": register_key,
                "fee": fee,
            }))
        logger.info("provider %s registered by %s fee=%d", provider_id, caller, fee)
        return provider_id

    def remove_provider(self, caller: str, provider_id: int) -> int:
        """Retire a provider and refund its unwithdrawn balance to the owner.

        Existing pairings are left in place and cleaned up the next time
        they are settled. Returns the refunded amount.
        """
        with self._atomic("remove_provider") as pending:
            provider = self.state.provider(provider_id)
            self._require_owner(caller, provider.owner)
            self._require_live_provider(provider, AlreadyRemoved)

            refund = provider.balance
            provider.balance = 0
            provider.fee = 0
            provider.removed = True
            if refund:
                self.transfer.transfer_out(provider.owner, refund)
            pending.append((EventTopic.PROVIDER_REMOVED, {"id": provider_id}))
        logger.info("provider %s removed, refunded %d", provider_id, refund)
        return refund

    def update_provider_fee(self, caller: str, provider_id: int, new_fee: int) -> int:
        """Change a provider's fee after settling everyone at the old one.

        Returns the amount settled into the provider balance.
        """
        with self._atomic("update_provider_fee") as pending:
            self._check_fee(new_fee)
            provider = self.state.provider(provider_id)
            self._require_owner(caller, provider.owner)
            self._require_live_provider(provider, AlreadyRemoved)

            now = self._now()
            earned = self._settle_provider(provider, now, pending)
            provider.fee = new_fee
            pending.append((EventTopic.PROVIDER_FEE_UPDATED, {"id": provider_id, "fee": new_fee}))
        logger.info("provider %s fee updated to %d (settled %d)", provider_id, new_fee, earned)
        return earned

    def update_providers_state(self, caller: str, provider_ids: Sequence[int], states: Sequence[bool]) -> None:
        """Admin toggle of provider ``active`` flags; all-or-nothing."""
        with self._atomic("update_providers_state") as pending:
            if not self.access.is_admin(caller):
                raise PermissionDenied("caller is not the admin", details={"caller": caller})
            if len(provider_ids) != len(states):
                raise ParamMismatch(
                    "invalid param",
                    details={"ids": len(provider_ids), "states": len(states)},
                )
            for provider_id, active in zip(provider_ids, states):
                provider = self.state.providers.get(provider_id)
                if provider is None or provider.removed:
                    raise NotRegistered(provider_id)
                provider.active = bool(active)
                pending.append((EventTopic.PROVIDER_STATE_CHANGED, {"id": provider_id, "active": bool(active)}))

    def withdraw_provider_earnings(self, caller: str, provider_id: int) -> int:
        """Settle all pairings and pay the provider balance out to its owner."""
        with self._atomic("withdraw_provider_earnings") as pending:
            provider = self.state.provider(provider_id)
            self._require_owner(caller, provider.owner)
            self._require_live_provider(provider, ProviderRemoved)

            self._settle_provider(provider, self._now(), pending)
            payout = provider.balance
            provider.balance = 0
            if payout:
                self.transfer.transfer_out(provider.owner, payout)
            pending.append((EventTopic.PROVIDER_EARNINGS_WITHDRAWN, {"id": provider_id, "amount": payout}))
        logger.info("provider %s withdrew %d", provider_id, payout)
        return payout

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def register_subscriber(self, caller: str, deposit: int, plan: str, provider_ids: Sequence[int]) -> int:
        with self._atomic("register_subscriber") as pending:
            count = len(provider_ids)
            if not self.cfg.min_providers_per_subscriber <= count <= self.cfg.max_providers_per_subscriber:
                raise InvalidParam(
                    "invalid param",
                    details={
                        "providers": count,
                        "min": self.cfg.min_providers_per_subscriber,
                        "max": self.cfg.max_providers_per_subscriber,
                    },
                )

            self._check_money("deposit", deposit)
            subscriber_id = checked_add(self.state.last_subscriber_id, 1, self.cfg.id_max)
            required = 0
            seen = set()
            chosen: List[Provider] = []
            for provider_id in provider_ids:
                provider = self.state.providers.get(provider_id)
                if provider is None:
                    raise NotRegistered(provider_id)
                if provider.removed:
                    raise ProviderRemoved(provider_id)
                if not provider.active:
                    raise ProviderInactive(provider_id)
                if provider_id in seen:
                    raise AlreadyPaired(provider_id, subscriber_id)
                seen.add(provider_id)
                chosen.append(provider)
                # May exceed money_max; deposit cannot, so that case is DepositTooSmall
                required += provider.fee * self.cfg.min_deposit_periods

            if deposit < required:
                raise DepositTooSmall(deposit, required)

            now = self._now()
            self.state.last_subscriber_id = subscriber_id
            self.state.subscribers[subscriber_id] = Subscriber(
                id=subscriber_id,
                owner=caller,
                balance=deposit,
                plan=plan,
            )
            for provider in chosen:
                self._link(provider, subscriber_id, now)

            self.transfer.transfer_in(caller, deposit)
            pending.append((EventTopic.SUBSCRIBER_ADDED, {
                "id": subscriber_id,
                "owner": caller,
                "plan": plan,
                "deposit": deposit,
            }))
        logger.info("subscriber %s registered by %s with %d providers", subscriber_id, caller, count)
        return subscriber_id

    def pause_subscription(self, caller: str, subscriber_id: int) -> int:
        """Settle and cancel every pairing of a subscriber, then pause it.

        The remaining balance stays on the record. Returns the total
        settled to providers.
        """
        with self._atomic("pause_subscription") as pending:
            subscriber = self.state.subscriber(subscriber_id)
            self._require_owner(caller, subscriber.owner)
            if subscriber.paused:
                return 0

            now = self._now()
            settled = 0
            results: List[SettlementResult] = []
            for provider_id in self.state.pairings.providers_of(subscriber_id):
                result = self._settle_into_provider(provider_id, subscriber_id, now)
                settled = checked_add(settled, result.earned, self.cfg.money_max)
                results.append(result)
            for result in results:
                reason = result.cancel_reason or CancelReason.PAUSED
                self._cancel_pairing(result.provider_id, subscriber_id, reason, pending)

            subscriber.paused = True
            pending.append((EventTopic.SUBSCRIPTION_PAUSED, {"id": subscriber_id}))
        logger.info("subscription %s paused, settled %d", subscriber_id, settled)
        return settled

    def deposit(self, caller: str, subscriber_id: int, amount: int) -> int:
        with self._atomic("deposit") as pending:
            subscriber = self.state.subscriber(subscriber_id)
            self._require_owner(caller, subscriber.owner)
            if subscriber.paused:
                raise SubscriptionPaused(subscriber_id)
            if amount < 0:
                raise InvalidParam("deposit amount must not be negative", details={"amount": amount})
            self._check_money("amount", amount)

            subscriber.balance = checked_add(subscriber.balance, amount, self.cfg.money_max)
            self.transfer.transfer_in(caller, amount)
            pending.append((EventTopic.SUBSCRIBER_DEPOSITED, {"id": subscriber_id, "amount": amount}))
        return subscriber.balance

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_provider(self, provider_id: int) -> Provider:
        return replace(self.state.provider(provider_id))

    def get_subscriber(self, subscriber_id: int) -> Subscriber:
        return replace(self.state.subscriber(subscriber_id))

    def subscribers_of(self, provider_id: int) -> List[int]:
        self.state.provider(provider_id)
        return self.state.pairings.subscribers_of(provider_id)

    def providers_of(self, subscriber_id: int) -> List[int]:
        self.state.subscriber(subscriber_id)
        return self.state.pairings.providers_of(subscriber_id)

    def get_provider_earning(self, provider_id: int) -> int:
        """Unwithdrawn balance plus everything accrued but not yet settled."""
        provider = self.state.provider(provider_id)
        now = self._now()
        total = provider.balance
        for subscriber_id in self.state.pairings.subscribers_of(provider_id):
            total += self.accrual.peek(self.state, provider_id, subscriber_id, now)
        return total

    def get_subscriber_remaining(self, subscriber_id: int) -> int:
        """Balance minus accrued fees; negative once the subscriber is in deficit."""
        subscriber = self.state.subscriber(subscriber_id)
        now = self._now()
        remaining = subscriber.balance
        for provider_id in self.state.pairings.providers_of(subscriber_id):
            remaining -= self.accrual.peek(self.state, provider_id, subscriber_id, now)
        return remaining
