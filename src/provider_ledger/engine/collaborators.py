"""Interfaces of the services the ledger calls out to.

The in-memory implementations in ``provider_ledger.harness`` satisfy
these by duck typing.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class ValueTransfer(Protocol):
    """Moves tokens in and out of the ledger's custody.

    Both methods raise ``TransferFailed`` and must not move anything when
    they do.
    """

    def transfer_in(self, payer: str, amount: int) -> None:
        ...

    def transfer_out(self, payee: str, amount: int) -> None:
        ...


@runtime_checkable
class KeyRegistry(Protocol):
    """Registration keys may be consumed once."""

    def is_used(self, key: str) -> bool:
        ...

    def mark_used(self, key: str) -> None:
        ...


@runtime_checkable
class AccessControl(Protocol):
    def is_owner(self, caller: str, owner: str) -> bool:
        ...

    def is_admin(self, caller: str) -> bool:
        ...


@runtime_checkable
class EventSink(Protocol):
    def publish(self, topic: str, payload: Dict[str, Any]) -> Any:
        ...
