from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from ..exceptions import TransferFailed

LEDGER_ACCOUNT = "ledger"


@dataclass
class Transfer:
    sender: str
    recipient: str
    amount: int


class TokenVault:
    """ERC20-like token holding the ledger's custody balance.

    Payers must ``approve`` the ledger before ``transfer_in`` can pull
    funds, mirroring allowance-based token transfers. ``fail_next``
    makes the next transfer fail regardless of balances, for testing
    rollback paths.
    """
    def __init__(self, custody: str = LEDGER_ACCOUNT):
        self.custody = custody
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, int] = {}
        self._transfers: List[Transfer] = []
        self._fail_reason: Optional[str] = None

    def mint(self, account: str, amount: int) -> None:
        self._balances[account] = self._balances.get(account, 0) + amount

    def approve(self, owner: str, amount: int) -> None:
        self._allowances[owner] = amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str) -> int:
        return self._allowances.get(owner, 0)

    def fail_next(self, reason: str = "transfer rejected") -> None:
        self._fail_reason = reason

    def _check_injected_failure(self, account: str, amount: int) -> None:
        if self._fail_reason is not None:
            reason, self._fail_reason = self._fail_reason, None
            raise TransferFailed(reason, account=account, amount=amount)

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if self.balance_of(sender) < amount:
            raise TransferFailed("ERC20: transfer amount exceeds balance", account=sender, amount=amount)
        self._balances[sender] = self.balance_of(sender) - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._transfers.append(Transfer(sender=sender, recipient=recipient, amount=amount))

    def transfer_in(self, payer: str, amount: int) -> None:
        self._check_injected_failure(payer, amount)
        if self.allowance(payer) < amount:
            raise TransferFailed("ERC20: insufficient allowance", account=payer, amount=amount)
        self._move(payer, self.custody, amount)
        self._allowances[payer] = self.allowance(payer) - amount

    def transfer_out(self, payee: str, amount: int) -> None:
        self._check_injected_failure(payee, amount)
        self._move(self.custody, payee, amount)

    @property
    def transfers(self) -> List[Transfer]:
        return list(self._transfers)


def register_key(label: str) -> str:
    """Hash a human label into a registration key."""
    return hashlib.sha3_256(label.encode("utf-8")).hexdigest()


class RegisterKeyRegistry:
    def __init__(self):
        self._used: Set[str] = set()

    def is_used(self, key: str) -> bool:
        return key in self._used

    def mark_used(self, key: str) -> None:
        self._used.add(key)

    def __len__(self) -> int:
        return len(self._used)


class AccessPolicy:
    """Resolves owner and administrator checks for a caller identity."""
    def __init__(self, admin: str):
        self.admin = admin

    def is_owner(self, caller: str, owner: str) -> bool:
        return caller == owner

    def is_admin(self, caller: str) -> bool:
        return caller == self.admin
