"""Exception hierarchy for ledger operations.

Every rejected operation raises a ``LedgerError`` subclass and leaves the
ledger exactly as it was before the call.

Exception Hierarchy:
    LedgerError (base)
    ├── ValidationError - malformed or out-of-range parameters
    │   ├── FeeTooSmall
    │   ├── InvalidParam
    │   └── ParamMismatch
    ├── PermissionDenied - caller is not the required owner/admin
    ├── StateError - entity is in the wrong state for the operation
    │   ├── ProviderInactive
    │   ├── ProviderRemoved
    │   ├── AlreadyRemoved
    │   └── SubscriptionPaused
    ├── ConflictError - duplicates
    │   ├── KeyAlreadyUsed
    │   └── AlreadyPaired
    ├── InsufficientFundsError
    │   ├── DepositTooSmall
    │   └── TransferFailed
    └── NotFoundError
        ├── ProviderNotFound
        ├── SubscriberNotFound
        └── NotRegistered

``LedgerOverflow`` sits outside the hierarchy: it signals a broken
arithmetic invariant, not a rejected request.

Usage:
    try:
        service.register_provider(caller, key, fee)
    except LedgerError as e:
        logger.warning("rejected: %s", e)
        return e.to_dict()
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all rejected ledger operations.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code
        details: Additional context (ids, amounts)
    """

    default_error_code: str = "LEDGER_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, error_code={self.error_code!r})"


# -----------------------------------------------------------------------------
# Categories
# -----------------------------------------------------------------------------

class ValidationError(LedgerError):
    default_error_code = "VALIDATION_ERROR"


class PermissionDenied(LedgerError):
    """Caller is not the owner (or the administrator) the operation requires."""

    default_error_code = "PERMISSION_DENIED"


class StateError(LedgerError):
    default_error_code = "STATE_ERROR"


class ConflictError(LedgerError):
    default_error_code = "CONFLICT"


class InsufficientFundsError(LedgerError):
    default_error_code = "INSUFFICIENT_FUNDS"


class NotFoundError(LedgerError):
    default_error_code = "NOT_FOUND"


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

class FeeTooSmall(ValidationError):
    default_error_code = "FEE_TOO_SMALL"

    def __init__(self, fee: int, min_fee: int):
        self.fee = fee
        self.min_fee = min_fee
        super().__init__(
            f"fee {fee} is below the minimum {min_fee}",
            details={"fee": fee, "min_fee": min_fee},
        )


class InvalidParam(ValidationError):
    default_error_code = "INVALID_PARAM"


class ParamMismatch(ValidationError):
    default_error_code = "PARAM_MISMATCH"


# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

class ProviderInactive(StateError):
    default_error_code = "PROVIDER_INACTIVE"

    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"provider {provider_id} is inactive", details={"provider_id": provider_id})


class ProviderRemoved(StateError):
    default_error_code = "PROVIDER_REMOVED"

    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"provider {provider_id} is removed", details={"provider_id": provider_id})


class AlreadyRemoved(StateError):
    default_error_code = "ALREADY_REMOVED"

    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"provider {provider_id} is already removed", details={"provider_id": provider_id})


class SubscriptionPaused(StateError):
    default_error_code = "SUBSCRIPTION_PAUSED"

    def __init__(self, subscriber_id: int):
        self.subscriber_id = subscriber_id
        super().__init__(f"subscription {subscriber_id} is paused", details={"subscriber_id": subscriber_id})


# -----------------------------------------------------------------------------
# Conflict
# -----------------------------------------------------------------------------

class KeyAlreadyUsed(ConflictError):
    default_error_code = "KEY_ALREADY_USED"

    def __init__(self, register_key: str):
        self.register_key = register_key
        super().__init__("register key already used", details={"register_key": register_key})


class AlreadyPaired(ConflictError):
    default_error_code = "ALREADY_PAIRED"

    def __init__(self, provider_id: int, subscriber_id: int):
        self.provider_id = provider_id
        self.subscriber_id = subscriber_id
        super().__init__(
            f"provider {provider_id} is already paired with subscriber {subscriber_id}",
            details={"provider_id": provider_id, "subscriber_id": subscriber_id},
        )


# -----------------------------------------------------------------------------
# Funds
# -----------------------------------------------------------------------------

class DepositTooSmall(InsufficientFundsError):
    default_error_code = "DEPOSIT_TOO_SMALL"

    def __init__(self, deposit: int, required: int):
        self.deposit = deposit
        self.required = required
        super().__init__(
            f"deposit amount is too small: required {required}, got {deposit}",
            details={"deposit": deposit, "required": required},
        )


class TransferFailed(InsufficientFundsError):
    """Raised by the value-transfer collaborator; aborts the enclosing operation."""

    default_error_code = "TRANSFER_FAILED"

    def __init__(self, reason: str, account: Optional[str] = None, amount: Optional[int] = None):
        self.reason = reason
        self.account = account
        self.amount = amount
        super().__init__(reason, details={"account": account, "amount": amount})


# -----------------------------------------------------------------------------
# Not found
# -----------------------------------------------------------------------------

class ProviderNotFound(NotFoundError):
    default_error_code = "PROVIDER_NOT_FOUND"

    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"provider {provider_id} not found", details={"provider_id": provider_id})


class SubscriberNotFound(NotFoundError):
    default_error_code = "SUBSCRIBER_NOT_FOUND"

    def __init__(self, subscriber_id: int):
        self.subscriber_id = subscriber_id
        super().__init__(f"subscriber {subscriber_id} not found", details={"subscriber_id": subscriber_id})


class NotRegistered(NotFoundError):
    default_error_code = "NOT_REGISTERED"

    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"provider {provider_id} not registered", details={"provider_id": provider_id})


# -----------------------------------------------------------------------------
# Fatal
# -----------------------------------------------------------------------------

class LedgerOverflow(ArithmeticError):
    """Checked arithmetic on a money or counter field left its legal range."""

    def __init__(self, op: str, left: int, right: int, limit: int):
        self.op = op
        self.left = left
        self.right = right
        self.limit = limit
        super().__init__(f"{op}({left}, {right}) outside [0, {limit}]")
