"""Exception types raised by the ledger store and backup service."""

from __future__ import annotations


class KidsBankError(Exception):
    """Base class for all application errors."""


class InvalidAmount(KidsBankError, ValueError):
    """Raised when a deposit or withdrawal amount cannot be accepted."""


class DecodeFailure(KidsBankError, ValueError):
    """Raised when a ledger document is malformed or has the wrong shape."""


class EmptyLedger(KidsBankError):
    """Raised when a backup is requested but there are no accounts."""


class AccountNotFound(KidsBankError, KeyError):
    """Raised when an operation references an unknown account id."""

    def __init__(self, account_id: str) -> None:
        super().__init__(account_id)
        self.account_id = account_id

    def __str__(self) -> str:
        return f"Unknown account id '{self.account_id}'"
