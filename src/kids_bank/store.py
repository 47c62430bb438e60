"""The ledger store: in-memory accounts plus whole-document persistence."""

from __future__ import annotations

import threading
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Tuple

import structlog

from .errors import DecodeFailure, EmptyLedger, InvalidAmount
from .models import PROFILE_FIELDS, Account, Ledger, Transaction, TransactionKind
from .storage import encode_ledger, load_ledger, save_ledger

log = structlog.get_logger(__name__)

ChangeListener = Callable[["LedgerStore"], None]


class LedgerStore:
    """Owns the ledger and rewrites the data file after every change.

    Every mutation, load and save runs under one re-entrant lock, so a
    background restore cannot interleave with an interactive deposit.
    Listeners are called after the lock is released.
    """

    def __init__(self, *, data_file: str | Path | None = None) -> None:
        self.data_file = Path(data_file) if data_file else None
        self.ledger: Ledger = Ledger()
        self._lock = threading.RLock()
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #
    def load(self) -> None:
        """Read the data file; start empty if it is missing or unreadable."""
        with self._lock:
            try:
                self.ledger = load_ledger(self.data_file)
            except (DecodeFailure, OSError) as exc:
                log.error("ledger_load_failed", path=str(self.data_file), error=str(exc))
                self.ledger = Ledger()
        self._notify()

    def save(self) -> None:
        with self._lock:
            try:
                save_ledger(self.ledger, self.data_file)
            except (OSError, ValueError) as exc:
                log.error("ledger_save_failed", path=str(self.data_file), error=str(exc))
                raise

    def _save_or_undo(self, undo: Callable[[], None]) -> None:
        """Persist the ledger; if that fails, put memory back as it was."""
        try:
            self.save()
        except Exception:
            undo()
            raise

    # ------------------------------------------------------------------ #
    # Listener registration
    # ------------------------------------------------------------------ #
    def add_listener(self, callback: ChangeListener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: ChangeListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    @property
    def accounts(self) -> Tuple[Account, ...]:
        with self._lock:
            return tuple(self.ledger.accounts)

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            return self.ledger.find(account_id)

    def total_balance(self) -> Decimal:
        with self._lock:
            return sum((acc.balance for acc in self.ledger.accounts), Decimal("0"))

    def export_document(self) -> bytes:
        """The serialised ledger; raises EmptyLedger when there are no accounts."""
        with self._lock:
            if not self.ledger.accounts:
                raise EmptyLedger("There are no accounts to back up")
            return encode_ledger(self.ledger)

    def list_all_transactions(self) -> List[Transaction]:
        """Every transaction of every account, in no particular order."""
        with self._lock:
            return self.ledger.all_transactions()

    def transactions_for(self, account_id: str) -> List[Transaction]:
        return [txn for txn in self.history() if txn.account_id == account_id]

    def history(self, account_id: str | None = None) -> List[Transaction]:
        """Transactions sorted newest first, optionally for a single account."""
        transactions = self.list_all_transactions()
        if account_id is not None:
            transactions = [txn for txn in transactions if txn.account_id == account_id]
        # Timestamps can tie; later position means recorded later within an account.
        ordered = sorted(
            enumerate(transactions),
            key=lambda item: (item[1].created_at, item[0]),
            reverse=True,
        )
        return [txn for _, txn in ordered]

    # ------------------------------------------------------------------ #
    # Account operations
    # ------------------------------------------------------------------ #
    def create_account(self, name: str, **fields: Any) -> Account:
        with self._lock:
            account = self.ledger.create_account(name, **fields)
            self._save_or_undo(lambda: self.ledger.accounts.remove(account))
        log.info("account_created", account_id=account.account_id, name=name)
        self._notify()
        return account

    def update_account(self, updated: Account) -> None:
        """Replace an account's profile; unknown ids are ignored."""
        with self._lock:
            stored = self.ledger.find(updated.account_id)
            if stored is None:
                log.warning("account_update_ignored", account_id=updated.account_id)
                return
            previous = {name: getattr(stored, name) for name in PROFILE_FIELDS}
            self.ledger.update_account(updated)

            def undo() -> None:
                for name, value in previous.items():
                    setattr(stored, name, value)

            self._save_or_undo(undo)
        log.info("account_updated", account_id=updated.account_id)
        self._notify()

    def delete_account(self, account_id: str) -> None:
        with self._lock:
            previous = list(self.ledger.accounts)
            removed = self.ledger.delete_account(account_id)
            self._save_or_undo(lambda: setattr(self.ledger, "accounts", previous))
        if removed:
            log.info("account_deleted", account_id=account_id)
        self._notify()

    def replace_all(self, accounts: Iterable[Account]) -> None:
        """Swap in a complete set of accounts and persist it."""
        with self._lock:
            previous = self.ledger
            self.ledger = Ledger(accounts=list(accounts))
            self._save_or_undo(lambda: setattr(self, "ledger", previous))
        log.info("ledger_replaced", count=len(self.ledger.accounts))
        self._notify()

    # ------------------------------------------------------------------ #
    # Transaction operations
    # ------------------------------------------------------------------ #
    def record_transaction(
        self,
        account_id: str,
        amount: float | int | str | Decimal,
        kind: TransactionKind | str,
        note: str = "",
    ) -> Transaction:
        with self._lock:
            account = self.ledger.find(account_id)
            previous_balance = account.balance if account else None
            try:
                transaction = self.ledger.record_transaction(account_id, amount, kind, note)
            except InvalidAmount as exc:
                log.warning(
                    "transaction_rejected",
                    account_id=account_id,
                    kind=getattr(kind, "value", kind),
                    reason=str(exc),
                )
                raise

            def undo() -> None:
                account.transactions.pop()
                account.balance = previous_balance

            self._save_or_undo(undo)
        log.info(
            "transaction_recorded",
            account_id=account_id,
            kind=transaction.kind.value,
            amount=str(transaction.amount),
        )
        self._notify()
        return transaction

    def deposit(self, account_id: str, amount: float | int | str | Decimal, note: str = "") -> Transaction:
        return self.record_transaction(account_id, amount, TransactionKind.DEPOSIT, note)

    def withdraw(self, account_id: str, amount: float | int | str | Decimal, note: str = "") -> Transaction:
        return self.record_transaction(account_id, amount, TransactionKind.WITHDRAW, note)
