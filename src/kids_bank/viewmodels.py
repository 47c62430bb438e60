"""Helpers that shape ledger data for the UI tables and charts."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .models import Account, TransactionKind, finite_or_zero
from .store import LedgerStore

UNKNOWN_OWNER = "Unknown"


def format_currency(value: Decimal | float | int) -> str:
    """Format an amount as dollars, e.g. ``$1,234.50`` or ``-$5.00``."""
    amount = finite_or_zero(Decimal(str(value)))
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_progress(account: Account, goal: Decimal) -> str:
    if goal <= 0:
        return ""
    return f"{account.goal_progress(goal) * 100:.0f}%"


def accounts_for_table(store: LedgerStore) -> Iterable[dict[str, str]]:
    """Return account data shaped for display tables."""
    for account in store.accounts:
        yield {
            "account_id": account.account_id,
            "name": account.name,
            "age": str(account.age()),
            "balance": format_currency(account.balance),
            "short_term_wish": account.short_term_wish,
            "short_term_progress": format_progress(account, account.short_term_goal),
            "long_term_progress": format_progress(account, account.long_term_goal),
        }


def transactions_for_table(
    store: LedgerStore, account_id: Optional[str] = None
) -> Iterable[dict[str, str]]:
    """Return transaction rows, newest first."""
    names = {account.account_id: account.name for account in store.accounts}
    for txn in store.history(account_id):
        prefix = "+" if txn.kind is TransactionKind.DEPOSIT else "-"
        yield {
            "transaction_id": txn.transaction_id,
            "child": names.get(txn.account_id, UNKNOWN_OWNER),
            "date": txn.created_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            "kind": txn.kind.value.title(),
            "amount": f"{prefix}{format_currency(txn.amount)}",
            "note": txn.note,
        }


def balance_history(account: Account) -> List[Tuple[datetime, Decimal]]:
    """Running balance after each transaction, in creation order."""
    points: List[Tuple[datetime, Decimal]] = []
    running = Decimal("0")
    for txn in account.transactions:
        running = finite_or_zero(running + txn.signed_amount)
        points.append((txn.created_at, running))
    return points
