"""Domain models for the savings ledger."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow, getcontext, localcontext
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from .errors import AccountNotFound, DecodeFailure, InvalidAmount

getcontext().prec = 28  # Higher precision for money calculations.

ZERO = Decimal("0")
CENT = Decimal("0.01")
# Keeps every stored amount exact as a JSON number.
MAX_AMOUNT = Decimal("1000000000")


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class TransactionKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


def _to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert user-provided numeric values into a Decimal."""
    if isinstance(value, bool):
        raise TypeError("Booleans are not numeric amounts")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip().replace(",", ""))
    raise TypeError(f"Unsupported numeric value {value!r}")


def finite_or_zero(value: Decimal) -> Decimal:
    """Replace NaN and infinities with zero."""
    return value if value.is_finite() else ZERO


def parse_amount(value: float | int | str | Decimal) -> Decimal:
    """Return a strictly positive, finite amount or raise InvalidAmount."""
    try:
        amount = _to_decimal(value)
    except (TypeError, InvalidOperation) as exc:
        raise InvalidAmount(f"Amount {value!r} is not a number") from exc
    if not amount.is_finite():
        raise InvalidAmount(f"Amount {value!r} is not finite")
    if amount > MAX_AMOUNT:
        raise InvalidAmount(f"Amount must not exceed {MAX_AMOUNT:,}")
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= ZERO:
        raise InvalidAmount("Amount must be greater than zero")
    return amount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_birthday(value: str) -> date:
    """Accept a plain ISO date or a full ISO timestamp."""
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return _parse_timestamp(value).date()


def _json_number(value: Decimal) -> float | int:
    """Render a Decimal as a JSON number, writing 0 for NaN/Infinity."""
    value = finite_or_zero(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _field(payload: Dict[str, Any], key: str, expected: type | tuple[type, ...]) -> Any:
    """Fetch a required key and check its JSON type."""
    if key not in payload:
        raise DecodeFailure(f"Missing field '{key}'")
    value = payload[key]
    # bool is an int subclass but never a valid number here.
    if isinstance(value, bool) or not isinstance(value, expected):
        raise DecodeFailure(f"Field '{key}' has the wrong type")
    return value


_NUMBER = (int, float, Decimal)


@dataclass(frozen=True, slots=True)
class Transaction:
    """An immutable deposit or withdrawal against one account."""

    account_id: str
    amount: Decimal
    kind: TransactionKind
    note: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    transaction_id: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        object.__setattr__(self, "kind", TransactionKind(self.kind))

    @property
    def signed_amount(self) -> Decimal:
        if self.kind is TransactionKind.DEPOSIT:
            return self.amount
        return -self.amount

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the transaction for JSON storage."""
        return {
            "id": self.transaction_id,
            "childId": self.account_id,
            "amount": _json_number(self.amount),
            "date": _format_timestamp(self.created_at),
            "type": self.kind.value,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Transaction":
        """Rehydrate a transaction, raising DecodeFailure on a bad shape."""
        if not isinstance(payload, dict):
            raise DecodeFailure("Transaction entry must be an object")
        try:
            return cls(
                transaction_id=_field(payload, "id", str),
                account_id=_field(payload, "childId", str),
                amount=_to_decimal(_field(payload, "amount", _NUMBER)),
                created_at=_parse_timestamp(_field(payload, "date", str)),
                kind=TransactionKind(_field(payload, "type", str)),
                note=_field(payload, "note", str),
            )
        except (ValueError, TypeError, InvalidOperation) as exc:
            if isinstance(exc, DecodeFailure):
                raise
            raise DecodeFailure(f"Invalid transaction: {exc}") from exc


@dataclass(slots=True)
class Account:
    """A child's savings account with its wishes and goals."""

    name: str
    balance: Decimal = ZERO
    gender: Gender = Gender.OTHER
    birthday: date = field(default_factory=date.today)
    short_term_wish: str = ""
    long_term_wish: str = ""
    short_term_goal: Decimal = ZERO
    long_term_goal: Decimal = ZERO
    avatar: Optional[bytes] = None
    transactions: List[Transaction] = field(default_factory=list)
    account_id: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self) -> None:
        self.balance = finite_or_zero(_to_decimal(self.balance))
        self.short_term_goal = finite_or_zero(_to_decimal(self.short_term_goal))
        self.long_term_goal = finite_or_zero(_to_decimal(self.long_term_goal))
        self.gender = Gender(self.gender)

    def apply_transaction(self, transaction: Transaction) -> None:
        """Append a transaction and move the balance by its signed amount."""
        with localcontext() as ctx:
            # Overflow yields Infinity, which is then coerced to zero.
            ctx.traps[Overflow] = False
            balance = finite_or_zero(self.balance + transaction.signed_amount)
        self.transactions.append(transaction)
        self.balance = balance

    def age(self, on: date | None = None) -> int:
        """Whole years since the birthday."""
        today = on or date.today()
        years = today.year - self.birthday.year
        if (today.month, today.day) < (self.birthday.month, self.birthday.day):
            years -= 1
        return max(years, 0)

    def goal_progress(self, goal: Decimal) -> Decimal:
        """Fraction of a savings goal reached, clamped to 0..1."""
        if goal <= ZERO:
            return ZERO
        return min(max(self.balance / goal, ZERO), Decimal("1"))

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the account and its transactions for JSON storage."""
        return {
            "id": self.account_id,
            "name": self.name,
            "balance": _json_number(self.balance),
            "avatarData": (
                base64.b64encode(self.avatar).decode("ascii") if self.avatar else None
            ),
            "transactions": [txn.to_dict() for txn in self.transactions],
            "gender": self.gender.value,
            "birthday": self.birthday.isoformat(),
            "shortTermWish": self.short_term_wish,
            "longTermWish": self.long_term_wish,
            "shortTermSavingsGoal": _json_number(self.short_term_goal),
            "longTermSavingsGoal": _json_number(self.long_term_goal),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Account":
        """Rehydrate an account, raising DecodeFailure on a bad shape."""
        if not isinstance(payload, dict):
            raise DecodeFailure("Account entry must be an object")
        try:
            avatar_text = payload.get("avatarData")
            if avatar_text is not None and not isinstance(avatar_text, str):
                raise DecodeFailure("Field 'avatarData' has the wrong type")
            transactions = [
                Transaction.from_dict(item)
                for item in _field(payload, "transactions", list)
            ]
            return cls(
                account_id=_field(payload, "id", str),
                name=_field(payload, "name", str),
                balance=_to_decimal(_field(payload, "balance", _NUMBER)),
                avatar=base64.b64decode(avatar_text, validate=True) if avatar_text else None,
                transactions=transactions,
                gender=Gender(_field(payload, "gender", str)),
                birthday=_parse_birthday(_field(payload, "birthday", str)),
                short_term_wish=_field(payload, "shortTermWish", str),
                long_term_wish=_field(payload, "longTermWish", str),
                short_term_goal=_to_decimal(_field(payload, "shortTermSavingsGoal", _NUMBER)),
                long_term_goal=_to_decimal(_field(payload, "longTermSavingsGoal", _NUMBER)),
            )
        except (ValueError, TypeError, InvalidOperation, binascii.Error) as exc:
            if isinstance(exc, DecodeFailure):
                raise
            raise DecodeFailure(f"Invalid account: {exc}") from exc


PROFILE_FIELDS = (
    "name",
    "gender",
    "birthday",
    "short_term_wish",
    "long_term_wish",
    "short_term_goal",
    "long_term_goal",
    "avatar",
)


@dataclass(slots=True)
class Ledger:
    """Container for every child's account."""

    accounts: List[Account] = field(default_factory=list)

    def find(self, account_id: str) -> Optional[Account]:
        for account in self.accounts:
            if account.account_id == account_id:
                return account
        return None

    def require(self, account_id: str) -> Account:
        account = self.find(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def create_account(self, name: str, **fields: Any) -> Account:
        """Create and register a new account with a zero balance."""
        fields.pop("balance", None)
        fields.pop("transactions", None)
        account = Account(name=name, **fields)
        self.accounts.append(account)
        return account

    def record_transaction(
        self,
        account_id: str,
        amount: float | int | str | Decimal,
        kind: TransactionKind | str,
        note: str = "",
    ) -> Transaction:
        """Validate and apply a deposit or withdrawal."""
        account = self.require(account_id)
        kind = TransactionKind(kind)
        value = parse_amount(amount)
        if kind is TransactionKind.WITHDRAW and value > account.balance:
            raise InvalidAmount(
                f"Cannot withdraw {value} from a balance of {account.balance}"
            )
        transaction = Transaction(
            account_id=account.account_id,
            amount=value,
            kind=kind,
            note=note,
        )
        account.apply_transaction(transaction)
        return transaction

    def update_account(self, updated: Account) -> bool:
        """Copy profile fields onto the stored account; False if it is unknown."""
        account = self.find(updated.account_id)
        if account is None:
            return False
        for name in PROFILE_FIELDS:
            setattr(account, name, getattr(updated, name))
        return True

    def delete_account(self, account_id: str) -> bool:
        """Remove an account together with its transactions."""
        before = len(self.accounts)
        self.accounts = [acc for acc in self.accounts if acc.account_id != account_id]
        return len(self.accounts) != before

    def all_transactions(self) -> List[Transaction]:
        return [txn for account in self.accounts for txn in account.transactions]

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialise the ledger as the top-level JSON array."""
        return [account.to_dict() for account in self.accounts]

    @classmethod
    def from_list(cls, payload: Iterable[Dict[str, Any]]) -> "Ledger":
        """Rehydrate a ledger from the top-level JSON array."""
        if not isinstance(payload, list):
            raise DecodeFailure("Ledger document must be a JSON array")
        return cls(accounts=[Account.from_dict(item) for item in payload])
