"""
Tests for the domain models.

Covers amount validation, the balance invariant on the Ledger aggregate and
the JSON shape produced by to_dict/from_dict.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from kids_bank.errors import AccountNotFound, DecodeFailure, InvalidAmount
from kids_bank.models import (
    MAX_AMOUNT,
    Account,
    Gender,
    Ledger,
    Transaction,
    TransactionKind,
    parse_amount,
)


class TestParseAmount:
    """Tests for parse_amount."""

    @pytest.mark.parametrize("value", ["12.50", 12.5, 3, Decimal("0.01"), " 1,000 "])
    def test_accepts_positive_numbers(self, value):
        assert parse_amount(value) > 0

    @pytest.mark.parametrize(
        "value",
        [0, -1, "-0.01", float("nan"), float("inf"), float("-inf"), "NaN", "abc", "", True, None],
    )
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidAmount):
            parse_amount(value)


class TestLedger:
    """Tests for the in-memory Ledger aggregate."""

    def test_create_account_starts_empty(self):
        ledger = Ledger()
        account = ledger.create_account("Alice", balance=Decimal("99"), gender=Gender.FEMALE)
        assert account.balance == Decimal("0")
        assert account.transactions == []
        assert account.gender is Gender.FEMALE
        assert ledger.accounts == [account]

    def test_deposit_then_withdraw(self):
        ledger = Ledger()
        account = ledger.create_account("Alice")
        ledger.record_transaction(account.account_id, "20.00", TransactionKind.DEPOSIT, "allowance")
        ledger.record_transaction(account.account_id, "5.00", "withdraw", "toy")
        assert account.balance == Decimal("15.00")
        assert [txn.note for txn in account.transactions] == ["allowance", "toy"]
        assert [txn.kind for txn in account.transactions] == [
            TransactionKind.DEPOSIT,
            TransactionKind.WITHDRAW,
        ]

    def test_overdraw_is_rejected_without_mutation(self):
        ledger = Ledger()
        account = ledger.create_account("Bob")
        ledger.record_transaction(account.account_id, 10, "deposit")
        with pytest.raises(InvalidAmount):
            ledger.record_transaction(account.account_id, 15, "withdraw")
        assert account.balance == Decimal("10")
        assert len(account.transactions) == 1

    def test_withdraw_whole_balance_is_allowed(self):
        ledger = Ledger()
        account = ledger.create_account("Bob")
        ledger.record_transaction(account.account_id, "7.25", "deposit")
        ledger.record_transaction(account.account_id, "7.25", "withdraw")
        assert account.balance == Decimal("0")

    def test_unknown_account_raises(self):
        with pytest.raises(AccountNotFound):
            Ledger().record_transaction("missing", 1, "deposit")

    def test_update_keeps_balance_and_transactions(self):
        ledger = Ledger()
        account = ledger.create_account("Carol")
        ledger.record_transaction(account.account_id, 4, "deposit")
        edited = Account(
            name="Caroline",
            balance=Decimal("1000"),
            long_term_wish="Piano",
            account_id=account.account_id,
        )
        assert ledger.update_account(edited) is True
        assert account.name == "Caroline"
        assert account.long_term_wish == "Piano"
        assert account.balance == Decimal("4")
        assert len(account.transactions) == 1

    def test_update_unknown_account_returns_false(self):
        ledger = Ledger()
        assert ledger.update_account(Account(name="Ghost")) is False
        assert ledger.accounts == []

    def test_delete_removes_transactions(self):
        ledger = Ledger()
        first = ledger.create_account("A")
        second = ledger.create_account("B")
        ledger.record_transaction(first.account_id, 1, "deposit")
        ledger.record_transaction(second.account_id, 2, "deposit")
        assert ledger.delete_account(first.account_id) is True
        assert [txn.account_id for txn in ledger.all_transactions()] == [second.account_id]
        assert ledger.delete_account(first.account_id) is False


class TestAccount:
    """Tests for Account helpers and serialisation."""

    def test_non_finite_balance_is_coerced(self):
        assert Account(name="X", balance=float("nan")).balance == Decimal("0")
        assert Account(name="X", short_term_goal=Decimal("Infinity")).short_term_goal == 0

    def test_age(self):
        account = Account(name="Dana", birthday=date(2015, 6, 15))
        assert account.age(on=date(2024, 6, 14)) == 8
        assert account.age(on=date(2024, 6, 15)) == 9

    def test_goal_progress(self):
        account = Account(name="Eve", balance=Decimal("25"))
        assert account.goal_progress(Decimal("100")) == Decimal("0.25")
        assert account.goal_progress(Decimal("10")) == Decimal("1")
        assert account.goal_progress(Decimal("0")) == Decimal("0")

    def test_to_dict_uses_document_keys(self):
        account = Account(
            name="Finn",
            balance=Decimal("12.5"),
            avatar=b"\x89PNG",
            birthday=date(2018, 1, 2),
            gender=Gender.MALE,
        )
        payload = account.to_dict()
        assert payload["id"] == account.account_id
        assert payload["balance"] == 12.5
        assert payload["avatarData"] == "iVBORw=="
        assert payload["birthday"] == "2018-01-02"
        assert payload["gender"] == "male"
        assert payload["shortTermSavingsGoal"] == 0
        assert payload["transactions"] == []

    def test_from_dict_accepts_timestamp_birthday(self):
        payload = Account(name="Gus").to_dict()
        payload["birthday"] = "2017-03-04T08:00:00Z"
        assert Account.from_dict(payload).birthday == date(2017, 3, 4)

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda p: p.pop("name"),
            lambda p: p.update(balance="12"),
            lambda p: p.update(balance=True),
            lambda p: p.update(gender="robot"),
            lambda p: p.update(birthday="yesterday"),
            lambda p: p.update(transactions={}),
            lambda p: p.update(avatarData="***"),
        ],
    )
    def test_from_dict_rejects_bad_shapes(self, mutate):
        payload = Account(name="Hal").to_dict()
        mutate(payload)
        with pytest.raises(DecodeFailure):
            Account.from_dict(payload)


class TestTransaction:
    """Tests for the Transaction record."""

    def test_is_immutable(self):
        txn = Transaction(account_id="a", amount=Decimal("1"), kind=TransactionKind.DEPOSIT)
        with pytest.raises(AttributeError):
            txn.amount = Decimal("2")  # type: ignore[misc]

    def test_signed_amount(self):
        deposit = Transaction(account_id="a", amount="3", kind="deposit")
        withdraw = Transaction(account_id="a", amount="3", kind="withdraw")
        assert deposit.signed_amount == Decimal("3")
        assert withdraw.signed_amount == Decimal("-3")

    def test_timestamp_is_written_as_utc(self):
        txn = Transaction(
            account_id="a",
            amount=Decimal("1"),
            kind=TransactionKind.DEPOSIT,
            created_at=datetime(2024, 9, 8, 10, 30, tzinfo=timezone.utc),
        )
        payload = txn.to_dict()
        assert payload["date"] == "2024-09-08T10:30:00Z"
        assert payload["childId"] == "a"
        assert payload["type"] == "deposit"
        assert Transaction.from_dict(payload) == txn

    def test_from_dict_rejects_unknown_type(self):
        payload = Transaction(account_id="a", amount="1", kind="deposit").to_dict()
        payload["type"] = "transfer"
        with pytest.raises(DecodeFailure):
            Transaction.from_dict(payload)


class TestAmountBounds:
    """Amounts are whole cents and never larger than MAX_AMOUNT."""

    @pytest.mark.parametrize("value", ["1E+5000", "9E+999999", MAX_AMOUNT + Decimal("0.01")])
    def test_rejects_oversized_amounts(self, value):
        with pytest.raises(InvalidAmount):
            parse_amount(value)

    def test_accepts_the_maximum(self):
        assert parse_amount(MAX_AMOUNT) == MAX_AMOUNT

    def test_rounds_to_cents(self):
        assert parse_amount("0.015") == Decimal("0.02")
        assert parse_amount(Decimal("2.50")) == Decimal("2.50")

    def test_sub_cent_amount_is_rejected(self):
        with pytest.raises(InvalidAmount):
            parse_amount("0.004")

    def test_oversized_deposit_leaves_account_untouched(self):
        ledger = Ledger()
        account = ledger.create_account("Ivy")
        for _ in range(2):
            with pytest.raises(InvalidAmount):
                ledger.record_transaction(account.account_id, "9E+999999", "deposit")
        assert account.balance == Decimal("0")
        assert account.transactions == []


class TestBalanceOverflow:
    """A balance that overflows Decimal is coerced to zero."""

    def test_overflowing_balance_becomes_zero(self):
        account = Account(name="Jay")
        for _ in range(2):
            account.apply_transaction(
                Transaction(
                    account_id=account.account_id,
                    amount=Decimal("9E+999999"),
                    kind=TransactionKind.DEPOSIT,
                )
            )
        assert account.balance == Decimal("0")
        assert len(account.transactions) == 2
