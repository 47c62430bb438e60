"""Shared fixtures: every test gets its own data directory."""

from decimal import Decimal

import pytest

from kids_bank.backup import BackupService
from kids_bank.store import LedgerStore


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "bankData.json"


@pytest.fixture
def backup_file(tmp_path):
    return tmp_path / "bankDataBackup.json"


@pytest.fixture
def store(data_file):
    ledger_store = LedgerStore(data_file=data_file)
    ledger_store.load()
    return ledger_store


@pytest.fixture
def backup(store, backup_file):
    return BackupService(store, backup_file=backup_file)


@pytest.fixture
def alice(store):
    """Alice with an allowance deposit and a toy withdrawal."""
    account = store.create_account("Alice", short_term_wish="Bike", short_term_goal=Decimal("100"))
    store.deposit(account.account_id, "20.00", note="allowance")
    store.withdraw(account.account_id, "5.00", note="toy")
    return account
