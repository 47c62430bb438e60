"""
Tests for BackupService.

The synchronous *_now methods carry the logic; the background variants are
checked by joining the returned thread.
"""

import json
from decimal import Decimal

from kids_bank.backup import BackupOutcome, BackupService
from kids_bank.store import LedgerStore


def snapshot(store):
    return [
        (
            acc.account_id,
            acc.name,
            acc.balance,
            [(t.transaction_id, t.amount, t.kind, t.note, t.created_at) for t in acc.transactions],
        )
        for acc in store.accounts
    ]


class TestBackup:
    def test_writes_backup_file(self, backup, alice, backup_file, data_file):
        outcome = backup.backup_now()
        assert outcome.success is True
        assert outcome.path == backup_file
        assert backup_file != data_file
        (saved,) = json.loads(backup_file.read_text(encoding="utf-8"))
        assert saved["id"] == alice.account_id
        assert len(saved["transactions"]) == 2

    def test_empty_ledger_fails_without_writing(self, backup, backup_file):
        outcome = backup.backup_now()
        assert outcome.success is False
        assert outcome.path is None
        assert "no data" in outcome.message
        assert not backup_file.exists()

    def test_empty_ledger_keeps_previous_artifact(self, backup, store, alice, backup_file):
        assert backup.backup_now().success
        before = backup_file.read_bytes()
        store.delete_account(alice.account_id)
        assert backup.backup_now().success is False
        assert backup_file.read_bytes() == before

    def test_background_backup_reports_through_callback(self, backup, alice, backup_file):
        outcomes = []
        thread = backup.backup(outcomes.append)
        thread.join(timeout=5)
        assert outcomes == [BackupOutcome(True, "Backup completed successfully.", backup_file)]

    def test_unwritable_target_reports_failure(self, store, alice, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        service = BackupService(store, backup_file=blocker / "backup.json")
        outcome = service.backup_now()
        assert outcome.success is False
        assert outcome.message.startswith("Backup failed")


class TestRestore:
    def test_round_trip(self, backup, store, alice, backup_file):
        bob = store.create_account("Bob")
        store.deposit(bob.account_id, "7.35", note="birthday")
        expected = snapshot(store)
        assert backup.backup_now().success

        store.delete_account(alice.account_id)
        store.create_account("Intruder")
        outcome = backup.restore_now(backup_file.read_bytes())

        assert outcome.success is True
        assert "2 account" in outcome.message
        assert snapshot(store) == expected

    def test_restore_replaces_instead_of_merging(self, backup, store, alice):
        document = backup.export_bytes()
        store.create_account("Extra")
        assert backup.restore_now(document).success
        assert [acc.name for acc in store.accounts] == ["Alice"]

    def test_restore_persists_to_live_file(self, backup, store, alice, data_file):
        document = backup.export_bytes()
        store.delete_account(alice.account_id)
        backup.restore_now(document)
        reloaded = LedgerStore(data_file=data_file)
        reloaded.load()
        assert [acc.account_id for acc in reloaded.accounts] == [alice.account_id]
        assert reloaded.accounts[0].balance == Decimal("15")

    def test_corrupted_buffer_leaves_state_untouched(self, backup, store, alice, data_file):
        expected = snapshot(store)
        on_disk = data_file.read_bytes()
        outcome = backup.restore_now(b"{\"this is\": \"not a ledger\"")
        assert outcome.success is False
        assert outcome.message.startswith("Restore failed")
        assert snapshot(store) == expected
        assert data_file.read_bytes() == on_disk

    def test_wrong_schema_is_rejected(self, backup, store, alice):
        outcome = backup.restore_now(json.dumps([{"id": "x", "name": "No fields"}]).encode())
        assert outcome.success is False
        assert [acc.name for acc in store.accounts] == ["Alice"]

    def test_restore_notifies_listeners(self, backup, store, alice):
        document = backup.export_bytes()
        seen = []
        store.add_listener(lambda s: seen.append(len(s.accounts)))
        backup.restore_now(document)
        assert seen == [1]

    def test_background_restore(self, backup, store, alice):
        document = backup.export_bytes()
        store.delete_account(alice.account_id)
        outcomes = []
        backup.restore(document, outcomes.append).join(timeout=5)
        assert outcomes and outcomes[0].success
        assert store.get_account(alice.account_id) is not None

    def test_restore_file(self, backup, store, alice, backup_file, tmp_path):
        backup.backup_now()
        store.delete_account(alice.account_id)
        assert backup.restore_file(backup_file).success
        assert backup.restore_file(tmp_path / "missing.json").success is False
        assert [acc.account_id for acc in store.accounts] == [alice.account_id]


class TestRestoreFailures:
    def test_unwritable_live_file_leaves_memory_untouched(self, backup, store, alice, tmp_path):
        document = backup.export_bytes()
        store.delete_account(alice.account_id)
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store.data_file = blocker / "bankData.json"

        outcome = backup.restore_now(document)

        assert outcome.success is False
        assert outcome.message.startswith("Restore failed")
        assert store.accounts == ()

    def test_oversized_number_is_rejected(self, backup, store, alice):
        outcome = backup.restore_now(b"[{\"balance\": " + b"9" * 5000 + b"}]")
        assert outcome.success is False
        assert [acc.name for acc in store.accounts] == ["Alice"]

    def test_restore_path_runs_in_background(self, backup, store, alice, backup_file):
        backup.backup_now()
        store.delete_account(alice.account_id)
        outcomes = []
        backup.restore_path(backup_file, outcomes.append).join(timeout=5)
        assert outcomes and outcomes[0].success
        assert [acc.account_id for acc in store.accounts] == [alice.account_id]
