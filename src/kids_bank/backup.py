"""Backup and restore of the whole ledger to a standalone JSON file."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import structlog

from .errors import DecodeFailure, EmptyLedger
from .storage import decode_ledger, write_atomic
from .store import LedgerStore

log = structlog.get_logger(__name__)

DEFAULT_BACKUP_FILE = Path("bankDataBackup.json")


@dataclass(frozen=True)
class BackupOutcome:
    """Result reported to the caller once a backup or restore finishes."""

    success: bool
    message: str
    path: Optional[Path] = None


OutcomeCallback = Callable[[BackupOutcome], None]


class BackupService:
    """Write the ledger to the backup file and load it back.

    ``backup`` and ``restore`` run on a daemon thread and report through a
    callback; the ``*_now`` variants do the same work on the caller's thread.
    Only one operation runs at a time.
    """

    def __init__(self, store: LedgerStore, *, backup_file: str | Path | None = None) -> None:
        self.store = store
        self.backup_file = Path(backup_file) if backup_file else DEFAULT_BACKUP_FILE
        self._operation_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Export
    # ------------------------------------------------------------------ #
    def export_bytes(self) -> bytes:
        """The current ledger as a document ready to hand to a save dialog."""
        return self.store.export_document()

    def backup_now(self) -> BackupOutcome:
        with self._operation_lock:
            try:
                data = self.export_bytes()
                write_atomic(self.backup_file, data)
            except EmptyLedger as exc:
                log.warning("backup_skipped", reason=str(exc))
                return BackupOutcome(False, "Backup failed: there is no data to back up.")
            except (OSError, ValueError) as exc:
                log.error("backup_failed", path=str(self.backup_file), error=str(exc))
                return BackupOutcome(False, f"Backup failed: {exc}")
        log.info("backup_written", path=str(self.backup_file), size=len(data))
        return BackupOutcome(True, "Backup completed successfully.", self.backup_file)

    def backup(self, on_complete: OutcomeCallback | None = None) -> threading.Thread:
        return self._run_in_background(self.backup_now, on_complete)

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #
    def restore_now(self, data: bytes) -> BackupOutcome:
        """Replace every account with the contents of ``data``, or change nothing."""
        with self._operation_lock:
            try:
                ledger = decode_ledger(data)
            except DecodeFailure as exc:
                log.error("restore_decode_failed", error=str(exc))
                return BackupOutcome(False, f"Restore failed: {exc}")
            try:
                self.store.replace_all(ledger.accounts)
            except (OSError, ValueError) as exc:
                log.error("restore_save_failed", error=str(exc))
                return BackupOutcome(False, f"Restore failed: {exc}")
        count = len(ledger.accounts)
        log.info("restore_completed", count=count)
        return BackupOutcome(True, f"Restore successful, {count} account(s) restored.")

    def restore_file(self, path: str | Path) -> BackupOutcome:
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            log.error("restore_read_failed", path=str(path), error=str(exc))
            return BackupOutcome(False, f"Restore failed: {exc}")
        return self.restore_now(data)

    def restore(
        self,
        data: bytes,
        on_complete: OutcomeCallback | None = None,
    ) -> threading.Thread:
        return self._run_in_background(lambda: self.restore_now(data), on_complete)

    def restore_path(
        self,
        path: str | Path,
        on_complete: OutcomeCallback | None = None,
    ) -> threading.Thread:
        return self._run_in_background(lambda: self.restore_file(path), on_complete)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _run_in_background(
        work: Callable[[], BackupOutcome],
        on_complete: OutcomeCallback | None,
    ) -> threading.Thread:
        def worker() -> None:
            outcome = work()
            if on_complete:
                on_complete(outcome)

        thread = threading.Thread(target=worker, daemon=True)
        thread.start()
        return thread
