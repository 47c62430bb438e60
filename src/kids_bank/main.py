"""Entry point for running the savings application."""

from __future__ import annotations

import argparse
from typing import Sequence

import structlog

from .backup import BackupService
from .config import Settings, get_settings
from .logging_config import configure_logging
from .store import LedgerStore


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Kids savings desktop application")
    parser.add_argument(
        "--data-file",
        dest="data_file",
        help="Path to the JSON file holding the ledger (defaults to bankData.json in the data directory).",
    )
    parser.add_argument(
        "--backup-file",
        dest="backup_file",
        help="Path the backup is written to (defaults to bankDataBackup.json in the data directory).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level.",
    )
    return parser.parse_args(argv)


def build_services(
    args: argparse.Namespace, settings: Settings | None = None
) -> tuple[LedgerStore, BackupService]:
    """Create the store and backup service, letting flags override settings."""
    settings = settings or get_settings()
    store = LedgerStore(data_file=args.data_file or settings.data_file)
    backup = BackupService(store, backup_file=args.backup_file or settings.backup_file)
    return store, backup


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, json=settings.log_json)
    store, backup = build_services(args, settings)
    structlog.get_logger(__name__).info(
        "starting", data_file=str(store.data_file), backup_file=str(backup.backup_file)
    )

    from .app import run_app

    run_app(store, backup)


if __name__ == "__main__":
    main()
