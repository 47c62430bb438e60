"""Persistence helpers for the savings ledger."""

from __future__ import annotations

import json
import os
import tempfile
from decimal import Decimal
from pathlib import Path

import structlog

from .errors import DecodeFailure
from .models import Ledger

DEFAULT_DATA_FILE = Path("bankData.json")

log = structlog.get_logger(__name__)


def _reject_constant(name: str) -> None:
    raise DecodeFailure(f"'{name}' is not a valid JSON number")


def encode_ledger(ledger: Ledger) -> bytes:
    """Render the whole ledger as a UTF-8 JSON document."""
    text = json.dumps(ledger.to_list(), indent=2, ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


def decode_ledger(data: bytes | str) -> Ledger:
    """Parse a ledger document, raising DecodeFailure on any malformed input."""
    try:
        payload = json.loads(
            data,
            parse_float=Decimal,
            parse_constant=_reject_constant,
        )
    except DecodeFailure:
        raise
    except ValueError as exc:
        # JSONDecodeError, UnicodeDecodeError and the int digit limit.
        raise DecodeFailure(f"Not a valid JSON document: {exc}") from exc
    return Ledger.from_list(payload)


def write_atomic(path: str | Path, data: bytes) -> None:
    """Write bytes through a temporary file so readers never see a partial file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def load_ledger(data_path: str | Path | None = None) -> Ledger:
    """Load the ledger from disk; return an empty ledger when the file is missing."""
    path = Path(data_path) if data_path else DEFAULT_DATA_FILE
    if not path.exists():
        log.info("ledger_file_missing", path=str(path))
        return Ledger()
    ledger = decode_ledger(path.read_bytes())
    log.debug("ledger_loaded", path=str(path), count=len(ledger.accounts))
    return ledger


def save_ledger(ledger: Ledger, data_path: str | Path | None = None) -> Path:
    """Persist the ledger to disk as JSON."""
    path = Path(data_path) if data_path else DEFAULT_DATA_FILE
    write_atomic(path, encode_ledger(ledger))
    log.debug("ledger_saved", path=str(path), count=len(ledger.accounts))
    return path
