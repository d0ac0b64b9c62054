"""Pairing code store with atomic single-use consumption."""

import json
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

from filelock import FileLock
from loguru import logger

from pairgate.pairing.types import (
    STATUS_CONSUMED,
    STATUS_PENDING,
    Clock,
    CodeAlreadyConsumedError,
    CodeExpiredError,
    CodeNotFoundError,
    DeviceMismatchError,
    PairingCode,
    utcnow,
)

# Constants
PAIRING_CODE_LENGTH = 6
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # No ambiguous chars (0O1I)
PAIRING_CODE_TTL = timedelta(minutes=10)
PAIRING_RETENTION = timedelta(days=1)
LOCK_TIMEOUT_SECONDS = 10


def generate_code(existing_codes: set[str]) -> str:
    """Generate a pairing code not present in ``existing_codes``."""
    for _ in range(500):
        code = "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(PAIRING_CODE_LENGTH))
        if code not in existing_codes:
            return code
    raise RuntimeError("Failed to generate unique pairing code")


def _consume(record: PairingCode | None, code: str, device_id: str, now: datetime) -> PairingCode:
    """
    Decide and apply a consumption on ``record``.

    Must be called while holding the store's lock. Checks run in a fixed
    order: existence, expiry, prior consumption, device binding. Only the
    final step mutates the record.
    """
    if record is None:
        raise CodeNotFoundError(code)
    if record.is_expired(now):
        raise CodeExpiredError(code)
    if record.status != STATUS_PENDING:
        raise CodeAlreadyConsumedError(code)
    if record.expected_device_id and record.expected_device_id != device_id:
        raise DeviceMismatchError(code)

    record.status = STATUS_CONSUMED
    record.consumed_at = now
    record.consumed_by = device_id
    return record


def _is_prunable(record: PairingCode, now: datetime, retention: timedelta) -> bool:
    if record.status == STATUS_CONSUMED:
        return now - (record.consumed_at or record.created_at) > retention
    return record.is_expired(now) and now - record.expires_at > retention


class PairingCodeStore(ABC):
    """
    Owner of pairing code records.

    ``try_consume`` is the only operation that changes a record's status
    and is atomic per store: among concurrent callers for the same code,
    exactly one succeeds.
    """

    def __init__(self, clock: Clock = utcnow, code_ttl: timedelta = PAIRING_CODE_TTL):
        self._clock = clock
        self.code_ttl = code_ttl

    @abstractmethod
    def lookup(self, code: str) -> PairingCode | None:
        """Return the record for ``code`` or None."""
        pass

    @abstractmethod
    def try_consume(self, code: str, device_id: str) -> PairingCode:
        """
        Atomically consume ``code`` on behalf of ``device_id``.

        Returns the consumed record. Raises CodeNotFoundError,
        CodeExpiredError, CodeAlreadyConsumedError or DeviceMismatchError.
        """
        pass

    @abstractmethod
    def create_code(
        self,
        user_id: str,
        expected_device_id: str | None = None,
        ttl: timedelta | None = None,
        code: str | None = None,
    ) -> PairingCode:
        """Provision a new pending code for ``user_id``."""
        pass

    @abstractmethod
    def list_codes(self) -> list[PairingCode]:
        """List all records, oldest first."""
        pass

    @abstractmethod
    def prune(self, now: datetime | None = None, retention: timedelta = PAIRING_RETENTION) -> int:
        """Drop stale consumed/expired records. Returns number removed."""
        pass

    def _new_record(
        self,
        user_id: str,
        existing: dict[str, PairingCode],
        expected_device_id: str | None,
        ttl: timedelta | None,
        code: str | None,
    ) -> PairingCode:
        now = self._clock()
        if code is None:
            code = generate_code(set(existing))
        else:
            if len(code) != PAIRING_CODE_LENGTH:
                raise ValueError(f"Pairing code must be {PAIRING_CODE_LENGTH} characters")
            current = existing.get(code)
            if current is not None and current.effective_status(now) == STATUS_PENDING:
                raise ValueError(f"Pairing code already outstanding: {code}")
        return PairingCode(
            code=code,
            user_id=user_id,
            expected_device_id=expected_device_id or None,
            created_at=now,
            expires_at=now + (ttl if ttl is not None else self.code_ttl),
        )


class InMemoryPairingCodeStore(PairingCodeStore):
    """Process-local store; a single lock serializes all mutations."""

    def __init__(self, clock: Clock = utcnow, code_ttl: timedelta = PAIRING_CODE_TTL):
        super().__init__(clock=clock, code_ttl=code_ttl)
        self._codes: dict[str, PairingCode] = {}
        self._lock = threading.Lock()

    def lookup(self, code: str) -> PairingCode | None:
        with self._lock:
            record = self._codes.get(code)
            return replace(record) if record else None

    def try_consume(self, code: str, device_id: str) -> PairingCode:
        with self._lock:
            return replace(_consume(self._codes.get(code), code, device_id, self._clock()))

    def create_code(
        self,
        user_id: str,
        expected_device_id: str | None = None,
        ttl: timedelta | None = None,
        code: str | None = None,
    ) -> PairingCode:
        with self._lock:
            record = self._new_record(user_id, self._codes, expected_device_id, ttl, code)
            self._codes[record.code] = record
            return replace(record)

    def list_codes(self) -> list[PairingCode]:
        with self._lock:
            return sorted((replace(r) for r in self._codes.values()), key=lambda r: r.created_at)

    def prune(self, now: datetime | None = None, retention: timedelta = PAIRING_RETENTION) -> int:
        now = now or self._clock()
        with self._lock:
            stale = [c for c, r in self._codes.items() if _is_prunable(r, now, retention)]
            for code in stale:
                del self._codes[code]
            return len(stale)


def _read_json_file(path: Path, default: dict) -> dict:
    """Read a JSON file, returning ``default`` if it does not exist yet."""
    if not path.exists():
        return default
    text = path.read_text()
    if not text.strip():
        return default
    return json.loads(text)


def _write_json_file(path: Path, data: dict) -> None:
    """Write a JSON file with atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f".{secrets.token_hex(4)}.tmp")
    tmp_path.write_text(json.dumps(data, indent=2) + "\n")
    tmp_path.chmod(0o600)
    tmp_path.replace(path)


class FilePairingCodeStore(PairingCodeStore):
    """
    JSON-file store shared between processes.

    Every operation runs under a FileLock on a sibling ``.lock`` file, so
    several server instances pointed at the same path still consume each
    code at most once. A thread lock is taken first since FileLock is
    re-entrant.
    """

    def __init__(
        self,
        path: Path,
        clock: Clock = utcnow,
        code_ttl: timedelta = PAIRING_CODE_TTL,
    ):
        super().__init__(clock=clock, code_ttl=code_ttl)
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_lock = FileLock(self.path.with_suffix(".lock"), timeout=LOCK_TIMEOUT_SECONDS)
        self._thread_lock = threading.Lock()

    def _load(self) -> dict[str, PairingCode]:
        data = _read_json_file(self.path, {"version": 1, "codes": []})
        records = {}
        for raw in data.get("codes", []):
            if not isinstance(raw, dict) or "code" not in raw or "user_id" not in raw:
                logger.warning(f"Skipping malformed pairing record in {self.path}")
                continue
            record = PairingCode.from_dict(raw)
            records[record.code] = record
        return records

    def _save(self, records: dict[str, PairingCode]) -> None:
        _write_json_file(self.path, {
            "version": 1,
            "codes": [r.to_dict() for r in sorted(records.values(), key=lambda r: r.created_at)],
        })

    def lookup(self, code: str) -> PairingCode | None:
        with self._thread_lock, self._file_lock:
            return self._load().get(code)

    def try_consume(self, code: str, device_id: str) -> PairingCode:
        with self._thread_lock, self._file_lock:
            records = self._load()
            record = _consume(records.get(code), code, device_id, self._clock())
            self._save(records)
            return record

    def create_code(
        self,
        user_id: str,
        expected_device_id: str | None = None,
        ttl: timedelta | None = None,
        code: str | None = None,
    ) -> PairingCode:
        with self._thread_lock, self._file_lock:
            records = self._load()
            record = self._new_record(user_id, records, expected_device_id, ttl, code)
            records[record.code] = record
            self._save(records)
            return record

    def list_codes(self) -> list[PairingCode]:
        with self._thread_lock, self._file_lock:
            return sorted(self._load().values(), key=lambda r: r.created_at)

    def prune(self, now: datetime | None = None, retention: timedelta = PAIRING_RETENTION) -> int:
        now = now or self._clock()
        with self._thread_lock, self._file_lock:
            records = self._load()
            kept = {c: r for c, r in records.items() if not _is_prunable(r, now, retention)}
            removed = len(records) - len(kept)
            if removed:
                self._save(kept)
            return removed
