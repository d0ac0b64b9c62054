"""Type definitions for device pairing."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Literal

# Code statuses
CodeStatus = Literal["pending", "consumed", "expired"]
STATUS_PENDING = "pending"
STATUS_CONSUMED = "consumed"
STATUS_EXPIRED = "expired"

Clock = Callable[[], datetime]


class PairFailure(str, Enum):
    """Reason a pairing attempt was refused."""
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONSUMED = "already_consumed"
    DEVICE_MISMATCH = "device_mismatch"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class PairingCode:
    """A pairing code and its user/device binding."""
    code: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    expected_device_id: str | None = None
    status: CodeStatus = STATUS_PENDING
    consumed_at: datetime | None = None
    consumed_by: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def effective_status(self, now: datetime | None = None) -> CodeStatus:
        """Status as observed at ``now``; expiry is computed, not stored."""
        if self.status == STATUS_PENDING and self.is_expired(now):
            return STATUS_EXPIRED
        return self.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "user_id": self.user_id,
            "expected_device_id": self.expected_device_id,
            "status": self.status,
            "created_at": _format_ts(self.created_at),
            "expires_at": _format_ts(self.expires_at),
            "consumed_at": _format_ts(self.consumed_at),
            "consumed_by": self.consumed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PairingCode":
        return cls(
            code=data["code"],
            user_id=data["user_id"],
            expected_device_id=data.get("expected_device_id"),
            status=data.get("status", STATUS_PENDING),
            created_at=_parse_ts(data["created_at"]),
            expires_at=_parse_ts(data["expires_at"]),
            consumed_at=_parse_ts(data.get("consumed_at")),
            consumed_by=data.get("consumed_by"),
        )


@dataclass(frozen=True)
class Session:
    """A session bound to a paired device. Immutable once issued."""
    token: str
    user_id: str
    device_id: str
    issued_at: datetime
    expires_at: datetime

    @property
    def ttl(self) -> timedelta:
        return self.expires_at - self.issued_at

    @property
    def expires_in(self) -> int:
        """Lifetime in whole seconds."""
        return int(self.ttl.total_seconds())

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at


@dataclass
class PairResult:
    """Outcome of a pairing attempt."""
    success: bool
    session: Session | None = None
    failure: PairFailure | None = None

    @classmethod
    def ok(cls, session: Session) -> "PairResult":
        return cls(success=True, session=session)

    @classmethod
    def failed(cls, reason: PairFailure) -> "PairResult":
        return cls(success=False, failure=reason)


class PairingError(Exception):
    """Base class for expected pairing refusals."""
    reason: PairFailure

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        super().__init__(message or self.reason.value)


class CodeNotFoundError(PairingError):
    reason = PairFailure.NOT_FOUND


class CodeExpiredError(PairingError):
    reason = PairFailure.EXPIRED


class CodeAlreadyConsumedError(PairingError):
    reason = PairFailure.ALREADY_CONSUMED


class DeviceMismatchError(PairingError):
    reason = PairFailure.DEVICE_MISMATCH
