"""Device pairing: code store, token issuing and the pairing service."""

from pairgate.pairing.types import (
    PairingCode,
    Session,
    PairResult,
    PairFailure,
    PairingError,
    CodeNotFoundError,
    CodeExpiredError,
    CodeAlreadyConsumedError,
    DeviceMismatchError,
)
from pairgate.pairing.store import (
    PairingCodeStore,
    InMemoryPairingCodeStore,
    FilePairingCodeStore,
)
from pairgate.pairing.tokens import TokenIssuer
from pairgate.pairing.sessions import SessionRegistry
from pairgate.pairing.service import PairingService

__all__ = [
    "PairingCode",
    "Session",
    "PairResult",
    "PairFailure",
    "PairingError",
    "CodeNotFoundError",
    "CodeExpiredError",
    "CodeAlreadyConsumedError",
    "DeviceMismatchError",
    "PairingCodeStore",
    "InMemoryPairingCodeStore",
    "FilePairingCodeStore",
    "TokenIssuer",
    "SessionRegistry",
    "PairingService",
]
