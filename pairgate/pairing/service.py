"""Pairing service: redeem a code, bind the device, issue a session."""

from loguru import logger

from pairgate.pairing.sessions import SessionRegistry
from pairgate.pairing.store import PairingCodeStore
from pairgate.pairing.tokens import TokenIssuer
from pairgate.pairing.types import PairFailure, PairingError, PairResult


class PairingService:
    """
    Orchestrates a single pairing attempt.

    Expected refusals (unknown, expired, used or device-bound codes) come
    back as a failed PairResult. Anything else raised by the store or the
    issuer propagates to the caller.
    """

    def __init__(
        self,
        store: PairingCodeStore,
        issuer: TokenIssuer,
        sessions: SessionRegistry | None = None,
    ):
        self.store = store
        self.issuer = issuer
        self.sessions = sessions if sessions is not None else SessionRegistry(clock=issuer.clock)

    def pair(self, user_id: str, device_id: str, code: str) -> PairResult:
        """
        Redeem ``code`` for ``user_id`` on ``device_id``.

        Args:
            user_id: Non-empty user identifier.
            device_id: Non-empty device identifier.
            code: The 6-character pairing code.

        Returns:
            PairResult carrying the new Session or the failure reason.
        """
        try:
            record = self.store.try_consume(code, device_id)
        except PairingError as e:
            self._audit(user_id, device_id, e.reason.value)
            return PairResult.failed(e.reason)

        if record.user_id != user_id:
            # The code is spent either way; report it like an unknown code.
            self._audit(user_id, device_id, PairFailure.NOT_FOUND.value)
            return PairResult.failed(PairFailure.NOT_FOUND)

        session = self.issuer.issue(user_id, device_id)
        self.sessions.add(session)
        self._audit(user_id, device_id, "paired")
        return PairResult.ok(session)

    def _audit(self, user_id: str, device_id: str, outcome: str) -> None:
        logger.bind(audit=True, user_id=user_id, device_id=device_id, outcome=outcome).info(
            f"Pairing attempt: user={user_id} device={device_id} outcome={outcome}"
        )
