"""Session token issuing."""

import secrets
from datetime import timedelta

from pairgate.pairing.types import Clock, Session, utcnow

# 32 bytes from the OS CSPRNG -> 43 URL-safe characters
TOKEN_BYTES = 32
DEFAULT_TOKEN_TTL = timedelta(seconds=3600)


class TokenIssuer:
    """
    Issues session tokens for paired devices.

    Tokens come from ``secrets.token_urlsafe`` (256 bits of OS randomness),
    so no uniqueness check is made.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TOKEN_TTL, clock: Clock = utcnow):
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")
        self.ttl = ttl
        self.clock = clock

    def issue(self, user_id: str, device_id: str) -> Session:
        issued_at = self.clock()
        return Session(
            token=secrets.token_urlsafe(TOKEN_BYTES),
            user_id=user_id,
            device_id=device_id,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl,
        )
