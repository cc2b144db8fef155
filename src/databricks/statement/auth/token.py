"""
Credential classes with expiry handling.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    """A token handed out by a platform identity endpoint."""

    token: str
    expires_on: Optional[float] = None


@dataclass(frozen=True)
class ResolvedCredential:
    """
    A bearer credential produced by a credential source.

    :param token: The opaque bearer token
    :param acquired_at: Unix timestamp of acquisition
    :param ttl_hint: Seconds the token is expected to stay valid, if known
    :param source: Name of the source that produced the token
    """

    token: str = field(repr=False)
    acquired_at: float = field(default_factory=time.time)
    ttl_hint: Optional[float] = None
    source: Optional[str] = None

    def __str__(self) -> str:
        """Return the credential in the format used for Authorization headers."""
        return f"Bearer {self.token}"

    @property
    def expires_at(self) -> Optional[float]:
        if self.ttl_hint is None:
            return None
        return self.acquired_at + self.ttl_hint

    def is_valid(self, now: Optional[float] = None) -> bool:
        """Whether the credential is non-empty and not known to have expired."""
        if not self.token:
            return False
        if self.expires_at is None:
            return True
        now = time.time() if now is None else now
        return now < self.expires_at


def jwt_ttl_hint(token: str, now: Optional[float] = None) -> Optional[float]:
    """
    Seconds until the ``exp`` claim of ``token``, or None when the token is not
    a JWT or carries no expiry. The signature is not verified.
    """

    try:
        decoded = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.debug(f"Token is not a decodable JWT: {e}")
        return None

    exp = decoded.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    now = time.time() if now is None else now
    return max(float(exp) - now, 0.0)
