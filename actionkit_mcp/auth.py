"""
Signed user assertions for the ActionKit API.

ActionKit authenticates every request with a JWT that we sign ourselves:
the project's RSA private key (registered with Paragon) signs a short claim
set identifying the user the action runs on behalf of.

Token structure (JWT payload):
    {
        "sub": "alice@company.com",   # The Paragon user the call acts for
        "iat": 1738800000,            # Issued at (Unix timestamp)
        "exp": 1739404800             # iat + 7 days
    }

Expiry is enforced by ActionKit, not locally. A fresh token is minted on
every sign() call and never modified afterwards.
"""

import time
from dataclasses import dataclass
from typing import Callable

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from actionkit_mcp.errors import ConfigurationError, InvalidRequestError

ASSERTION_LIFETIME_SECONDS = 60 * 60 * 24 * 7
SIGNING_ALGORITHM = "RS256"


def normalize_key(key: str) -> str:
    """Turn literal "\\n" sequences (single-line env vars) into real newlines."""
    return key.replace("\\n", "\n").strip()


@dataclass(frozen=True)
class SignedAssertion:
    """
    A signed identity assertion for one user.

    Attributes:
        subject: The identity the token was issued for ("sub")
        issued_at: Unix timestamp of issue ("iat")
        expires_at: Unix timestamp of expiry ("exp"), always issued_at + 7 days
        token: The encoded JWT, sent as "Authorization: Bearer <token>"
    """

    subject: str
    issued_at: int
    expires_at: int
    token: str

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.token}"


class TokenSigner:
    """
    Signs assertions with the configured RSA private key.

    The key is parsed once at construction so that a missing or broken key
    is reported at startup rather than on the first tool call.
    """

    def __init__(self, signing_key: str | None, clock: Callable[[], float] = time.time):
        if not signing_key or not signing_key.strip():
            raise ConfigurationError("A signing key is required to sign ActionKit assertions")

        try:
            self._key = serialization.load_pem_private_key(
                normalize_key(signing_key).encode("utf-8"),
                password=None,
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(f"Signing key is not a usable PEM private key: {e}")

        if not isinstance(self._key, rsa.RSAPrivateKey):
            raise ConfigurationError(
                f"Signing key must be an RSA private key for RS256, got {type(self._key).__name__}"
            )

        self._clock = clock

    def sign(self, identity: str) -> SignedAssertion:
        """
        Sign a fresh assertion for `identity`.

        Raises:
            InvalidRequestError: If the identity is empty
        """
        if not identity:
            raise InvalidRequestError("Cannot sign an assertion for an empty identity")

        issued_at = int(self._clock())
        expires_at = issued_at + ASSERTION_LIFETIME_SECONDS

        token = jwt.encode(
            {"sub": identity, "iat": issued_at, "exp": expires_at},
            self._key,
            algorithm=SIGNING_ALGORITHM,
        )
        return SignedAssertion(
            subject=identity,
            issued_at=issued_at,
            expires_at=expires_at,
            token=token,
        )
