"""Authentication: SSH public-key challenge-response and bearer tokens.

Flow:
1. The client asks for a challenge for one of its public keys. The key must
   be in the authorized_keys allow-list.
2. The client signs the challenge string (UTF-8) with the private key and
   sends the base64 signature back.
3. A valid signature consumes the challenge and mints a bearer token.

Tokens are stored as SHA-256 digests; the plaintext only leaves the server
once, in the verify response.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notedrive.exceptions import ContentError, InvalidInputError, UnauthorizedError
from notedrive.services import crypto_service
from notedrive.services.datetime_service import now_ms, seconds_to_ms

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from notedrive.config import AuthSettings
    from notedrive.services.index_store import IndexStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedChallenge:
    challenge: str
    public_key: str
    expires_at: int


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: int


def _key_label(public_key: str) -> str:
    """Shortened key for log output."""
    return public_key if len(public_key) <= 40 else f"{public_key[:40]}..."


class AuthManager:
    """Challenge-response authentication against an authorized_keys allow-list.

    The allow-list is an immutable snapshot replaced by a single assignment,
    so request threads read it without locking. Reloads are serialized.
    """

    def __init__(
        self,
        store: IndexStore,
        authorized_keys_path: Path,
        token_expiry: int = 86400,
        challenge_expiry: int = 300,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._authorized_keys_path = authorized_keys_path
        self._token_expiry_ms = seconds_to_ms(token_expiry)
        self._challenge_expiry_ms = seconds_to_ms(challenge_expiry)
        self._clock = clock
        self._reload_lock = threading.Lock()
        self._authorized_keys: frozenset[str] = frozenset()

    @classmethod
    def from_settings(
        cls,
        store: IndexStore,
        authorized_keys_path: Path,
        settings: AuthSettings,
        clock: Callable[[], int] = now_ms,
    ) -> AuthManager:
        return cls(
            store,
            authorized_keys_path,
            token_expiry=settings.token_expiry,
            challenge_expiry=settings.challenge_expiry,
            clock=clock,
        )

    @property
    def authorized_keys(self) -> frozenset[str]:
        return self._authorized_keys

    def is_authorized(self, public_key: str) -> bool:
        normalized = crypto_service.normalize_public_key(public_key)
        return normalized is not None and normalized in self._authorized_keys

    def load_authorized_keys(self) -> int:
        """Read the authorized_keys file and swap in the new allow-list.

        Returns the number of keys loaded. Raises ContentError if the file is
        missing or unreadable; the previous allow-list stays in effect.
        """
        with self._reload_lock:
            try:
                keys = crypto_service.load_authorized_keys(self._authorized_keys_path)
            except (OSError, UnicodeDecodeError) as exc:
                raise ContentError(
                    "Failed to read authorized keys", path=str(self._authorized_keys_path)
                ) from exc
            self._authorized_keys = keys
        logger.info("Loaded %d authorized keys from %s", len(keys), self._authorized_keys_path)
        return len(keys)

    def reload_authorized_keys(self) -> int:
        return self.load_authorized_keys()

    def create_challenge(self, public_key: str) -> IssuedChallenge:
        """Issue a single-use challenge for an authorized public key."""
        if not public_key or not public_key.strip():
            raise InvalidInputError("Public key must not be empty")

        normalized = crypto_service.normalize_public_key(public_key)
        if normalized is None or normalized not in self._authorized_keys:
            logger.warning("Challenge requested for unknown key %s", _key_label(public_key))
            raise UnauthorizedError("Public key not authorized")
        try:
            crypto_service.parse_public_key(normalized)
        except ValueError as exc:
            raise UnauthorizedError("Invalid public key") from exc

        challenge = crypto_service.generate_challenge()
        expires_at = self._clock() + self._challenge_expiry_ms
        self._store.store_challenge(challenge, normalized, expires_at)
        logger.debug("Issued challenge for %s", _key_label(normalized))
        return IssuedChallenge(challenge=challenge, public_key=normalized, expires_at=expires_at)

    def verify_challenge(self, challenge: str, public_key: str, signature: str) -> IssuedToken:
        """Check a signed challenge and issue a bearer token.

        The challenge is consumed first, so a failed signature check still
        burns it.
        """
        normalized = crypto_service.normalize_public_key(public_key)
        if normalized is None:
            raise UnauthorizedError("Invalid public key")

        if not self._store.validate_and_consume_challenge(challenge, normalized):
            logger.warning("Rejected challenge for %s", _key_label(normalized))
            raise UnauthorizedError("Invalid or expired challenge")

        if normalized not in self._authorized_keys:
            logger.warning("Key %s removed from allow-list", _key_label(normalized))
            raise UnauthorizedError("Public key not authorized")

        try:
            key = crypto_service.parse_public_key(normalized)
        except ValueError as exc:
            raise UnauthorizedError("Invalid public key") from exc

        if not crypto_service.verify_signature(key, challenge.encode("utf-8"), signature):
            logger.warning("Signature verification failed for %s", _key_label(normalized))
            raise UnauthorizedError("Signature verification failed")

        token = crypto_service.generate_token()
        expires_at = self._clock() + self._token_expiry_ms
        self._store.store_token(crypto_service.hash_content(token), expires_at)
        logger.info("Authenticated %s", _key_label(normalized))
        return IssuedToken(token=token, expires_at=expires_at)

    def validate_token(self, token: str) -> bool:
        if not token:
            return False
        return self._store.validate_token(crypto_service.hash_content(token))

    def cleanup_expired(self) -> int:
        """Sweep expired tokens. Expired challenges are left in place."""
        return self._store.sweep_expired_tokens()
