"""Digests, random identifiers and SSH public-key signature checks."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import secrets
import uuid
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.serialization import load_ssh_public_key

if TYPE_CHECKING:
    from pathlib import Path

    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

logger = logging.getLogger(__name__)

_SSH_KEY_TYPES: frozenset[str] = frozenset(
    {
        "ssh-ed25519",
        "ssh-rsa",
        "ecdsa-sha2-nistp256",
        "ecdsa-sha2-nistp384",
        "ecdsa-sha2-nistp521",
    }
)

_ECDSA_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "secp256r1": hashes.SHA256,
    "secp384r1": hashes.SHA384,
    "secp521r1": hashes.SHA512,
}


def hash_content(content: str | bytes) -> str:
    """Compute SHA-256 hash of content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def generate_challenge() -> str:
    """Generate a random challenge string for the signing step."""
    return secrets.token_hex(32)


def generate_token() -> str:
    """Generate a cryptographically secure bearer token."""
    return secrets.token_urlsafe(48)


def generate_note_id() -> str:
    return str(uuid.uuid4())


def normalize_public_key(public_key: str) -> str | None:
    """Reduce an OpenSSH public key line to ``"<type> <base64>"``.

    Leading options (as in authorized_keys) and trailing comments are dropped.
    Returns None if no known key type is present.
    """
    parts = public_key.split()
    for i, part in enumerate(parts[:-1]):
        if part in _SSH_KEY_TYPES:
            return f"{part} {parts[i + 1]}"
    return None


def parse_public_key(public_key: str) -> PublicKeyTypes:
    """Parse an OpenSSH public key line.

    Raises ValueError if the key is not a supported, well-formed SSH key.
    """
    normalized = normalize_public_key(public_key)
    if normalized is None:
        raise ValueError("Unrecognized public key type")
    try:
        return load_ssh_public_key(normalized.encode("ascii"))
    except (ValueError, UnsupportedAlgorithm, UnicodeEncodeError) as exc:
        raise ValueError(f"Invalid public key: {exc}") from exc


def verify_signature(key: PublicKeyTypes, message: bytes, signature_b64: str) -> bool:
    """Verify a base64-encoded signature over *message*.

    Ed25519 signatures are raw, ECDSA signatures DER-encoded with the curve's
    SHA-2 hash, RSA signatures PKCS#1 v1.5 over SHA-256.
    """
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError):
        logger.debug("Signature is not valid base64")
        return False

    try:
        if isinstance(key, Ed25519PublicKey):
            key.verify(signature, message)
        elif isinstance(key, ec.EllipticCurvePublicKey):
            hash_cls = _ECDSA_HASHES.get(key.curve.name)
            if hash_cls is None:
                return False
            key.verify(signature, message, ec.ECDSA(hash_cls()))
        elif isinstance(key, RSAPublicKey):
            key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
        else:
            return False
    except InvalidSignature:
        return False
    return True


def load_authorized_keys(path: Path) -> frozenset[str]:
    """Read an OpenSSH authorized_keys file into a set of normalized keys.

    Blank lines and comments are ignored; malformed entries are logged and
    skipped. Raises OSError if the file cannot be read.
    """
    keys: set[str] = set()
    for lineno, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        normalized = normalize_public_key(line)
        if normalized is None:
            logger.warning("Skipping authorized_keys line %d: unrecognized key type", lineno)
            continue
        try:
            parse_public_key(normalized)
        except ValueError as exc:
            logger.warning("Skipping authorized_keys line %d: %s", lineno, exc)
            continue
        keys.add(normalized)
    return frozenset(keys)
