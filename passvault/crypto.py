"""
PassVault - Cryptography Module

Every secret the vault stores goes through this file. It is deliberately
small and stateless:
- No module-level mutable state (safe to call from any thread)
- One dependency ('cryptography' library)
- Each function does one thing

Security Architecture:
    1. Master Password + fresh 32-byte salt → PBKDF2-HMAC-SHA256 (100k) → Key (32 bytes)
    2. Key + fresh 12-byte nonce → AES-256-GCM → ciphertext + 16-byte tag
    3. Envelope = (salt, nonce, ciphertext, tag), stored as four byte fields
    4. The derived key is zeroed as soon as the call finishes

Envelope layout:
    salt        32 bytes   key derivation only
    nonce       12 bytes   cipher only
    ciphertext  N bytes    same length as the plaintext
    tag         16 bytes   GCM authentication tag

Security Note:
    Never log passwords, keys, plaintext or ciphertext. Only sizes.
"""

import os
import hmac
import json
import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger("passvault.crypto")


# =============================================================================
# Configuration
# =============================================================================

SALT_SIZE = 32           # 256-bit salt, one per envelope
KEY_SIZE = 32            # 256-bit key (AES-256)
NONCE_SIZE = 12          # 96-bit nonce for AES-GCM
TAG_SIZE = 16            # 128-bit authentication tag

# Not stored in the envelope: changing it makes every existing envelope
# unreadable.
PBKDF2_ITERATIONS = 100_000

HASH_SIZE = SALT_SIZE + KEY_SIZE   # decoded length of a standalone hash


# =============================================================================
# Errors
# =============================================================================

class CryptoError(Exception):
    """Base class for every error raised by this module."""


class InvalidSaltLength(CryptoError):
    """Salt passed to key derivation is not exactly SALT_SIZE bytes."""


class InvalidEnvelope(CryptoError):
    """Envelope is missing, malformed, or has a wrong salt/nonce length."""


class AuthenticationFailed(CryptoError):
    """
    GCM tag did not verify.

    Raised for a wrong password AND for corrupted or tampered data. The two
    causes are never told apart.
    """


class InvalidHashFormat(CryptoError):
    """Standalone password hash does not decode to HASH_SIZE bytes."""


class RandomSourceFailure(CryptoError):
    """The operating system random source could not produce bytes."""


# =============================================================================
# Envelope
# =============================================================================

@dataclass(frozen=True)
class Envelope:
    """One encrypted value: salt, nonce, ciphertext and tag."""
    salt: bytes
    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def to_dict(self) -> Dict[str, str]:
        """Convert to a JSON-serializable dict (base64 values)."""
        return {
            "salt": base64.b64encode(self.salt).decode("ascii"),
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "tag": base64.b64encode(self.tag).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Envelope":
        """
        Rebuild an envelope from to_dict() output.

        Lengths are not checked here; open_envelope() does that.

        Raises:
            InvalidEnvelope: If a field is missing or not valid base64
        """
        try:
            return cls(
                salt=base64.b64decode(data["salt"], validate=True),
                nonce=base64.b64decode(data["nonce"], validate=True),
                ciphertext=base64.b64decode(data["ciphertext"], validate=True),
                tag=base64.b64decode(data["tag"], validate=True),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidEnvelope(f"malformed envelope record: {e}") from None

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> "Envelope":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise InvalidEnvelope(f"envelope is not valid JSON: {e}") from None
        if not isinstance(data, dict):
            raise InvalidEnvelope("envelope JSON must be an object")
        return cls.from_dict(data)


# =============================================================================
# Auxiliary Primitives
# =============================================================================

def random_bytes(n: int) -> bytes:
    """
    Return n bytes from the operating system CSPRNG.

    Raises:
        RandomSourceFailure: If the OS source is unavailable
    """
    try:
        return os.urandom(n)
    except (OSError, NotImplementedError) as e:
        logger.error("Random source failure while reading %d bytes", n)
        raise RandomSourceFailure(f"secure random source unavailable: {e}") from e


def zero_bytes(buf: bytearray) -> None:
    """
    Overwrite a mutable buffer with zeros in place.

    Best-effort only: the interpreter may still hold copies elsewhere.
    """
    buf[:] = bytes(len(buf))


def constant_compare(a: bytes, b: bytes) -> bool:
    """
    Compare two byte strings in constant time.

    Why?
    - Normal comparison (a == b) returns False on the first mismatch
    - An attacker can time it to learn how many bytes matched

    Length is not secret, so a length mismatch returns False immediately.
    Contents are compared with hmac.compare_digest.
    """
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)


# =============================================================================
# Key Derivation
# =============================================================================

def _pbkdf2(password: str, salt: bytes) -> bytes:
    secret = bytearray(password.encode("utf-8"))
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=bytes(salt),
            iterations=PBKDF2_ITERATIONS,
        )
        return kdf.derive(secret)
    finally:
        zero_bytes(secret)


def derive_key(password: str, salt: bytes) -> bytes:
    """
    Derive a 32-byte key from a password using PBKDF2-HMAC-SHA256.

    Deterministic: the same (password, salt) always gives the same key, which
    is what lets open_envelope() rebuild the key seal() used.

    Args:
        password: Master password
        salt: 32-byte salt (stored in the envelope, NOT secret)

    Returns:
        32-byte key

    Raises:
        InvalidSaltLength: If salt is not exactly 32 bytes
    """
    if salt is None or len(salt) != SALT_SIZE:
        got = "None" if salt is None else len(salt)
        raise InvalidSaltLength(
            f"invalid salt length: expected {SALT_SIZE}, got {got}"
        )
    return _pbkdf2(password, salt)


@contextmanager
def _derived_key(password: str, salt: bytes) -> Iterator[bytearray]:
    """Yield the derived key in a buffer that is zeroed on every exit path."""
    key = bytearray(derive_key(password, salt))
    try:
        yield key
    finally:
        zero_bytes(key)


# =============================================================================
# Seal / Open (AES-256-GCM)
# =============================================================================

def seal(plaintext: bytes, password: str) -> Envelope:
    """
    Encrypt plaintext under a password-derived key.

    Steps:
    1. Fresh 32-byte salt → derive key
    2. Fresh 12-byte nonce (independent of the salt)
    3. AES-256-GCM, no associated data
    4. Split output into ciphertext (len(plaintext)) and tag (last 16 bytes)
    5. Zero the key

    Salt and nonce are never reused: both come from the OS CSPRNG on every
    call, never from a counter.

    Args:
        plaintext: Data to encrypt (may be empty)
        password: Master password

    Returns:
        Envelope(salt, nonce, ciphertext, tag)

    Raises:
        RandomSourceFailure: If the OS random source fails
    """
    salt = random_bytes(SALT_SIZE)
    with _derived_key(password, salt) as key:
        aesgcm = AESGCM(key)
        nonce = random_bytes(NONCE_SIZE)
        sealed = aesgcm.encrypt(nonce, plaintext, None)

    envelope = Envelope(
        salt=salt,
        nonce=nonce,
        ciphertext=sealed[:-TAG_SIZE],
        tag=sealed[-TAG_SIZE:],
    )
    logger.debug("Sealed %d bytes", len(plaintext))
    return envelope


def open_envelope(envelope: Optional[Envelope], password: str) -> bytes:
    """
    Decrypt and authenticate an envelope.

    GCM verifies the tag before any plaintext is released, so a failure
    never returns partial data.

    Args:
        envelope: Envelope produced by seal()
        password: Master password

    Returns:
        Plaintext bytes

    Raises:
        InvalidEnvelope: If envelope is None or salt/nonce length is wrong
        AuthenticationFailed: Wrong password, or corrupted/tampered data
    """
    if envelope is None:
        raise InvalidEnvelope("envelope is missing")
    if len(envelope.salt) != SALT_SIZE:
        raise InvalidEnvelope("invalid salt length")
    if len(envelope.nonce) != NONCE_SIZE:
        raise InvalidEnvelope("invalid nonce length")

    with _derived_key(password, envelope.salt) as key:
        aesgcm = AESGCM(key)
        try:
            plaintext = aesgcm.decrypt(
                envelope.nonce, envelope.ciphertext + envelope.tag, None
            )
        except InvalidTag:
            logger.debug("Envelope authentication failed")
            raise AuthenticationFailed(
                "authentication failed: wrong password or corrupted data"
            ) from None

    return plaintext


def encrypt_text(plaintext: str, password: str) -> Envelope:
    """seal() for a UTF-8 string."""
    return seal(plaintext.encode("utf-8"), password)


def decrypt_text(envelope: Optional[Envelope], password: str) -> str:
    """open_envelope() returning a UTF-8 string."""
    return open_envelope(envelope, password).decode("utf-8")


# =============================================================================
# Standalone Password Hash
# =============================================================================

def hash_password(password: str) -> str:
    """
    Hash a password for later verification (no encryption involved).

    Format: base64(salt[32] || PBKDF2(password, salt, 100000, 32))

    Two calls with the same password give different strings (fresh salt).
    """
    salt = random_bytes(SALT_SIZE)
    digest = bytearray(derive_key(password, salt))
    try:
        return base64.b64encode(salt + digest).decode("ascii")
    finally:
        zero_bytes(digest)


def verify_password(password: str, encoded: str) -> bool:
    """
    Check a password against a hash_password() string.

    The comparison uses constant_compare(), never ==.

    Raises:
        InvalidHashFormat: If the string is not base64 or not 64 bytes decoded
    """
    try:
        combined = base64.b64decode(encoded, validate=True)
    except (TypeError, ValueError) as e:
        raise InvalidHashFormat(f"failed to decode hash: {e}") from None

    if len(combined) != HASH_SIZE:
        raise InvalidHashFormat("invalid hash format")

    salt = combined[:SALT_SIZE]
    stored = combined[SALT_SIZE:]

    with _derived_key(password, salt) as candidate:
        return constant_compare(candidate, stored)
