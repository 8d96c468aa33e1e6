import base64
import hashlib
import hmac
import os
import secrets
from typing import NamedTuple


# scrypt work factors; the derivation needs N * 128 * r bytes (32 MiB here),
# which is also OpenSSL's default ceiling, so maxmem is raised explicitly
SCRYPT_N = 2 ** 15
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_MAXMEM = 64 * 1024 * 1024
SALT_BYTES = 16
DERIVED_KEY_BYTES = 64

API_KEY_PREFIX = "gl_"
API_KEY_HINT_LENGTH = 4

# Well-formed credential that matches no password, verified against when the
# account does not exist so both paths pay for a full derivation
DUMMY_CREDENTIAL = "aa" * SALT_BYTES + ":" + "aa" * DERIVED_KEY_BYTES
DUMMY_API_KEY_HASH = "0" * 64


class ApiKeyMaterial(NamedTuple):
    raw: str
    hash: str
    hint: str


def newkey(n: int) -> str:
    """Generate a cryptographically secure random key."""
    return os.urandom(n).hex()


def new_session_id() -> str:
    """Generate a 256-bit opaque session identifier."""
    return newkey(32)


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        maxmem=SCRYPT_MAXMEM,
        dklen=DERIVED_KEY_BYTES,
    )


def hash_password(password: str) -> str:
    """
    Hash a password with scrypt and a fresh random salt.

    Args:
        password: The plain text password

    Returns:
        The credential serialized as "salt_hex:hash_hex"
    """
    salt = os.urandom(SALT_BYTES)
    return f"{salt.hex()}:{_derive(password, salt).hex()}"


def verify_password(password: str, stored: str) -> bool:
    """
    Verify a password against a stored scrypt credential.

    The candidate is always fully derived and compared in constant time.

    Args:
        password: The plain text password to verify
        stored: Credential produced by hash_password()

    Returns:
        True if the password matches, False otherwise
    """
    try:
        salt_hex, hash_hex = stored.split(":", 1)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except (ValueError, AttributeError):
        return False

    candidate = _derive(password, salt)
    return hmac.compare_digest(candidate, expected)


def verify_password_or_dummy(password: str, stored: str | None) -> bool:
    """
    Verify a password for an account that may not exist.

    When there is no stored credential the dummy one is checked instead, so
    "unknown account" and "wrong password" take the same time.
    """
    matched = verify_password(password, stored if stored is not None else DUMMY_CREDENTIAL)
    return matched and stored is not None


def hash_api_key(raw: str) -> str:
    """
    Hash a raw API key with SHA-256.

    Keys carry 256 bits of entropy, so an unsalted fast hash is enough
    for bearer-token lookup.
    """
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def new_api_key() -> ApiKeyMaterial:
    """
    Generate a new API key.

    Returns:
        ApiKeyMaterial with the raw key (shown to the user once), its
        SHA-256 hex digest and the last four characters as a hint
    """
    secret = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
    raw = f"{API_KEY_PREFIX}{secret}"
    return ApiKeyMaterial(raw=raw, hash=hash_api_key(raw), hint=raw[-API_KEY_HINT_LENGTH:])


def verify_api_key(provided: str, stored_hash: str) -> bool:
    """
    Verify a raw API key against a stored SHA-256 hex digest.

    Digest bytes are compared in constant time.
    """
    provided_digest = hashlib.sha256(provided.encode("utf-8")).digest()
    try:
        stored_digest = bytes.fromhex(stored_hash)
    except ValueError:
        return False
    return hmac.compare_digest(provided_digest, stored_digest)


def format_hint(hint: str) -> str:
    """Render a stored hint the way listings show it, e.g. "gl_...a1b2"."""
    return f"{API_KEY_PREFIX}...{hint}"
