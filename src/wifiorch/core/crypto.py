"""Symmetric encryption for credentials at rest.

AES-256-GCM with a random 12-byte IV prepended to the ciphertext, the
whole blob base64-encoded. The AES key is derived from the
per-installation key with PBKDF2-HMAC-SHA256.
"""

import base64
import binascii
import functools
import hashlib
import logging
import os
import secrets
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import CredentialsError, StorageError

logger = logging.getLogger(__name__)

IV_LENGTH = 12
KDF_SALT = b"wifiorch-credentials"
KDF_ITERATIONS = 100000


@functools.lru_cache(maxsize=8)
def derive_key(key: str) -> bytes:
    """Derive a 256-bit AES key from the installation key."""
    return hashlib.pbkdf2_hmac(
        "sha256",
        key.encode(),
        KDF_SALT,
        iterations=KDF_ITERATIONS,
        dklen=32,
    )


def encrypt(text: str, key: str) -> str:
    """Encrypt ``text`` and return base64(iv || ciphertext)."""
    iv = os.urandom(IV_LENGTH)
    ciphertext = AESGCM(derive_key(key)).encrypt(iv, text.encode(), None)
    return base64.b64encode(iv + ciphertext).decode("ascii")


def decrypt(encrypted_text: str, key: str) -> str:
    """Reverse ``encrypt``.

    Raises:
        CredentialsError: Wrong key, tampered or malformed data
    """
    try:
        blob = base64.b64decode(encrypted_text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CredentialsError("Encrypted value is not valid base64", cause=e) from e
    if len(blob) <= IV_LENGTH:
        raise CredentialsError("Encrypted value is truncated")

    try:
        plaintext = AESGCM(derive_key(key)).decrypt(blob[:IV_LENGTH], blob[IV_LENGTH:], None)
    except InvalidTag as e:
        raise CredentialsError("Failed to decrypt value", cause=e) from e
    return plaintext.decode()


def load_or_create_key(path: str | Path) -> str:
    """Read the per-installation key, generating it on first use.

    Args:
        path: Key file location

    Returns:
        Hex-encoded 32-byte key
    """
    key_path = Path(path).expanduser()
    try:
        if key_path.exists():
            key = key_path.read_text().strip()
            if key:
                return key
            logger.warning("Key file %s is empty, regenerating", key_path)

        key = secrets.token_hex(32)
        key_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(key)
        logger.info("Generated new installation key at %s", key_path)
        return key
    except OSError as e:
        raise StorageError(
            "Cannot access key file", details={"path": str(key_path)}, cause=e
        ) from e
