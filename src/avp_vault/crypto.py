"""
Vault envelope encryption.

Envelope layout on disk::

    IV (16 bytes) || GCM tag (16 bytes) || AES-256-GCM ciphertext

The key is derived from a password with scrypt over a fixed salt, so two
vaults opened with the same password share a key. Use distinct passwords
per vault file when they must stay isolated from each other.

Security Note:
    Never log passwords, derived keys or plaintext.
"""
import os
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from avp_vault.errors import EncryptionError, IntegrityError

logger = logging.getLogger("avp_vault.crypto")

FILE_BACKEND_SALT = b"avp_file_backend_v1"
KEY_LENGTH = 32  # AES-256
IV_SIZE = 16
TAG_SIZE = 16
HEADER_SIZE = IV_SIZE + TAG_SIZE

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def derive_key(password: str, salt: bytes = FILE_BACKEND_SALT) -> bytes:
    """Derive a 32-byte key from ``password`` using scrypt."""
    kdf = Scrypt(
        salt=salt,
        length=KEY_LENGTH,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_envelope(key: bytes, plaintext: bytes) -> bytes:
    """Encrypt ``plaintext`` under a fresh random IV."""
    iv = os.urandom(IV_SIZE)
    try:
        sealed = AESGCM(key).encrypt(iv, plaintext, None)
    except (ValueError, TypeError) as e:
        raise EncryptionError(f"Encryption failed: {e}") from e

    # AESGCM appends the tag; move it in front of the ciphertext
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return iv + tag + ciphertext


def decrypt_envelope(key: bytes, blob: bytes) -> bytes:
    """
    Verify and decrypt an envelope.

    Raises:
        IntegrityError: The blob is truncated or its tag does not verify
            (wrong password or tampered data)
        EncryptionError: The key is unusable
    """
    if len(blob) < HEADER_SIZE:
        raise IntegrityError(
            f"Envelope too short: {len(blob)} bytes",
            detail={"size": len(blob)},
        )

    iv = blob[:IV_SIZE]
    tag = blob[IV_SIZE:HEADER_SIZE]
    ciphertext = blob[HEADER_SIZE:]

    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        logger.warning("Envelope authentication failed")
        raise IntegrityError(
            "Authentication tag mismatch (wrong password or corrupted data)"
        ) from e
    except (ValueError, TypeError) as e:
        raise EncryptionError(f"Decryption failed: {e}") from e
