"""Versioned symmetric encryption for secrets persisted in state.

Two formats exist:

- ``v1:`` (legacy, decrypt only): the SecretBox key is a BLAKE2b hash of the
  passphrase; payload is ``base64(nonce || ciphertext)``.
- ``v2:`` (current): a random salt is prepended and the SecretBox key is
  derived from the hashed passphrase with libsodium's ``crypto_kdf``
  construction; payload is ``base64(salt || nonce || ciphertext)``.

Values without a recognised prefix are treated as v1.
"""

from __future__ import annotations

import base64
import binascii

import nacl.utils
from nacl.encoding import RawEncoder
from nacl.exceptions import CryptoError
from nacl.hash import blake2b
from nacl.secret import SecretBox

from statecraft.core.errors import DecryptionError

ENCRYPTION_VERSION_V1 = "v1:"
ENCRYPTION_VERSION_V2 = "v2:"

SALT_BYTES = 32
KDF_CONTEXT = b"alchemy"
KDF_SUBKEY_ID = 1
KDF_KEY_BYTES = 32


def _hash_passphrase(passphrase: str, size: int) -> bytes:
    return blake2b(passphrase.encode("utf-8"), digest_size=size, encoder=RawEncoder)


def _derive_subkey(master_key: bytes, subkey_id: int, context: bytes, size: int) -> bytes:
    # crypto_kdf_derive_from_key: keyed BLAKE2b over an empty message with the
    # little-endian subkey id as salt and the context as personalisation.
    return blake2b(
        b"",
        digest_size=size,
        key=master_key,
        salt=subkey_id.to_bytes(8, "little"),
        person=context,
        encoder=RawEncoder,
    )


def _v1_key(passphrase: str) -> bytes:
    return _hash_passphrase(passphrase, SecretBox.KEY_SIZE)


def _v2_key(passphrase: str) -> bytes:
    master_key = _hash_passphrase(passphrase, KDF_KEY_BYTES)
    return _derive_subkey(master_key, KDF_SUBKEY_ID, KDF_CONTEXT, SecretBox.KEY_SIZE)


def encrypt(value: str, passphrase: str) -> str:
    """Encrypt ``value`` under ``passphrase`` using the current (v2) format."""
    salt = nacl.utils.random(SALT_BYTES)
    box = SecretBox(_v2_key(passphrase))
    sealed = box.encrypt(value.encode("utf-8"))  # nonce || ciphertext
    return ENCRYPTION_VERSION_V2 + base64.b64encode(salt + bytes(sealed)).decode("ascii")


def decrypt(encrypted: str, passphrase: str) -> str:
    """Decrypt a value produced by either format.

    Raises:
        DecryptionError: if the key is wrong or the payload is corrupt.
    """
    if encrypted.startswith(ENCRYPTION_VERSION_V2):
        return decrypt_v2(encrypted[len(ENCRYPTION_VERSION_V2) :], passphrase)
    if encrypted.startswith(ENCRYPTION_VERSION_V1):
        return decrypt_v1(encrypted[len(ENCRYPTION_VERSION_V1) :], passphrase)
    return decrypt_v1(encrypted, passphrase)


def decrypt_v1(payload: str, passphrase: str) -> str:
    """Decrypt an unprefixed legacy payload."""
    combined = _b64decode(payload)
    return _open(SecretBox(_v1_key(passphrase)), combined, "v1")


def decrypt_v2(payload: str, passphrase: str) -> str:
    """Decrypt an unprefixed salted payload."""
    combined = _b64decode(payload)
    if len(combined) < SALT_BYTES + SecretBox.NONCE_SIZE + SecretBox.MACBYTES:
        raise DecryptionError("Encrypted value is too short", {"version": "v2"})
    # the salt is carried for format compatibility; the key does not depend on it
    return _open(SecretBox(_v2_key(passphrase)), combined[SALT_BYTES:], "v2")


def _b64decode(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("Encrypted value is not valid base64") from exc


def _open(box: SecretBox, combined: bytes, version: str) -> str:
    if len(combined) < SecretBox.NONCE_SIZE + SecretBox.MACBYTES:
        raise DecryptionError("Encrypted value is too short", {"version": version})
    try:
        plaintext = box.decrypt(combined)
    except CryptoError as exc:
        raise DecryptionError(
            "Failed to decrypt value: wrong key or corrupt data", {"version": version}
        ) from exc
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted value is not valid UTF-8", {"version": version}) from exc
