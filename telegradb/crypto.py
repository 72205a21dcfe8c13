"""Document encryption.

Every payload stored remotely is AES-128-CBC encrypted under a key derived
from the account's access token, prefixed with its random IV and base64
encoded so it can live inside a text node:

    base64( iv[16] || AES-128-CBC(sha256(secret)[:16], iv, pkcs7(plaintext)) )

Anyone holding the access token can decrypt every document of the account.
"""

import base64
import binascii
import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import DecryptionError

KEY_SIZE = 16
IV_SIZE = 16
BLOCK_BITS = 128


def derive_key(secret: str) -> bytes:
    """Derive the AES key from the shared secret.

    Args:
        secret: Access token shared by all clients of the account.

    Returns:
        The first 16 bytes of SHA-256(secret).
    """
    return hashlib.sha256(secret.encode("utf-8")).digest()[:KEY_SIZE]


def aes_encrypt(secret: str, data: bytes) -> bytes:
    """Encrypt bytes, returning ``iv || ciphertext``."""
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(derive_key(secret)), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


def aes_decrypt(secret: str, blob: bytes) -> bytes:
    """Decrypt ``iv || ciphertext`` produced by :func:`aes_encrypt`.

    Raises:
        DecryptionError: If the blob is truncated or the padding is invalid,
            which is what a wrong secret usually looks like.
    """
    iv, ciphertext = blob[:IV_SIZE], blob[IV_SIZE:]
    if len(iv) != IV_SIZE or not ciphertext or len(ciphertext) % IV_SIZE:
        raise DecryptionError(f"Malformed ciphertext of {len(blob)} bytes")

    decryptor = Cipher(algorithms.AES(derive_key(secret)), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError(f"Invalid padding: {e}") from e


def encrypt_content(secret: str, content: str) -> str:
    """Encrypt text and encode it for transport."""
    blob = aes_encrypt(secret, content.encode("utf-8"))
    return base64.b64encode(blob).decode("ascii")


def decrypt_content(secret: str, wire: str) -> str:
    """Reverse :func:`encrypt_content`."""
    try:
        blob = base64.b64decode(wire, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Invalid transport encoding: {e}") from e

    data = aes_decrypt(secret, blob)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(f"Decrypted content is not UTF-8: {e}") from e
