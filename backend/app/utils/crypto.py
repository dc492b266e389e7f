# backend/app/utils/crypto.py

import base64
import hashlib
import logging
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger("aionet-backend.crypto")

SALTED_PREFIX = b"Salted__"


def evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = 32, iv_len: int = 16):
    """OpenSSL EVP_BytesToKey with MD5 and one iteration (CryptoJS default)."""
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def cryptojs_decrypt(ciphertext_b64: str, passphrase: str) -> Optional[str]:
    """
    Decrypts a CryptoJS.AES.encrypt(text, passphrase) payload.
    Returns None when the payload is malformed or the passphrase is wrong.
    """
    try:
        raw = base64.b64decode(ciphertext_b64)
    except (ValueError, TypeError):
        return None

    if not raw.startswith(SALTED_PREFIX) or len(raw) < 32:
        return None

    salt = raw[8:16]
    body = raw[16:]
    if len(body) % 16 != 0:
        return None

    key, iv = evp_bytes_to_key(passphrase.encode(), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()

    unpadder = padding.PKCS7(128).unpadder()
    try:
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8") or None
    except ValueError:
        # wrong key → bad padding or garbage bytes
        return None


def cryptojs_encrypt(plaintext: str, passphrase: str, salt: bytes) -> str:
    """Inverse of cryptojs_decrypt; used for fixtures and backfills."""
    key, iv = evp_bytes_to_key(passphrase.encode(), salt)
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    body = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(SALTED_PREFIX + salt + body).decode()
