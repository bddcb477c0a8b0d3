"""
Cipher

Password-keyed AES-GCM encryption producing a line-safe base64 envelope.
"""

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import DecryptionFailed, InvalidInput

logger = logging.getLogger(__name__)

SALT_SIZE = 16  # bytes
NONCE_SIZE = 12  # bytes (AES-GCM IV)
KEY_SIZE = 32  # bytes (AES-256)
TAG_SIZE = 16  # bytes
DEFAULT_ITERATIONS = 390_000


class Cipher:
    """
    Symmetric cipher keyed by a password.

    The envelope is ``base64(salt || nonce || ciphertext || tag)``. A fresh
    salt and nonce are drawn for every message, so encrypting the same
    plaintext twice gives different envelopes. The base64 alphabet has no
    ":" and no line breaks, so an envelope can never contain an end token.
    """

    def __init__(self, iterations: int = DEFAULT_ITERATIONS):
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations

    def _derive_key(self, password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(password.encode("utf-8"))

    def encrypt(self, plaintext: str, password: str) -> str:
        """
        Encrypt plaintext with password

        Args:
            plaintext: Text to protect, may be empty
            password: Non-empty password

        Returns:
            Base64 envelope safe to embed between tokens

        Raises:
            InvalidInput: if the password is empty or either value is not encodable
        """
        if not password:
            raise InvalidInput("password must not be empty")
        try:
            data = plaintext.encode("utf-8")
            salt = os.urandom(SALT_SIZE)
            key = self._derive_key(password, salt)
        except UnicodeEncodeError as e:
            raise InvalidInput(f"text is not representable as UTF-8: {e.reason}") from e

        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(key).encrypt(nonce, data, None)
        return base64.b64encode(salt + nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str, password: str) -> str:
        """
        Decrypt an envelope produced by encrypt

        Raises:
            DecryptionFailed: on malformed input or a wrong password
        """
        if not password:
            raise DecryptionFailed("password must not be empty")

        try:
            blob = base64.b64decode(ciphertext.strip().encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise DecryptionFailed("ciphertext is not valid base64", orig_exc=e) from e

        if len(blob) < SALT_SIZE + NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailed(f"ciphertext too short ({len(blob)} bytes)")

        salt = blob[:SALT_SIZE]
        nonce = blob[SALT_SIZE : SALT_SIZE + NONCE_SIZE]
        sealed = blob[SALT_SIZE + NONCE_SIZE :]

        try:
            key = self._derive_key(password, salt)
        except UnicodeEncodeError as e:
            raise DecryptionFailed("password is not representable as UTF-8", orig_exc=e) from e

        try:
            data = AESGCM(key).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            logger.debug("Authentication tag did not verify")
            raise DecryptionFailed("wrong password or corrupted ciphertext", orig_exc=e) from e

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed("plaintext is not valid UTF-8", orig_exc=e) from e


_default_cipher = Cipher()


def encrypt_span(plaintext: str, password: str) -> str:
    """Encrypt a span payload with the default cipher"""
    return _default_cipher.encrypt(plaintext, password)


def decrypt_span(ciphertext: str, password: str) -> str:
    """Decrypt a span payload with the default cipher"""
    return _default_cipher.decrypt(ciphertext, password)
