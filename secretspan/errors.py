"""
Exception hierarchy for SecretSpan
"""

from typing import Optional


class SecretSpanError(Exception):
    """Base class for all SecretSpan errors"""

    pass


class ConfigurationError(SecretSpanError):
    """Raised when loading or validating configuration fails"""

    pass


class ScanError(SecretSpanError):
    """Raised for a token configuration that cannot produce a usable pattern"""

    def __init__(self, message: str, token: Optional[str] = None):
        self.token = token
        full_msg = "Invalid token configuration"
        if token is not None:
            full_msg += f" (token: {token!r})"
        full_msg += f": {message}"
        super().__init__(full_msg)


class CipherError(SecretSpanError):
    """Base class for encryption and decryption failures"""

    pass


class InvalidInput(CipherError):
    """Raised when plaintext or password cannot be encrypted"""

    pass


class DecryptionFailed(CipherError):
    """
    Raised when a ciphertext is malformed or does not verify
    under the supplied password.
    """

    def __init__(self, message: str, orig_exc: Optional[Exception] = None):
        self.orig_exc = orig_exc
        full_msg = f"Decryption failed: {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class PasswordError(SecretSpanError):
    """Base class for password session failures"""

    pass


class PasswordCancelled(PasswordError):
    """Raised when the user aborts a password prompt"""

    def __init__(self, message: str = "Password prompt was cancelled"):
        super().__init__(message)
