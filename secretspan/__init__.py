"""
SecretSpan - Inline Password-Protected Secrets

Marks spans of ordinary text as secret, encrypts them in place between
two tokens and reveals them again given the right password.
"""

__version__ = "0.1.0"
__author__ = "SecretSpan Team"
__description__ = "Inline password-protected secrets for plain text"

from .cipher import decrypt_span, encrypt_span
from .engine import SecretEngine
from .models import EngineConfig, RememberPolicy, SecretMatch, TokenPair

__all__ = [
    "SecretEngine",
    "EngineConfig",
    "RememberPolicy",
    "SecretMatch",
    "TokenPair",
    "encrypt_span",
    "decrypt_span",
]
