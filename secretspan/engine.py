"""
Secret Engine

Facade combining the token scanner, the cipher and the password session
into the operations a host integration needs.
"""

import logging
from typing import List, Optional, Tuple

from .cipher import Cipher
from .errors import CipherError
from .models import EngineConfig, SecretMatch, SpanPreview
from .scanner import TokenScanner
from .session import PasswordPrompt, PasswordSession

logger = logging.getLogger(__name__)

PASSWORD_NOT_SET = "Password not set"


class SecretEngine:
    """Secret annotation engine bound to one configuration and one session"""

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the engine

        Args:
            config: Optional EngineConfig, will use defaults if not provided

        Raises:
            ScanError: if the configured token is unusable
        """
        self.config = config or EngineConfig()
        self.scanner = TokenScanner(self.config.tokens)
        self.cipher = Cipher(iterations=self.config.kdf_iterations)
        self.session = PasswordSession(self.config.remember_policy)

    def reload(self, config: EngineConfig) -> None:
        """Apply a new configuration and forget the cached password"""
        scanner = TokenScanner(config.tokens)
        self.config = config
        self.scanner = scanner
        self.cipher = Cipher(iterations=config.kdf_iterations)
        self.session.update_policy(config.remember_policy)
        logger.info("🔄 Configuration reloaded")

    # Core API

    def scan(self, text: str) -> List[SecretMatch]:
        return self.scanner.find_all(text)

    def encrypt_span(self, plaintext: str, password: str) -> str:
        return self.cipher.encrypt(plaintext, password)

    def decrypt_span(self, ciphertext: str, password: str) -> str:
        return self.cipher.decrypt(ciphertext, password)

    async def ensure_password(self, prompt: PasswordPrompt) -> str:
        return await self.session.require_password(prompt)

    async def set_password(self, prompt: PasswordPrompt) -> str:
        return await self.session.set_password(prompt)

    def forget_password(self) -> None:
        self.session.forget()

    def is_password_armed(self) -> bool:
        return self.session.is_armed

    # Host operations

    def wrap(self, ciphertext: str) -> str:
        """Surround a ciphertext with the configured tokens"""
        tokens = self.config.tokens
        end = "" if self.config.exclude_end else tokens.end
        return f"{tokens.start}{ciphertext}{end}"

    async def encrypt_text(self, text: str, prompt: PasswordPrompt) -> Optional[str]:
        """
        Encrypt a selection or a whole line.

        Returns:
            The wrapped span, or None when the text is empty or already
            holds a span
        """
        if not text or self.scanner.contains_span(text):
            logger.debug("Nothing to encrypt")
            return None

        password = await self.ensure_password(prompt)
        return self.wrap(self.encrypt_span(text, password))

    async def decrypt_text(
        self, text: str, prompt: PasswordPrompt
    ) -> Tuple[str, List[SpanPreview]]:
        """
        Replace every span in text with its plaintext.

        Spans that fail to decrypt are left in place.

        Returns:
            Tuple of (new text, previews for the spans that failed)
        """
        matches = self.scan(text)
        if not matches:
            return text, []

        password = await self.ensure_password(prompt)
        previews = [self._reveal(match, password) for match in matches]

        # apply edits right to left so earlier offsets stay valid
        result = text
        for preview in reversed(previews):
            if preview.ok:
                m = preview.match
                result = result[: m.start_offset] + preview.plaintext + result[m.end_offset :]

        failures = [p for p in previews if not p.ok]
        if failures:
            logger.warning(f"{len(failures)} of {len(previews)} spans could not be decrypted")
        return result, failures

    async def preview(
        self, text: str, prompt: Optional[PasswordPrompt] = None
    ) -> List[SpanPreview]:
        """
        Reveal every span without modifying the text.

        Without a cached password and without a prompt, every preview
        carries a "password not set" error.
        """
        matches = self.scan(text)
        if not matches:
            return []

        if prompt is None:
            password = self.session.current_password
        else:
            password = await self.ensure_password(prompt)

        if password is None:
            return [SpanPreview(match=m, error=PASSWORD_NOT_SET) for m in matches]
        return [self._reveal(match, password) for match in matches]

    async def copy_secrets(
        self, text: str, prompt: PasswordPrompt, separator: Optional[str] = None
    ) -> str:
        """Decrypt every span and join the plaintexts with the copy separator"""
        if separator is None:
            separator = self.config.copy_separator

        matches = self.scan(text)
        if not matches:
            return ""

        password = await self.ensure_password(prompt)
        revealed = []
        for match in matches:
            preview = self._reveal(match, password)
            if preview.ok:
                revealed.append(preview.plaintext)
            else:
                logger.warning(f"Skipping span at line {match.line_number}: {preview.error}")
        return separator.join(revealed)

    def _reveal(self, match: SecretMatch, password: str) -> SpanPreview:
        try:
            plaintext = self.decrypt_span(match.payload, password)
            return SpanPreview(match=match, plaintext=plaintext)
        except CipherError as e:
            logger.debug(
                f"Span at line {match.line_number}, column {match.column_start} failed: {e}"
            )
            return SpanPreview(match=match, error=str(e))
