"""
Data models for SecretSpan
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ScanError

TOKEN_DELIMITER = ":"


class TokenPair(BaseModel):
    """Start and end sentinels delimiting a secret span"""

    model_config = ConfigDict(frozen=True)

    token: str
    start: str
    end: str

    @classmethod
    def from_token(cls, token: str) -> "TokenPair":
        """
        Derive the sentinel pair from a configured token word

        Args:
            token: Token word, e.g. "sec" gives "sec:" ... ":sec"

        Raises:
            ScanError: if the token is empty or spans more than one line
        """
        if token is None or not token.strip():
            raise ScanError("token must not be empty", token=token)
        if "\n" in token or "\r" in token:
            raise ScanError("token must not contain line breaks", token=token)
        return cls(token=token, start=token + TOKEN_DELIMITER, end=TOKEN_DELIMITER + token)


class SecretMatch(BaseModel):
    """A located secret span in a block of text"""

    matched_text: str
    payload: str
    start_offset: int = Field(ge=0, description="Character offset of the start token")
    end_offset: int = Field(ge=0, description="Character offset just past the span")

    # Line oriented addressing
    line_number: int = Field(ge=1)
    column_start: int = Field(ge=0)
    column_end: int = Field(ge=0)

    has_end_token: bool = True


class SpanPreview(BaseModel):
    """Outcome of revealing one span: either a plaintext or an error"""

    match: SecretMatch
    plaintext: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RememberMode(str, Enum):
    """How long a password stays cached"""

    NEVER = "never"
    FOREVER = "forever"
    FOR_DURATION = "for_duration"


class RememberPolicy(BaseModel):
    """Password cache policy"""

    model_config = ConfigDict(frozen=True)

    mode: RememberMode
    seconds: float = 0.0

    @field_validator("seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("seconds must not be negative")
        return value

    @classmethod
    def never(cls) -> "RememberPolicy":
        return cls(mode=RememberMode.NEVER)

    @classmethod
    def forever(cls) -> "RememberPolicy":
        return cls(mode=RememberMode.FOREVER)

    @classmethod
    def for_duration(cls, seconds: float) -> "RememberPolicy":
        if seconds <= 0:
            return cls.never()
        return cls(mode=RememberMode.FOR_DURATION, seconds=seconds)

    @classmethod
    def from_seconds(cls, remember_period: float) -> "RememberPolicy":
        """
        Convert the integer setting: negative remembers forever,
        zero never remembers, positive is a duration in seconds.
        """
        if remember_period < 0:
            return cls.forever()
        return cls.for_duration(remember_period)


class EngineConfig(BaseModel):
    """Configuration consumed by the engine and the command line host"""

    model_config = ConfigDict(extra="forbid")

    # Span settings
    token: str = "secret"
    exclude_end: bool = False

    # Password cache
    remember_period: int = 300  # seconds; negative = forever, 0 = never

    # Host settings
    copy_separator: str = "\n"
    languages: List[str] = ["*"]
    exclude_patterns: List[str] = [".git/", "node_modules/"]
    max_file_size: int = 1024 * 1024  # 1MB

    # Key derivation
    kdf_iterations: int = Field(default=390_000, ge=1)

    @property
    def tokens(self) -> TokenPair:
        return TokenPair.from_token(self.token)

    @property
    def remember_policy(self) -> RememberPolicy:
        return RememberPolicy.from_seconds(self.remember_period)
