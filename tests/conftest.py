import pytest

from secretspan.cipher import Cipher
from secretspan.engine import SecretEngine
from secretspan.models import EngineConfig, TokenPair

# Key derivation is deliberately slow; tests trade strength for speed.
FAST_ITERATIONS = 1000


class PromptRecorder:
    """Async password prompt that records how often it was asked"""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0] if self.answers else None


@pytest.fixture
def tokens():
    return TokenPair.from_token("sec")


@pytest.fixture
def cipher():
    return Cipher(iterations=FAST_ITERATIONS)


@pytest.fixture
def make_engine():
    def _make(**overrides):
        values = {"token": "sec", "kdf_iterations": FAST_ITERATIONS}
        values.update(overrides)
        return SecretEngine(EngineConfig(**values))

    return _make


@pytest.fixture
def prompt_with():
    """Build a PromptRecorder answering with the given passwords in order"""
    return PromptRecorder
