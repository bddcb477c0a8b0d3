"""
Password Session

Holds the active password in memory and forgets it according to a
RememberPolicy. Built for a single asyncio event loop.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .errors import PasswordCancelled
from .models import RememberMode, RememberPolicy

logger = logging.getLogger(__name__)

# Returns the password, or None when the user cancels
PasswordPrompt = Callable[[], Awaitable[Optional[str]]]


class PasswordSession:
    """
    Expiring in-memory password cache.

    Every time the session is armed or cleared its generation is bumped.
    Expiry callbacks and prompts that finish late compare against the
    generation they started from and do nothing when it has moved on.
    The lock is never held while a prompt is awaiting the user.
    """

    def __init__(self, policy: Optional[RememberPolicy] = None):
        self._policy = policy or RememberPolicy.for_duration(300)
        self._password: Optional[str] = None
        self._generation = 0
        self._expiry: Optional[asyncio.TimerHandle] = None
        self._lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Future] = None

    @property
    def policy(self) -> RememberPolicy:
        return self._policy

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_password(self) -> Optional[str]:
        """The cached password, or None when the session is empty"""
        return self._password

    @property
    def is_armed(self) -> bool:
        """True if a password is cached and usable without prompting"""
        return self._password is not None

    async def set_password(self, prompt: PasswordPrompt) -> str:
        """
        Prompt for a password and cache it according to the policy.

        Always prompts, even when a password is already cached.

        Raises:
            PasswordCancelled: if the prompt was aborted
        """
        async with self._lock:
            generation = self._generation

        password = await self._ask(prompt)

        async with self._lock:
            if self._generation != generation:
                # Forgotten or replaced while the prompt was open
                logger.debug("Session changed during prompt, not caching password")
            else:
                self._arm(password)
        return password

    async def require_password(self, prompt: PasswordPrompt) -> str:
        """
        Return the cached password, prompting only if none is cached.

        Concurrent callers on an empty session share a single prompt.
        """
        async with self._lock:
            if self._password is not None:
                return self._password
            if self._inflight is not None:
                pending = self._inflight
                owner = False
            else:
                pending = asyncio.get_running_loop().create_future()
                self._inflight = pending
                owner = True

        if not owner:
            return await asyncio.shield(pending)

        try:
            password = await self.set_password(prompt)
        except asyncio.CancelledError:
            pending.cancel()
            raise
        except Exception as e:
            pending.set_exception(e)
            # mark retrieved so an unshared failure is not reported by asyncio
            pending.exception()
            raise
        else:
            pending.set_result(password)
            return password
        finally:
            self._inflight = None

    def forget(self) -> None:
        """Drop the cached password and cancel any pending expiry"""
        self._cancel_expiry()
        self._generation += 1
        if self._password is not None:
            logger.info("🔒 Password forgotten")
        self._password = None

    def update_policy(self, policy: RememberPolicy) -> None:
        """Adopt a new policy, forgetting the current password"""
        self.forget()
        self._policy = policy

    async def _ask(self, prompt: PasswordPrompt) -> str:
        password = await prompt()
        if not password:
            raise PasswordCancelled()
        return password

    def _arm(self, password: str) -> None:
        self._cancel_expiry()
        self._generation += 1
        generation = self._generation

        if self._policy.mode == RememberMode.NEVER:
            self._password = None
            logger.debug("Remember policy is 'never', password not cached")
            return

        self._password = password
        if self._policy.mode == RememberMode.FOR_DURATION:
            loop = asyncio.get_running_loop()
            self._expiry = loop.call_later(self._policy.seconds, self._expire, generation)
            logger.info(f"🔑 Password cached for {self._policy.seconds:g}s")
        else:
            logger.info("🔑 Password cached until forgotten")

    def _expire(self, generation: int) -> None:
        if generation != self._generation:
            return
        logger.info("⏱️  Password cache expired")
        self._expiry = None
        self._generation += 1
        self._password = None

    def _cancel_expiry(self) -> None:
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
