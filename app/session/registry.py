# app/session/registry.py
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from app.session.provider import AuthProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], Awaitable[AuthProvider]]


@dataclass
class _Entry:
    provider: AuthProvider
    last_seen: float = field(default_factory=time.monotonic)


class ProviderRegistry:
    """
    One mounted AuthProvider per browser, keyed by an opaque session id.

    The id travels in a cookie. Unknown or missing ids get a fresh
    provider (and a new id). Providers idle for longer than
    `idle_seconds` are unmounted on the next access.
    """

    def __init__(self, factory: ProviderFactory, idle_seconds: float = 3600):
        self._factory = factory
        self._idle_seconds = idle_seconds
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def new_id() -> str:
        return secrets.token_urlsafe(32)

    def peek(self, sid: str | None) -> AuthProvider | None:
        """Mounted provider for a session id, without creating one."""
        if not sid:
            return None
        entry = self._entries.get(sid)
        return entry.provider if entry else None

    async def get_or_mount(self, sid: str | None) -> tuple[str, AuthProvider]:
        """
        Provider for this browser, mounting a new one if needed.

        Returns:
            (session id, provider). The id differs from `sid` when a new
            provider was created.

        `_entries` is only read and written between awaits; building,
        mounting and unmounting providers never blocks other browsers.
        """
        expired = self._take_expired()
        entry = self._entries.get(sid) if sid else None
        if entry is not None:
            entry.last_seen = time.monotonic()

        await self._unmount(expired)
        if entry is not None:
            return sid, entry.provider

        provider = await self._factory()
        await provider.mount()
        new_sid = self.new_id()
        self._entries[new_sid] = _Entry(provider)
        logger.debug("Mounted auth provider for new browser session (%s active)", len(self._entries))
        return new_sid, provider

    async def discard(self, sid: str) -> None:
        entry = self._entries.pop(sid, None)
        if entry is not None:
            await entry.provider.unmount()

    async def close(self) -> None:
        """Unmount every provider (application shutdown)."""
        entries, self._entries = self._entries, {}
        for entry in entries.values():
            await entry.provider.unmount()
        if entries:
            logger.info("Unmounted %s auth providers", len(entries))

    def _take_expired(self) -> list[_Entry]:
        now = time.monotonic()
        expired = [sid for sid, entry in self._entries.items() if now - entry.last_seen > self._idle_seconds]
        return [self._entries.pop(sid) for sid in expired]

    async def _unmount(self, entries: list[_Entry]) -> None:
        for entry in entries:
            await entry.provider.unmount()
        if entries:
            logger.info("Pruned %s idle auth providers", len(entries))
