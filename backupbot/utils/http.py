"""
BackupBot - HTTP Utilities
==========================

Shared HTTP session for Bot API calls.
"""

import aiohttp

from backupbot.core.constants import POLL_TIMEOUT, REQUEST_TIMEOUT, UPLOAD_TIMEOUT

# Regular requests (sendMessage, getMe)
REQUEST_CLIENT_TIMEOUT = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT, connect=10)

# Long polling must outlive the server-side wait
POLL_CLIENT_TIMEOUT = aiohttp.ClientTimeout(total=POLL_TIMEOUT + 15, connect=10)

# Document uploads
UPLOAD_CLIENT_TIMEOUT = aiohttp.ClientTimeout(total=UPLOAD_TIMEOUT, connect=10)


class HTTPSessionManager:
    """Lazy-initialized HTTP session manager."""

    _session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=REQUEST_CLIENT_TIMEOUT)
        return self._session

    def post(self, url: str, **kwargs):
        """Return a POST request context manager (use with async with)."""
        return self.session.post(url, **kwargs)

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


__all__ = [
    "HTTPSessionManager",
    "REQUEST_CLIENT_TIMEOUT",
    "POLL_CLIENT_TIMEOUT",
    "UPLOAD_CLIENT_TIMEOUT",
]
