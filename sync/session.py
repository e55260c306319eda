"""
Session token handling for one batch pass.

A SessionProvider is created per pass and handed to every pipeline of that
pass. Pipelines only read the token; re-authentication happens either when
a pipeline reports the token it used as expired, or when the configured
operation budget for one session is used up.
"""

import asyncio
import logging
from typing import Optional

from core.logging import mask_token

logger = logging.getLogger(__name__)


class SessionProvider:
    """
    Explicit session handle for the remote API.

    Args:
        client: Object exposing ``async login() -> str``
        max_operations: Re-login after this many token() calls (0 disables)
    """

    def __init__(self, client, max_operations: int = 0):
        self.client = client
        self.max_operations = max(0, int(max_operations or 0))
        self.operations = 0
        self.logins = 0
        self._token: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[str]:
        return self._token

    async def acquire(self) -> str:
        """
        Log in and cache the token.

        Raises:
            AuthError: propagated from the client
        """
        token = await self.client.login()
        self._token = token
        self.operations = 0
        self.logins += 1
        logger.info(f"Remote session acquired ({mask_token(token)}), login #{self.logins}")
        return token

    async def token(self) -> str:
        """Cached token, logging in first when needed"""
        async with self._lock:
            if self._token is None:
                await self.acquire()
            elif self.max_operations and self.operations >= self.max_operations:
                logger.info(f"Session operation budget of {self.max_operations} reached, re-authenticating")
                await self.acquire()
            self.operations += 1
            return self._token

    async def refresh(self, stale_token: Optional[str]) -> str:
        """
        Replace an expired token.

        Several pipelines may report the same stale token at once; only the
        first one logs in again, the others receive the new token.
        """
        async with self._lock:
            if self._token is not None and self._token != stale_token:
                return self._token
            logger.warning(f"Session {mask_token(stale_token)} expired, re-authenticating")
            return await self.acquire()

    def invalidate(self):
        self._token = None
        self.operations = 0
