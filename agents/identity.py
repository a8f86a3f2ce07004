"""Identity oracle – maps an API key to the agent it belongs to."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from data.cache import Cache, InMemoryCache
from data.database import CouncilDatabase
from orchestration.clock import Clock

logger = logging.getLogger(__name__)

ACTIVITY_TOUCH_INTERVAL_MS = 60_000
_BEARER = "bearer "


@dataclass(frozen=True)
class AgentIdentity:
    """Stable identity every write is attributed to."""

    id: str
    name: str


class IdentityOracle:
    """Resolves credentials to agents.

    Lookups are cached in the injected ``Cache``.  Each successful
    resolve also refreshes the agent's ``last_active_at``, at most once
    per minute.
    """

    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        cache: Cache | None = None,
        cache_ttl_seconds: float = 300,
    ) -> None:
        self.db = db
        self.clock = clock
        self.cache = cache or InMemoryCache(clock)
        self.cache_ttl_seconds = cache_ttl_seconds

    async def resolve(self, credential: str | None) -> AgentIdentity | None:
        api_key = self._extract_key(credential)
        if api_key is None:
            return None

        cache_key = f"identity:{api_key}"
        identity = await self.cache.get(cache_key)

        async with self.db.transaction():
            if identity is None:
                agent = await self.db.get_agent_by_api_key(api_key)
                if agent is None:
                    return None
                identity = AgentIdentity(id=agent.id, name=agent.name)
            await self.db.touch_agent(identity.id, self.clock.now(), ACTIVITY_TOUCH_INTERVAL_MS)

        if self.cache_ttl_seconds:
            await self.cache.set(cache_key, identity, ttl_seconds=self.cache_ttl_seconds)
        return identity

    @staticmethod
    def _extract_key(credential: str | None) -> str | None:
        """Accept a bare key or an ``Authorization: Bearer <key>`` value."""
        if not credential or not credential.strip():
            return None
        credential = credential.strip()
        if credential.lower().startswith(_BEARER):
            credential = credential[len(_BEARER):].strip()
        return credential or None
