"""
Display names for user ids, fetched from the identity provider's user API.

Only used to decorate the operator's order list, so a lookup failure for
one user degrades to a placeholder instead of failing the whole request.
"""
import asyncio
from typing import Dict, Iterable

import httpx
import structlog

from shared.config import settings

logger = structlog.get_logger(__name__)

UNKNOWN_USER = "Unknown User"


def _display_name(user: dict) -> str:
    emails = user.get("email_addresses") or []
    email = emails[0].get("email_address") if emails else None
    return user.get("username") or user.get("first_name") or email or UNKNOWN_USER


class IdentityDirectory:
    def __init__(
        self,
        api_url: str = settings.IDENTITY_API_URL,
        api_key: str = settings.IDENTITY_API_KEY,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def _lookup(self, client: httpx.AsyncClient, user_id: str) -> tuple:
        try:
            resp = await client.get(f"/v1/users/{user_id}")
            resp.raise_for_status()
            return user_id, _display_name(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("identity_lookup_failed", user_id=user_id, error=str(e))
            return user_id, UNKNOWN_USER

    async def lookup_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}

        async with httpx.AsyncClient(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            pairs = await asyncio.gather(*(self._lookup(client, uid) for uid in unique_ids))
        return dict(pairs)


_directory = IdentityDirectory()


def get_identity_directory() -> IdentityDirectory:
    return _directory
