"""
Outbound HTTP helpers shared by the token and user-info clients.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx


USER_AGENT = "socialauth/1.0"


@asynccontextmanager
async def provider_client(
    http_client: Optional[httpx.AsyncClient],
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield the injected client, or a short-lived one closed on exit.
    """
    if http_client is not None:
        yield http_client
        return

    async with httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT}) as client:
        yield client
