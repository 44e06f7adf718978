import aiohttp
import asyncio
import logging
from typing import Any, Dict
from urllib.parse import quote

from pkg_collector.domain.exceptions import RetryableError, UnrecoverableError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)


class RegistryClient:
    """Fetches raw module documents from the package registry."""

    def __init__(self, registry_url: str = DEFAULT_REGISTRY_URL):
        self.registry_url = registry_url.rstrip("/")
        self.headers = {
            "Accept": "application/json",
            "User-Agent": "pkg-collector",
        }

    def module_url(self, name: str) -> str:
        # Scoped names keep their leading @ but escape the slash: @scope%2Fname
        return f"{self.registry_url}/{quote(name, safe='@')}"

    async def fetch_module(self, session: aiohttp.ClientSession, name: str) -> Dict[str, Any]:
        """
        Fetches the registry document of `name`.

        Raises:
            UnrecoverableError: if the module does not exist.
            RetryableError: on server errors and network failures.
        """
        url = self.module_url(name)
        try:
            async with session.get(url, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                if response.status == 404:
                    raise UnrecoverableError(f"Module {name} does not exist in the registry")
                if response.status >= 400:
                    raise RetryableError(f"Registry answered {response.status} for {name}")
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RetryableError(f"Request to {url} failed: {e}") from e

        if not isinstance(data, dict):
            raise UnrecoverableError(f"Registry document of {name} is not an object")
        return data
