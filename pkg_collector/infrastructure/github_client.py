import aiohttp
import asyncio
import logging
from typing import Optional

from pkg_collector.domain.exceptions import (
    RateLimitExceededException,
    RetryableError,
    TarballTooLargeError,
)
from pkg_collector.domain.models import HostedRepository
from pkg_collector.infrastructure.tokens import TokenPool

logger = logging.getLogger(__name__)

# Archives above this size are never buffered
MAX_TARBALL_SIZE = 200 * 1024 * 1024
CHUNK_SIZE = 64 * 1024
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=300, connect=10)


class GitHubTarballClient:
    """
    Client for the GitHub archive API.
    Handles authentication through a token pool, size limits and rate-limit signals.
    """

    def __init__(self, token_pool: Optional[TokenPool] = None, max_tarball_size: int = MAX_TARBALL_SIZE):
        self.token_pool = token_pool or TokenPool([])
        self.max_tarball_size = max_tarball_size
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "pkg-collector",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _pick_token(self) -> Optional[str]:
        token = self.token_pool.pick()
        if token is None and self.token_pool.tokens:
            reset = self.token_pool.earliest_reset()
            raise RateLimitExceededException(reset_at=str(int(reset)) if reset else None)
        return token

    async def download_tarball(
        self,
        session: aiohttp.ClientSession,
        repository: HostedRepository,
        ref: Optional[str],
        dest_file: str,
    ) -> int:
        """
        Streams the tarball of `ref` (default branch when empty) into `dest_file`.

        Returns:
            The HTTP status. Client errors (4xx) are returned rather than raised
            so the caller can decide whether to fall back.

        Raises:
            TarballTooLargeError: if the archive exceeds the size limit.
            RateLimitExceededException: if GitHub rejected the request for rate limiting.
            RetryableError: on server errors, network failures and rejected tokens.
        """
        url = repository.tarball_url(ref)
        token = self._pick_token()
        headers = dict(self.headers)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"Requesting {url}")
        try:
            async with session.get(url, headers=headers, timeout=REQUEST_TIMEOUT) as response:
                if self.token_pool.report(token, response.status, response.headers):
                    raise RateLimitExceededException(reset_at=response.headers.get("X-RateLimit-Reset"))

                # A rejected credential says nothing about the repository
                if response.status == 401 and token:
                    self.token_pool.revoke(token)
                    raise RetryableError(f"GitHub rejected the token used for {url}")

                if 400 <= response.status < 500:
                    logger.info(f"GitHub answered {response.status} for {url}")
                    return response.status

                if response.status >= 500:
                    raise RetryableError(f"GitHub answered {response.status} for {url}")

                content_length = response.headers.get("Content-Length")
                if content_length and content_length.isdigit() and int(content_length) > self.max_tarball_size:
                    raise TarballTooLargeError(int(content_length), self.max_tarball_size)

                received = 0
                with open(dest_file, "wb") as file:
                    async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                        received += len(chunk)
                        # Chunked responses carry no Content-Length
                        if received > self.max_tarball_size:
                            raise TarballTooLargeError(received, self.max_tarball_size)
                        file.write(chunk)

                return response.status

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RetryableError(f"Request to {url} failed: {e}") from e
