import aiohttp
import asyncio
import logging
import random
import shutil
import tempfile
import time
from typing import Any, Dict, List, Optional, Sequence

from pkg_collector.application.downloaders.base import Downloader, pick_downloader
from pkg_collector.application.metadata import derive_metadata
from pkg_collector.domain.descriptor import latest_package_json, normalize_package_json, write_descriptor
from pkg_collector.domain.exceptions import RateLimitExceededException, RetryableError, UnrecoverableError
from pkg_collector.domain.models import CollectResult, Disposition, DownloadOptions, DownloadOutcome
from pkg_collector.infrastructure.registry_client import RegistryClient

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
DEFAULT_CONCURRENCY = 4


class CollectService:
    """
    Runs the collect phase for modules: acquires the source through the first
    downloader that accepts the module and derives the metadata record.

    Every module gets its own working directory, removed on every exit path
    unless `keep_source` hands it off to the caller after a successful run.
    """

    def __init__(
            self,
            downloaders: Sequence[Downloader],
            registry_client: Optional[RegistryClient] = None,
            options: Optional[DownloadOptions] = None,
            work_dir: Optional[str] = None,
            keep_source: bool = False,
            concurrency: int = DEFAULT_CONCURRENCY,
            max_retries: int = MAX_RETRIES,
    ):
        self.downloaders = list(downloaders)
        self.registry_client = registry_client or RegistryClient()
        self.options = options or DownloadOptions()
        self.work_dir = work_dir
        self.keep_source = keep_source
        self.concurrency = concurrency
        self.max_retries = max_retries

    async def acquire(self, package_json: Dict[str, Any], dest_dir: str) -> DownloadOutcome:
        downloader = pick_downloader(self.downloaders, package_json)
        if downloader is None:
            logger.info(f"No downloader accepts the repository of {package_json.get('name')}")
            merged, enrichment = write_descriptor(dest_dir, package_json)
            return DownloadOutcome(
                path=dest_dir, disposition=Disposition.UNAVAILABLE, descriptor=merged, enrichment=enrichment
            )
        return await downloader.acquire(package_json, dest_dir, self.options)

    async def collect(self, data: Dict[str, Any]) -> CollectResult:
        """
        Collects a single module from its registry document.

        Unrecoverable conditions yield a `failed` result; retryable errors propagate.
        """
        name = data.get("name") or ""
        dest_dir = tempfile.mkdtemp(prefix="pkg-collector-", dir=self.work_dir)
        handed_off = False

        try:
            package_json = normalize_package_json(name, latest_package_json(data))
            outcome = await self.acquire(package_json, dest_dir)

            # Fields only the repository defined enrich the registry descriptor too
            package_json.update(outcome.enrichment)
            metadata = derive_metadata(data, package_json)

            handed_off = self.keep_source
            logger.info(f"Collected {name}: source {outcome.disposition.value}")
            return CollectResult(
                name=name,
                disposition=outcome.disposition,
                metadata=metadata,
                source_path=dest_dir if handed_off else None,
            )

        except UnrecoverableError as e:
            logger.error(f"Unrecoverable error while collecting {name}: {e}")
            return CollectResult(name=name, disposition=Disposition.FAILED, error=str(e))

        finally:
            if not handed_off:
                shutil.rmtree(dest_dir, ignore_errors=True)

    async def collect_module(self, session: aiohttp.ClientSession, name: str) -> CollectResult:
        """Fetches and collects a module, retrying transient failures with exponential backoff."""
        for attempt in range(1, self.max_retries + 1):
            try:
                data = await self.registry_client.fetch_module(session, name)
                return await self.collect(data)

            except UnrecoverableError as e:
                logger.error(f"Unrecoverable error while fetching {name}: {e}")
                return CollectResult(name=name, disposition=Disposition.FAILED, error=str(e))

            except (RetryableError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt >= self.max_retries:
                    logger.error(f"Giving up on {name} after {attempt} attempts: {e}")
                    raise
                sleep_time = self._backoff(e, attempt)
                logger.warning(
                    f"Collecting {name} failed (attempt {attempt}/{self.max_retries}): {e}. "
                    f"Retrying in {sleep_time:.1f}s..."
                )
                await asyncio.sleep(sleep_time)

        raise RuntimeError("unreachable")

    async def collect_many(self, session: aiohttp.ClientSession, names: Sequence[str]) -> List[CollectResult]:
        """
        Collects several modules concurrently, bounded by `concurrency`.
        A module that exhausts its retries stops the batch instead of being dropped.
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(name: str) -> CollectResult:
            async with semaphore:
                return await self.collect_module(session, name)

        results = await asyncio.gather(*(_bounded(name) for name in names), return_exceptions=True)

        errors = [result for result in results if isinstance(result, BaseException)]
        for error in errors:
            logger.error(f"Module collection failed: {error}")
        if errors:
            raise errors[0]
        return list(results)

    @staticmethod
    def _backoff(error: Exception, attempt: int) -> float:
        if isinstance(error, RateLimitExceededException) and error.reset_at and str(error.reset_at).isdigit():
            return max(int(error.reset_at) - time.time() + 5, 1)
        return (2 ** attempt) + random.uniform(0, 1)
