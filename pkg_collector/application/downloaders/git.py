import asyncio
import logging
from typing import Any, Dict, Optional

from pkg_collector.application.downloaders.base import Downloader, empty_directory, remove_vcs_directories
from pkg_collector.application.downloaders.refs import resolve_ref
from pkg_collector.domain.exceptions import GitCommandError, RetryableError
from pkg_collector.domain.models import Disposition, DownloadOptions, DownloadOutcome
from pkg_collector.infrastructure.git_client import GitClient, GitErrorKind, classify_git_error
from pkg_collector.infrastructure.hosts import resolve_host

logger = logging.getLogger(__name__)


class GitDownloader(Downloader):
    """Clone + checkout strategy for any git-reachable supported host."""

    name = "git"

    def __init__(self, git_client: Optional[GitClient] = None):
        self.git_client = git_client or GitClient()

    def detect(self, package_json: Dict[str, Any]) -> bool:
        return resolve_host(package_json.get("repository")) is not None

    async def acquire(
        self, package_json: Dict[str, Any], dest_dir: str, options: Optional[DownloadOptions] = None
    ) -> DownloadOutcome:
        options = options or DownloadOptions()
        name = package_json.get("name")
        repository = resolve_host(package_json.get("repository"))

        if repository is None:
            logger.warning(f"No supported repository for {name}, writing the registry descriptor only")
            return self.finish(package_json, dest_dir, Disposition.UNAVAILABLE)

        disposition = Disposition.ACQUIRED
        try:
            try:
                await self.git_client.clone(repository.clone_url, dest_dir)
            except GitCommandError as e:
                if classify_git_error(e.stderr) is not GitErrorKind.REPOSITORY_UNAVAILABLE:
                    raise RetryableError(f"Failed to clone {repository.clone_url}: {e}") from e
                logger.warning(f"Repository {repository.clone_url} of {name} is unavailable: {e.stderr.strip()}")
                empty_directory(dest_dir)
                disposition = Disposition.UNAVAILABLE
            else:
                await self._checkout(name, resolve_ref(package_json, options.ref_overrides), dest_dir)
        except asyncio.TimeoutError as e:
            raise RetryableError(f"git timed out for {repository.clone_url}") from e
        finally:
            remove_vcs_directories(dest_dir)

        outcome = self.finish(package_json, dest_dir, disposition)
        logger.info(f"Git download of {name} finished: {outcome.disposition.value}")
        return outcome

    async def _checkout(self, name: Optional[str], ref: Optional[str], dest_dir: str) -> None:
        if not ref:
            return
        try:
            await self.git_client.checkout(ref, dest_dir)
        except GitCommandError as e:
            if classify_git_error(e.stderr) is not GitErrorKind.REF_NOT_FOUND:
                raise RetryableError(f"Failed to checkout {ref} of {name}: {e}") from e
            # Keep the default branch content
            logger.warning(f"Ref {ref} of {name} does not exist, using the default branch")
