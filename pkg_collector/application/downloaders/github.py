import aiohttp
import logging
import os
from typing import Any, Dict, Optional

from pkg_collector.application.downloaders.base import Downloader
from pkg_collector.application.downloaders.refs import resolve_ref
from pkg_collector.domain.models import Disposition, DownloadOptions, DownloadOutcome, Provider
from pkg_collector.infrastructure.github_client import GitHubTarballClient
from pkg_collector.infrastructure.hosts import resolve_host
from pkg_collector.infrastructure.untar import untar

logger = logging.getLogger(__name__)

TARBALL_FILE = "tarball.tar.gz"


def _is_client_error(status: int) -> bool:
    return 400 <= status < 500


class GitHubDownloader(Downloader):
    """
    Tarball-over-HTTP strategy for GitHub repositories.
    Avoids spawning git and only transfers the snapshot of the resolved ref.
    """

    name = "github"

    def __init__(self, session: aiohttp.ClientSession, client: Optional[GitHubTarballClient] = None):
        self.session = session
        self.client = client or GitHubTarballClient()

    def detect(self, package_json: Dict[str, Any]) -> bool:
        repository = resolve_host(package_json.get("repository"))
        return repository is not None and repository.provider is Provider.GITHUB

    async def acquire(
        self, package_json: Dict[str, Any], dest_dir: str, options: Optional[DownloadOptions] = None
    ) -> DownloadOutcome:
        options = options or DownloadOptions()
        name = package_json.get("name")
        repository = resolve_host(package_json.get("repository"))

        if repository is None or repository.provider is not Provider.GITHUB:
            logger.warning(f"No GitHub repository for {name}, writing the registry descriptor only")
            return self.finish(package_json, dest_dir, Disposition.UNAVAILABLE)

        ref = resolve_ref(package_json, options.ref_overrides)
        archive = os.path.join(dest_dir, TARBALL_FILE)

        try:
            status = await self.client.download_tarball(self.session, repository, ref, archive)

            # The pinned commit may have been force-pushed away; try the default branch once
            if _is_client_error(status) and ref:
                logger.warning(f"Ref {ref} of {name} answered {status}, falling back to the default branch")
                status = await self.client.download_tarball(self.session, repository, None, archive)

            if _is_client_error(status):
                logger.warning(f"Tarball of {name} is unavailable ({status}), writing the registry descriptor only")
                disposition = Disposition.UNAVAILABLE
            else:
                extracted = await untar(archive)
                disposition = Disposition.ACQUIRED if extracted else Disposition.UNAVAILABLE
        finally:
            if os.path.exists(archive):
                os.remove(archive)

        outcome = self.finish(package_json, dest_dir, disposition)
        logger.info(f"GitHub download of {name} finished: {outcome.disposition.value}")
        return outcome
