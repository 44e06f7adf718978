from typing import List, Optional

import aiohttp

from pkg_collector.application.downloaders.base import Downloader
from pkg_collector.application.downloaders.git import GitDownloader
from pkg_collector.application.downloaders.github import GitHubDownloader
from pkg_collector.infrastructure.git_client import GitClient
from pkg_collector.infrastructure.github_client import GitHubTarballClient


def default_downloaders(
    session: aiohttp.ClientSession,
    github_client: Optional[GitHubTarballClient] = None,
    git_client: Optional[GitClient] = None,
) -> List[Downloader]:
    """Downloaders in priority order: the GitHub archive API first, plain git for every other host."""
    return [
        GitHubDownloader(session, github_client),
        GitDownloader(git_client),
    ]
