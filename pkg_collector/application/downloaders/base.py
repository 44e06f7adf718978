import logging
import os
import shutil
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

from pkg_collector.domain.descriptor import write_descriptor
from pkg_collector.domain.models import Disposition, DownloadOptions, DownloadOutcome

logger = logging.getLogger(__name__)

VCS_DIRECTORIES = (".git",)


class Downloader(ABC):
    """
    A strategy able to materialize a module's source into a working directory.

    `acquire` always leaves exactly one package.json in the directory when it
    returns, and never a version-control metadata directory.
    """

    name = "downloader"

    @abstractmethod
    def detect(self, package_json: Dict[str, Any]) -> bool:
        """Tells whether this strategy handles the module's declared repository. Must not do I/O."""

    @abstractmethod
    async def acquire(
        self, package_json: Dict[str, Any], dest_dir: str, options: Optional[DownloadOptions] = None
    ) -> DownloadOutcome:
        """Downloads the source into `dest_dir` and writes the merged descriptor."""

    def finish(self, package_json: Dict[str, Any], dest_dir: str, disposition: Disposition) -> DownloadOutcome:
        """Writes the merged descriptor and builds the outcome."""
        remove_vcs_directories(dest_dir)
        merged, enrichment = write_descriptor(dest_dir, package_json)
        return DownloadOutcome(path=dest_dir, disposition=disposition, descriptor=merged, enrichment=enrichment)


def remove_vcs_directories(directory: str) -> None:
    for vcs_dir in VCS_DIRECTORIES:
        path = os.path.join(directory, vcs_dir)
        if os.path.isdir(path):
            shutil.rmtree(path)


def empty_directory(directory: str) -> None:
    """Removes everything inside `directory`, keeping the directory itself."""
    for entry in os.listdir(directory):
        path = os.path.join(directory, entry)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)


def pick_downloader(downloaders: Iterable[Downloader], package_json: Dict[str, Any]) -> Optional[Downloader]:
    """Returns the first downloader, in priority order, that accepts the module."""
    for downloader in downloaders:
        if downloader.detect(package_json):
            logger.debug(f"Using {downloader.name} downloader for {package_json.get('name')}")
            return downloader
    return None
