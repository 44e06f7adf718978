import asyncio
import logging
import os
import shutil
import tarfile
import zlib
from typing import List

logger = logging.getLogger(__name__)


def _strip_members(tar: tarfile.TarFile, dest_dir: str) -> List[tarfile.TarInfo]:
    """
    Drops the archive's root folder from every member name and filters out
    anything that would land outside `dest_dir` (absolute paths, `..`, links, devices).
    """
    root = os.path.realpath(dest_dir)
    members = []
    for member in tar.getmembers():
        parts = member.name.replace("\\", "/").split("/", 1)
        if len(parts) < 2 or not parts[1].strip("/"):
            continue
        name = parts[1]

        if not (member.isfile() or member.isdir()):
            logger.debug(f"Skipping non-regular archive member {member.name}")
            continue
        target = os.path.realpath(os.path.join(root, name))
        if os.path.isabs(name) or not target.startswith(root + os.sep):
            logger.warning(f"Skipping archive member escaping the destination: {member.name}")
            continue

        member.name = name
        members.append(member)
    return members


def _chmod_recursive(directory: str, mode: int = 0o777) -> None:
    for current, dirs, files in os.walk(directory):
        for entry in dirs + files:
            os.chmod(os.path.join(current, entry), mode)
    os.chmod(directory, mode)


def _discard_members(dest_dir: str, members: List[tarfile.TarInfo]) -> None:
    """Removes whatever a failed extraction left behind."""
    for top in {member.name.split("/", 1)[0] for member in members}:
        path = os.path.join(dest_dir, top)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path, ignore_errors=True)
        elif os.path.lexists(path):
            os.remove(path)


def untar_sync(file: str) -> bool:
    """
    Extracts `file` into its own directory stripping the outermost path component.

    Malformed or truncated archives (services sometimes answer with JSON under
    a tarball content type) are logged and ignored, and anything partially
    extracted from them is removed. The archive is always removed.

    Returns:
        True if the archive was extracted, False if it was malformed.
    """
    dest_dir = os.path.dirname(os.path.abspath(file))
    extracted = False
    members: List[tarfile.TarInfo] = []

    try:
        with tarfile.open(file, mode="r:*") as tar:
            members = _strip_members(tar, dest_dir)
            if hasattr(tarfile, "data_filter"):
                tar.extractall(dest_dir, members=members, filter="data")
            else:
                tar.extractall(dest_dir, members=members)
        extracted = True
    # Truncated or corrupted gzip streams surface as EOFError, zlib.error or BadGzipFile (an OSError)
    except (tarfile.TarError, EOFError, zlib.error, OSError) as e:
        logger.warning(f"Malformed archive file {file}, ignoring: {e}")
        _discard_members(dest_dir, members)
    finally:
        if os.path.exists(file):
            os.remove(file)

    _chmod_recursive(dest_dir)
    return extracted


async def untar(file: str) -> bool:
    """Async variant of `untar_sync` running the extraction in a worker thread."""
    return await asyncio.to_thread(untar_sync, file)
