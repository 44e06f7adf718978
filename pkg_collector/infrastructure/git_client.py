import asyncio
import logging
import os
import re
from enum import Enum
from typing import Optional, Sequence

from pkg_collector.domain.exceptions import GitCommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class GitErrorKind(str, Enum):
    REF_NOT_FOUND = "ref_not_found"
    REPOSITORY_UNAVAILABLE = "repository_unavailable"
    UNKNOWN = "unknown"


# Best-effort classification of git's stderr. git does not offer stable error
# codes for these conditions and its wording is not versioned, so the table
# must be revisited whenever the git client in use is upgraded.
ERROR_PATTERNS = (
    (re.compile(r"reference is not a tree", re.I), GitErrorKind.REF_NOT_FOUND),
    (re.compile(r"not a valid (?:commit|tree|object)", re.I), GitErrorKind.REF_NOT_FOUND),
    (re.compile(r"did not match any file\(s\) known to git", re.I), GitErrorKind.REF_NOT_FOUND),
    (re.compile(r"unknown revision", re.I), GitErrorKind.REF_NOT_FOUND),
    (re.compile(r"repository not found", re.I), GitErrorKind.REPOSITORY_UNAVAILABLE),
    (re.compile(r"authentication failed", re.I), GitErrorKind.REPOSITORY_UNAVAILABLE),
    (re.compile(r"could not read username", re.I), GitErrorKind.REPOSITORY_UNAVAILABLE),
    (re.compile(r"unable to access", re.I), GitErrorKind.REPOSITORY_UNAVAILABLE),
    (re.compile(r"does not appear to be a git repository", re.I), GitErrorKind.REPOSITORY_UNAVAILABLE),
    (re.compile(r"repository '.*' not found", re.I), GitErrorKind.REPOSITORY_UNAVAILABLE),
)


def classify_git_error(stderr: str) -> GitErrorKind:
    for pattern, kind in ERROR_PATTERNS:
        if pattern.search(stderr or ""):
            return kind
    return GitErrorKind.UNKNOWN


class GitClient:
    """
    Thin async wrapper over the git executable.
    Each call spawns one process; on cancellation the process is killed and reaped.
    """

    def __init__(self, executable: str = "git", timeout: float = DEFAULT_TIMEOUT):
        self.executable = executable
        self.timeout = timeout
        # Never block on credential prompts for private or deleted repositories
        self.env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}

    async def run(self, args: Sequence[str], cwd: Optional[str] = None) -> str:
        """
        Runs `git <args>` and returns its stdout.

        Raises:
            GitCommandError: if git exits with a non-zero status.
            asyncio.TimeoutError: if the command exceeds the configured timeout.
        """
        logger.debug(f"Running git {' '.join(args)} (cwd: {cwd})")
        process = await asyncio.create_subprocess_exec(
            self.executable, *args,
            cwd=cwd,
            env=self.env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except BaseException:
            # Timeout or cancellation: do not leave the child running
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            raise GitCommandError(args, process.returncode, stderr.decode("utf-8", errors="replace"))
        return stdout.decode("utf-8", errors="replace")

    async def clone(self, url: str, dest_dir: str) -> None:
        await self.run(["clone", "--quiet", url, dest_dir])

    async def checkout(self, ref: str, cwd: str) -> None:
        await self.run(["checkout", "--quiet", ref], cwd=cwd)
