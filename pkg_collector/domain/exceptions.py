from typing import Optional


class CollectorException(Exception):
    """Base exception for all collector-related errors."""
    pass

class RetryableError(CollectorException):
    """Raised for transient failures (network, 5xx, unexpected git errors) that the caller should retry."""
    pass

class RateLimitExceededException(RetryableError):
    """Raised when the GitHub API rate limit is hit."""
    def __init__(self, reset_at: Optional[str] = None, message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class UnrecoverableError(CollectorException):
    """
    Raised when retrying the same operation cannot succeed.
    Retry wrappers must check `unrecoverable` and give up instead of looping.
    """
    unrecoverable = True

class TarballTooLargeError(UnrecoverableError):
    """Raised when an archive declares a size above the safety threshold."""
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Tarball is too large ({size} bytes, limit is {limit} bytes)")

class GitCommandError(CollectorException):
    """Raised when a git subprocess exits with a non-zero status."""
    def __init__(self, args, returncode: int, stderr: str):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr or ""
        super().__init__(f"git {' '.join(self.command)} exited with {returncode}: {self.stderr.strip()}")
