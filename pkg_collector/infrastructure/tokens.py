import logging
import time
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class TokenPool:
    """
    Spreads GitHub API requests across several tokens.

    Tokens reported as rate limited are parked until their reset time. The pool
    owns no retry logic: when every token is parked `pick()` returns None and
    the caller surfaces the rate limit upstream.
    """

    def __init__(self, tokens: List[str]):
        self.tokens = [token for token in tokens if token]
        self._parked_until: Dict[str, float] = {}
        self._cursor = 0

    def pick(self) -> Optional[str]:
        """Returns the next usable token in round-robin order, or None when all are parked."""
        if not self.tokens:
            return None

        now = time.time()
        for _ in range(len(self.tokens)):
            token = self.tokens[self._cursor % len(self.tokens)]
            self._cursor += 1
            if self._parked_until.get(token, 0) <= now:
                return token
        return None

    def earliest_reset(self) -> Optional[float]:
        return min(self._parked_until.values()) if self._parked_until else None

    def report(self, token: Optional[str], status: int, headers: Mapping[str, str]) -> bool:
        """
        Inspects a response for GitHub rate-limit signals.

        Returns True if the response was a rate-limit rejection, parking the token
        until `X-RateLimit-Reset` (or `Retry-After` seconds from now).
        """
        remaining = headers.get("X-RateLimit-Remaining")
        retry_after = headers.get("Retry-After")
        limited = status in (403, 429) and (remaining == "0" or retry_after is not None)
        if not limited:
            return False

        if retry_after is not None and retry_after.isdigit():
            reset = time.time() + int(retry_after)
        else:
            reset_header = headers.get("X-RateLimit-Reset", "")
            reset = float(reset_header) if reset_header.isdigit() else time.time() + 60

        if token:
            self._parked_until[token] = reset
            logger.warning(f"GitHub token ...{token[-4:]} rate limited until {time.ctime(reset)}")
        return True

    def revoke(self, token: Optional[str]) -> None:
        """Drops a token GitHub rejected as invalid so it is never picked again."""
        if token in self.tokens:
            self.tokens.remove(token)
            self._parked_until.pop(token, None)
            logger.error(f"GitHub token ...{token[-4:]} was rejected, removing it from the pool")
