import re
from typing import Any, Dict, Optional

from pkg_collector.domain.models import HostedRepository, Provider

# Supported providers and the domain their repositories live on
PROVIDER_DOMAINS: Dict[Provider, str] = {
    Provider.GITHUB: "github.com",
    Provider.GITLAB: "gitlab.com",
    Provider.BITBUCKET: "bitbucket.org",
}

_OWNER_REPO = r"(?P<owner>[\w.\-]+)/(?P<name>[\w.\-]+?)(?:\.git)?/?"


def _url_shapes(domain: str):
    host = re.escape(domain)
    return (
        # git://github.com/o/r.git, git+https://github.com/o/r.git, https://www.github.com/o/r
        re.compile(rf"^(?:git\+)?(?:git|https?)://(?:[^@/]+@)?(?:www\.)?{host}/{_OWNER_REPO}$", re.IGNORECASE),
        # git+ssh://git@github.com/o/r.git, ssh://git@github.com:o/r.git
        re.compile(rf"^(?:git\+)?ssh://(?:[^@/]+@)?{host}[:/]{_OWNER_REPO}$", re.IGNORECASE),
        # git@github.com:o/r.git
        re.compile(rf"^[^@/:]+@{host}:{_OWNER_REPO}$", re.IGNORECASE),
    )


_PATTERNS = {provider: _url_shapes(domain) for provider, domain in PROVIDER_DOMAINS.items()}


def resolve_host(repository: Any) -> Optional[HostedRepository]:
    """
    Classifies a descriptor's repository field by hosting provider.

    Returns None for missing repositories, non-git types and unsupported
    domains. Pure: performs no I/O.
    """
    if not isinstance(repository, dict):
        return None
    if repository.get("type", "git") != "git":
        return None

    url = repository.get("url")
    if not isinstance(url, str) or not url:
        return None
    url = url.split("#", 1)[0].strip()

    for provider, patterns in _PATTERNS.items():
        for pattern in patterns:
            match = pattern.match(url)
            if match:
                return HostedRepository(
                    provider=provider,
                    domain=PROVIDER_DOMAINS[provider],
                    owner=match.group("owner"),
                    name=match.group("name"),
                )
    return None
