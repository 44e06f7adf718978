import json
import logging
import os
import re
from typing import Any, Dict, Optional, Tuple

from pkg_collector.domain.exceptions import UnrecoverableError

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "package.json"
DEFAULT_VERSION = "0.0.1"

_BAD_PERCENT_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Hosts reachable through the `provider:owner/repo` shorthand; bare `owner/repo` means GitHub
SHORTHAND_DOMAINS = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
}
_SHORTHAND_RE = re.compile(
    r"^(?:(?P<provider>github|gitlab|bitbucket):)?(?P<owner>[\w.\-]+)/(?P<name>[\w.\-]+?)(?:\.git)?$",
    re.IGNORECASE,
)


def expand_repository_url(url: str) -> str:
    """
    Expands `github:o/r`, `gitlab:o/r`, `bitbucket:o/r` and bare `o/r` into
    https clone URLs and drops any `#committish` fragment.
    """
    url = url.split("#", 1)[0].strip().rstrip("/")
    match = _SHORTHAND_RE.match(url)
    if not match or match.group("owner").startswith("."):
        return url

    domain = SHORTHAND_DOMAINS[(match.group("provider") or "github").lower()]
    return f"https://{domain}/{match.group('owner')}/{match.group('name')}.git"


def merge_descriptors(
    registry: Dict[str, Any], repository: Optional[Dict[str, Any]]
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Reconciles the registry descriptor with the one found in the repository.

    The repository copy is the base and every field the registry defines wins.
    Returns (merged, enrichment) where enrichment holds the fields only the
    repository copy had, so callers can decide whether to apply them to the
    registry descriptor they hold.
    """
    if not repository:
        return dict(registry), {}

    merged = {**repository, **registry}
    enrichment = {key: value for key, value in repository.items() if key not in registry}
    return merged, enrichment


def read_descriptor(directory: str) -> Optional[Dict[str, Any]]:
    """Loads the package.json inside `directory`, treating missing or malformed files as absent."""
    path = os.path.join(directory, DESCRIPTOR_FILE)
    try:
        with open(path, encoding="utf-8") as file:
            data = json.load(file)
    except FileNotFoundError:
        return None
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"Ignoring malformed {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected an object, got {type(data).__name__}")
        return None
    return data


def write_descriptor(directory: str, registry: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Merges the registry descriptor over whatever package.json the working
    directory holds and writes the result back, so exactly one descriptor exists.
    """
    merged, enrichment = merge_descriptors(registry, read_descriptor(directory))

    with open(os.path.join(directory, DESCRIPTOR_FILE), "w", encoding="utf-8") as file:
        json.dump(merged, file, indent=2)

    return merged, enrichment


def normalize_package_json(name: str, package_json: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fills in the fields downstream code relies on. Mutates and returns `package_json`.

    Raises:
        UnrecoverableError: if the repository URL cannot be decoded.
    """
    if not package_json.get("name"):
        package_json["name"] = name
    if not package_json.get("version"):
        package_json["version"] = DEFAULT_VERSION

    repository = package_json.get("repository")
    if isinstance(repository, str):
        repository = {"type": "git", "url": repository}
    if isinstance(repository, dict) and isinstance(repository.get("url"), str):
        url = repository["url"].strip()
        if _BAD_PERCENT_ESCAPE_RE.search(url):
            raise UnrecoverableError(f"URI malformed in repository of {name}: {url}")
        repository = {**repository, "url": expand_repository_url(url)}
    if repository is not None:
        package_json["repository"] = repository

    return package_json


def latest_package_json(data: Dict[str, Any]) -> Dict[str, Any]:
    """Picks the descriptor of the `latest` dist-tag, falling back to the last published version."""
    versions = data.get("versions") or {}
    latest = (data.get("dist-tags") or {}).get("latest")

    if latest in versions:
        return versions[latest]
    if versions:
        return list(versions.values())[-1]
    return {}
