import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pkg_collector.domain.compact import deep_compact
from pkg_collector.domain.descriptor import DEFAULT_VERSION
from pkg_collector.domain.licenses import extract_license
from pkg_collector.domain.releases import release_points, releases_frequency

logger = logging.getLogger(__name__)

NO_README_MARKER = "No README data"
NO_TEST_SCRIPT_MARKER = "no test specified"


def _person(user: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(user, dict):
        return None
    return {"username": user.get("name"), "email": user.get("email")}


def extract_releases_frequency(data: Dict[str, Any], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Aggregates the module releases into fixed windows with a release count each."""
    frequency = releases_frequency(release_points(data.get("time")), now=now)
    return [
        {"from": item.start.isoformat(), "to": item.end.isoformat(), "count": item.count}
        for item in frequency
    ]


def extract_publisher(package_json: Dict[str, Any], maintainers: Optional[List[Dict[str, Any]]]):
    """
    Extracts who published the module.
    Older modules lack `_npmUser`, so the author is looked up among the
    maintainers by email, falling back to the first maintainer.
    """
    publisher = package_json.get("_npmUser")

    if not isinstance(publisher, dict) and maintainers:
        author = package_json.get("author")
        author_email = author.get("email") if isinstance(author, dict) else None
        publisher = next(
            (maintainer for maintainer in maintainers if author_email and maintainer.get("email") == author_email),
            maintainers[0],
        )

    return _person(publisher)


def extract_maintainers(data: Dict[str, Any], package_json: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    """
    Extracts the module maintainers.

    Some modules only list maintainers in the document, others only in the
    descriptor, and some list an empty array in one and the real one in the
    other. Legacy entries occasionally have a string instead of a list.
    """
    for maintainers in (data.get("maintainers"), package_json.get("maintainers")):
        if isinstance(maintainers, list) and maintainers:
            return [maintainer for maintainer in maintainers if isinstance(maintainer, dict)] or None

    logger.warning(
        f"Failed to extract maintainers of {package_json.get('name')} "
        f"(document: {data.get('maintainers')!r}, descriptor: {package_json.get('maintainers')!r})"
    )
    return None


def _readme(data: Dict[str, Any]) -> Optional[str]:
    # Some old documents carry the README as an object
    readme = data.get("readme")
    if isinstance(readme, str) and NO_README_MARKER not in readme:
        return readme
    return None


def _has_test_script(package_json: Dict[str, Any]) -> bool:
    scripts = package_json.get("scripts")
    test = scripts.get("test") if isinstance(scripts, dict) else None
    return isinstance(test, str) and bool(test.strip()) and NO_TEST_SCRIPT_MARKER not in test


def derive_metadata(
    data: Dict[str, Any], package_json: Dict[str, Any], now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Builds the normalized metadata record of a module.

    Args:
        data: The raw registry document.
        package_json: The normalized descriptor of the latest version.
        now: Reference time for the release windows, defaults to the current time.

    Returns:
        The record with every empty branch removed.
    """
    versions = list((data.get("versions") or {}).keys())
    time_map = data.get("time") if isinstance(data.get("time"), dict) else {}
    maintainers = extract_maintainers(data, package_json)

    record = deep_compact({
        "name": package_json.get("name"),
        "version": package_json.get("version"),
        "description": package_json.get("description"),
        "keywords": package_json.get("keywords"),
        "readme": _readme(data),

        "publisher": extract_publisher(package_json, maintainers),
        "maintainers": [_person(maintainer) for maintainer in maintainers] if maintainers else None,

        "author": package_json.get("author"),
        "contributors": package_json.get("contributors"),

        "repository": package_json.get("repository"),
        "homepage": package_json.get("homepage"),
        "license": extract_license(package_json),

        "dependencies": package_json.get("dependencies"),
        "devDependencies": package_json.get("devDependencies"),
        "peerDependencies": package_json.get("peerDependencies"),
        "bundledDependencies": package_json.get("bundledDependencies") or package_json.get("bundleDependencies"),
        "optionalDependencies": package_json.get("optionalDependencies"),

        "releases": {
            "latest": {
                "version": versions[-1] if versions else DEFAULT_VERSION,
                "date": time_map.get("modified"),
            },
            "first": {
                "version": versions[0] if versions else DEFAULT_VERSION,
                "date": time_map.get("created"),
            },
            "frequency": extract_releases_frequency(data, now=now),
        },

        "deprecated": package_json.get("deprecated"),
        "hasTestScript": _has_test_script(package_json),
    })

    logger.debug(f"The metadata collector for {package_json.get('name')} completed successfully")
    return record
