from typing import Any


def deep_compact(value: Any) -> Any:
    """
    Recursively removes None, empty strings, empty lists and empty dicts.

    Containers that become empty after compaction are removed as well, so the
    result never carries tombstone branches. False and 0 are kept.
    """
    if isinstance(value, dict):
        compacted = {}
        for key, item in value.items():
            item = deep_compact(item)
            if not _is_empty(item):
                compacted[key] = item
        return compacted

    if isinstance(value, (list, tuple)):
        return [item for item in (deep_compact(item) for item in value) if not _is_empty(item)]

    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False
