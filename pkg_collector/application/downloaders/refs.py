from typing import Any, Dict, Mapping, Optional


def resolve_ref(package_json: Dict[str, Any], ref_overrides: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Determines which ref to materialize for a module.

    An operator override keyed by module name wins over the pinned `gitHead`.
    None means the provider's default branch.
    """
    name = package_json.get("name")
    if ref_overrides and name in ref_overrides:
        return ref_overrides[name] or None

    git_head = package_json.get("gitHead")
    if isinstance(git_head, str) and git_head.strip():
        return git_head.strip()
    return None
