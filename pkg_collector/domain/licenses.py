import logging
import re
from typing import Any, Dict, Optional

from license_expression import ExpressionError, get_spdx_licensing

logger = logging.getLogger(__name__)

_licensing = get_spdx_licensing()

# Noise stripped from free-form license names before looking them up in LICENSE_ALIASES
_NOISE_RE = re.compile(r"licen[cs]es?|version|the|[\s\-_,/()'\"]")

# Common free-form names found in old registry entries, keyed by their squashed form
LICENSE_ALIASES: Dict[str, str] = {
    "mit": "MIT",
    "mitx11": "MIT",
    "expat": "MIT",
    "apache": "Apache-2.0",
    "apache2": "Apache-2.0",
    "apache2.0": "Apache-2.0",
    "apachev2": "Apache-2.0",
    "apachev2.0": "Apache-2.0",
    "asl2.0": "Apache-2.0",
    "bsd": "BSD-2-Clause",
    "bsd2": "BSD-2-Clause",
    "bsd2clause": "BSD-2-Clause",
    "simplifiedbsd": "BSD-2-Clause",
    "freebsd": "BSD-2-Clause",
    "bsd3": "BSD-3-Clause",
    "bsd3clause": "BSD-3-Clause",
    "newbsd": "BSD-3-Clause",
    "revisedbsd": "BSD-3-Clause",
    "modifiedbsd": "BSD-3-Clause",
    "gpl": "GPL-3.0-or-later",
    "gpl2": "GPL-2.0-only",
    "gplv2": "GPL-2.0-only",
    "gpl2.0": "GPL-2.0-only",
    "gpl3": "GPL-3.0-only",
    "gplv3": "GPL-3.0-only",
    "gpl3.0": "GPL-3.0-only",
    "lgpl": "LGPL-3.0-or-later",
    "lgpl2.1": "LGPL-2.1-only",
    "lgplv2.1": "LGPL-2.1-only",
    "lgpl3": "LGPL-3.0-only",
    "lgplv3": "LGPL-3.0-only",
    "agpl": "AGPL-3.0-only",
    "agplv3": "AGPL-3.0-only",
    "mpl": "MPL-2.0",
    "mpl2": "MPL-2.0",
    "mpl2.0": "MPL-2.0",
    "isc": "ISC",
    "wtfpl": "WTFPL",
    "unlicense": "Unlicense",
    "publicdomain": "Unlicense",
    "cc0": "CC0-1.0",
    "cc01.0": "CC0-1.0",
    "zlib": "Zlib",
    "artistic2": "Artistic-2.0",
    "artistic2.0": "Artistic-2.0",
    "epl": "EPL-1.0",
    "epl1.0": "EPL-1.0",
}


def validate_spdx(expression: str) -> Optional[str]:
    """Returns the normalized SPDX expression, or None if `expression` is not valid SPDX."""
    try:
        info = _licensing.validate(expression)
    # Dangling operators and slash forms make some parser releases fail while
    # building their own ExpressionError
    except (ExpressionError, AttributeError) as e:
        logger.debug(f"Could not parse license expression {expression!r}: {e}")
        return None
    if info.errors:
        return None
    return info.normalized_expression or None


def correct_license(license: str) -> Optional[str]:
    """Best-effort mapping of a free-form license name to an SPDX identifier."""
    squashed = _NOISE_RE.sub("", license.lower())
    return LICENSE_ALIASES.get(squashed)


def normalize_license(name: str, license: Any) -> Optional[str]:
    """
    Normalizes a single license value to an SPDX expression.

    Accepts a string or the deprecated {type, url} object. Invalid values are
    corrected where possible and discarded otherwise.
    """
    if isinstance(license, dict):
        license = license.get("type")

    if not isinstance(license, str) or not license.strip():
        logger.debug(f"Invalid license for module {name} was found: {license!r}")
        return None

    license = license.strip()
    normalized = validate_spdx(license)
    if normalized == license:
        return license

    corrected = normalized or correct_license(license)
    if corrected:
        logger.debug(f"Module {name} license was corrected from {license} to {corrected}")
        return corrected

    logger.debug(f"License for module {name} is not a valid SPDX identifier: {license!r}")
    return None


def extract_license(package_json: Dict[str, Any]) -> Optional[str]:
    """
    Extracts the license from a descriptor, joining arrays of licenses with OR.
    Never raises: unusable input yields None.
    """
    name = package_json.get("name")
    license = package_json.get("license") or package_json.get("licenses")

    if license is None:
        logger.debug(f"No license for module {name} is set")
        return None

    # Some old modules used an array of strings or {type, url} objects
    if isinstance(license, list):
        licenses = [normalize_license(name, item) for item in license]
        licenses = [item for item in licenses if item]
        if not licenses:
            return None
        if len(licenses) == 1:
            return licenses[0]
        return " OR ".join(f"({item})" if " " in item else item for item in licenses)

    return normalize_license(name, license)
