"""
Domain Input Parsing

Normalizes free-form domain lists (pasted text or CSV uploads) into the
bare hostnames the scanner expects.
"""

import re
from pathlib import Path
from typing import List, Union

DEFAULT_DOMAIN_LIMIT = 20

_SEPARATORS = re.compile(r"[\n,]")
_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_WWW = re.compile(r"^www\.", re.IGNORECASE)


def normalize_domain(value: str) -> str:
    """
    Reduce a URL or hostname to a bare domain.

    Examples:
        >>> normalize_domain("https://www.Example.com/news")
        'example.com'
    """
    cleaned = _SCHEME.sub("", value.strip())
    cleaned = cleaned.split("/")[0]
    cleaned = _WWW.sub("", cleaned)
    return cleaned.lower()


def parse_domains(text: str, limit: int = DEFAULT_DOMAIN_LIMIT) -> List[str]:
    """
    Parse a newline/comma separated list of domains.

    Blank entries are dropped, duplicates removed (first occurrence wins)
    and the result capped at ``limit``.
    """
    domains: List[str] = []
    for entry in _SEPARATORS.split(text or ""):
        if not entry.strip():
            continue
        domain = normalize_domain(entry)
        if domain and domain not in domains:
            domains.append(domain)
    return domains[:limit]


def parse_domain_file(path: Union[str, Path], limit: int = DEFAULT_DOMAIN_LIMIT) -> List[str]:
    """Parse domains from a CSV or plain-text file."""
    text = Path(path).read_text(encoding="utf-8-sig")
    return parse_domains(text, limit)
