"""
Posting Deduplication by Normalized URL

Two postings are the same posting when their normalized URL paths match,
regardless of which source produced them:

    https://www.linkedin.com/jobs/view/123?trk=abc   -> /jobs/view/123
    HTTPS://WWW.LINKEDIN.COM/jobs/view/123/          -> /jobs/view/123

Query strings and fragments are ignored so tracking parameters do not
create distinct postings.
"""

import hashlib
from typing import TYPE_CHECKING, List
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from jobpipeline.schemas.posting import Posting


def normalize_url_key(url: str) -> str:
    """
    Compute the deduplication key of a posting URL.

    Lower-cases the URL, strips a single trailing slash, then keeps only
    the path component.

    Args:
        url: Posting URL as returned by the source

    Returns:
        Normalized path (falls back to the normalized string when the URL
        has no parseable path)
    """
    normalized = url.strip().lower()
    if normalized.endswith("/"):
        normalized = normalized[:-1]

    try:
        path = urlsplit(normalized).path
    except ValueError:
        return normalized

    return path or normalized


def posting_key(url: str) -> str:
    """Stable 16-char posting id derived from the deduplication key."""
    return hashlib.sha256(normalize_url_key(url).encode()).hexdigest()[:16]


def deduplicate(postings: List["Posting"]) -> List["Posting"]:
    """
    Collapse postings sharing a normalized URL path.

    The first occurrence in input order wins. Pure and synchronous.
    """
    seen = set()
    unique = []

    for posting in postings:
        key = normalize_url_key(posting.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(posting)

    return unique
