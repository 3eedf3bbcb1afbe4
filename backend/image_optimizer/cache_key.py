"""
Cache Key Derivation

Maps request parameters to a flat file name in the cache directory:

    <md5(normalized source)>-<width|auto>x<height|auto>-q<quality>.<format>

Local sources drop their query string first so incidental `?v=...`
noise does not fork cache entries. Remote URLs are hashed verbatim.
"""

import hashlib
from typing import Optional

from .models import ImageFormat

REMOTE_PREFIXES = ("http://", "https://")


def is_remote_source(source: str) -> bool:
    return source.startswith(REMOTE_PREFIXES)


def normalize_source(source: str) -> str:
    """Strip the query string from local sources; leave URLs untouched."""
    if is_remote_source(source):
        return source
    return source.split("?", 1)[0]


def derive_cache_key(
    source: str,
    width: Optional[int],
    height: Optional[int],
    quality: int,
    format: ImageFormat,
) -> str:
    source_hash = hashlib.md5(normalize_source(source).encode("utf-8")).hexdigest()
    return (
        f"{source_hash}-{width or 'auto'}x{height or 'auto'}"
        f"-q{quality}.{ImageFormat(format).value}"
    )
