"""
Client-side URL builder for the optimizer endpoint.

Local sources lose their query string here exactly as they do in
cache-key derivation, so the URL a client builds and the key the
server derives refer to the same entry.
"""

from typing import Optional, Union
from urllib.parse import urlencode

from .cache_key import normalize_source
from .models import ImageFormat


def build_image_url(
    src: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    quality: Optional[int] = None,
    format: Optional[Union[ImageFormat, str]] = None,
    base_path: str = "/image",
) -> str:
    params = [("src", normalize_source(src))]
    if width:
        params.append(("width", str(width)))
    if height:
        params.append(("height", str(height)))
    if quality:
        params.append(("quality", str(quality)))
    if format:
        if not isinstance(format, ImageFormat):
            format = ImageFormat.parse(format)
        params.append(("format", format.value))

    return f"{base_path}?{urlencode(params)}"
