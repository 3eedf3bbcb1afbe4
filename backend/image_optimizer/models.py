"""
Image Optimizer Models

Data types shared across the optimizer:
- ImageFormat: supported output formats
- TransformRequest: normalized request parameters
- RemoteSource / LocalSource: resolved source locations
- ImageResult: bytes ready to be served
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


# ============================================
# Enums
# ============================================

class ImageFormat(str, Enum):
    """Output formats the optimizer can encode to"""
    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"
    AVIF = "avif"
    GIF = "gif"

    @classmethod
    def parse(cls, value: str) -> "ImageFormat":
        """Parse a query value. `jpg` is accepted as an alias of `jpeg`."""
        normalized = value.strip().lower()
        if normalized == "jpg":
            normalized = "jpeg"
        return cls(normalized)

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pil_format(self) -> str:
        return self.value.upper()


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"


# ============================================
# Request / Result
# ============================================

DEFAULT_QUALITY = 80
DEFAULT_FORMAT = ImageFormat.WEBP


@dataclass(frozen=True)
class TransformRequest:
    """One image request after query parsing."""
    source: str
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = DEFAULT_QUALITY
    format: ImageFormat = DEFAULT_FORMAT

    def __post_init__(self):
        if not self.source:
            raise ValueError("source must be non-empty")
        for name in ("width", "height"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be a positive integer")
        if not 1 <= self.quality <= 100:
            raise ValueError("quality must be between 1 and 100")


@dataclass
class ImageResult:
    """Encoded image ready for the response."""
    data: bytes
    format: ImageFormat
    cache_status: CacheStatus

    @property
    def content_type(self) -> str:
        return self.format.content_type


# ============================================
# Resolved source locations
# ============================================

@dataclass(frozen=True)
class RemoteSource:
    url: str


@dataclass(frozen=True)
class LocalSource:
    """A canonical path already checked to lie inside its sandbox root."""
    path: Path


SourceLocation = Union[RemoteSource, LocalSource]
