"""
Image Optimizer Module

On-demand image resizing and re-encoding with a local disk cache.
Mounted into a FastAPI app as a single GET endpoint (default /image).

Features:
- Remote (http/https) and sandboxed local sources
- Fit-inside resize without upscaling
- webp / jpeg / png / avif / gif output with quality control
- Write-once disk cache keyed by request parameters
"""

from .cache_key import derive_cache_key, normalize_source
from .config import ImageOptimizerConfig
from .disk_cache import DiskCache
from .fetcher import SourceFetcher
from .handler import ImageRequestHandler
from .models import ImageFormat, TransformRequest
from .routes_fastapi import ImageOptimizer, create_image_router, mount_image_optimizer
from .source_resolver import SourceResolver
from .transform import TransformEngine
from .url_builder import build_image_url

__all__ = [
    "derive_cache_key",
    "normalize_source",
    "ImageOptimizerConfig",
    "DiskCache",
    "SourceFetcher",
    "ImageRequestHandler",
    "ImageFormat",
    "TransformRequest",
    "ImageOptimizer",
    "create_image_router",
    "mount_image_optimizer",
    "SourceResolver",
    "TransformEngine",
    "build_image_url",
]
