"""
Image Request Handler

Per-request pipeline:

    parse -> cache lookup -> HIT: respond
                          -> MISS: resolve -> fetch -> transform -> store -> respond

Components raise ImageOptimizerError subclasses; the route layer turns
them into responses. Cache write failures are logged and swallowed
unless `require_persistence` is set.
"""

import logging
from typing import Dict, Optional

from .cache_key import derive_cache_key
from .config import ImageOptimizerConfig
from .disk_cache import DiskCache
from .errors import BadRequest, Forbidden, StorageFailure
from .fetcher import SourceFetcher
from .models import (
    DEFAULT_FORMAT,
    DEFAULT_QUALITY,
    CacheStatus,
    ImageFormat,
    ImageResult,
    TransformRequest,
)
from .single_flight import SingleFlight
from .source_resolver import SourceResolver
from .transform import TransformEngine

logger = logging.getLogger(__name__)


def _parse_dimension(name: str, raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f"Invalid {name} parameter")
    if value <= 0:
        raise BadRequest(f"Invalid {name} parameter")
    return value


def parse_params(
    src: Optional[str],
    width: Optional[str] = None,
    height: Optional[str] = None,
    quality: Optional[str] = None,
    format: Optional[str] = None,
) -> TransformRequest:
    """Validate raw query values into a TransformRequest."""
    if not src or not src.strip():
        raise BadRequest("Missing src parameter")

    parsed_quality = DEFAULT_QUALITY
    if quality is not None and quality.strip() != "":
        try:
            parsed_quality = int(quality)
        except ValueError:
            raise BadRequest("Invalid quality parameter")
        if not 1 <= parsed_quality <= 100:
            raise BadRequest("Quality must be between 1 and 100")

    parsed_format = DEFAULT_FORMAT
    if format is not None and format.strip() != "":
        try:
            parsed_format = ImageFormat.parse(format)
        except ValueError:
            raise BadRequest(f"Unsupported format: {format[:20]}")

    return TransformRequest(
        source=src,
        width=_parse_dimension("width", width),
        height=_parse_dimension("height", height),
        quality=parsed_quality,
        format=parsed_format,
    )


class ImageRequestHandler:
    """
    Orchestrates one image request across the cache, resolver, fetcher
    and transform engine.
    """

    def __init__(
        self,
        config: ImageOptimizerConfig,
        cache: Optional[DiskCache] = None,
        resolver: Optional[SourceResolver] = None,
        fetcher: Optional[SourceFetcher] = None,
        engine: Optional[TransformEngine] = None,
        single_flight: Optional[SingleFlight] = None,
    ):
        self.config = config
        self.cache = cache or DiskCache(config.cache_dir)
        self.resolver = resolver or SourceResolver(config.assets_dir, config.project_root)
        self.fetcher = fetcher or SourceFetcher(
            timeout=config.fetch_timeout, max_source_bytes=config.max_source_bytes
        )
        self.engine = engine or TransformEngine()
        if single_flight is None and config.coalesce_requests:
            single_flight = SingleFlight()
        self.single_flight = single_flight

    parse_params = staticmethod(parse_params)

    async def close(self):
        await self.fetcher.close()

    async def handle(self, request: TransformRequest) -> ImageResult:
        key = derive_cache_key(
            request.source, request.width, request.height, request.quality, request.format
        )

        cached = await self.cache.lookup(key)
        if cached is not None:
            logger.debug(f"[ImageOptimizer] Cache hit: {key}")
            return ImageResult(data=cached, format=request.format, cache_status=CacheStatus.HIT)

        if self.single_flight is not None:
            data = await self.single_flight.do(key, lambda: self._produce(key, request))
        else:
            data = await self._produce(key, request)

        return ImageResult(data=data, format=request.format, cache_status=CacheStatus.MISS)

    async def _produce(self, key: str, request: TransformRequest) -> bytes:
        """Resolve, fetch, transform and store one cache entry."""
        location = self.resolver.resolve(request.source)
        if location is None:
            raise Forbidden()

        source_bytes = await self.fetcher.fetch(location)
        data = await self.engine.transform(
            source_bytes, request.width, request.height, request.quality, request.format
        )

        try:
            await self.cache.store(key, data)
        except StorageFailure:
            if self.config.require_persistence:
                raise
            logger.warning(f"[ImageOptimizer] Serving {key} without caching it")

        logger.info(
            f"[ImageOptimizer] Processed: {request.source[:60]} -> {key} ({len(data)} bytes)"
        )
        return data

    def build_headers(self, result: ImageResult) -> Dict[str, str]:
        """
        Response headers for a successful result.

        Configured extra headers may override Cache-Control but never
        Content-Type.
        """
        headers = {
            "Cache-Control": self.config.cache_control,
            "X-Cache": result.cache_status.value,
        }
        for name, value in self.config.headers.items():
            if name.lower() == "content-type":
                continue
            for existing in [h for h in headers if h.lower() == name.lower()]:
                del headers[existing]
            headers[name] = value
        headers["Content-Type"] = result.content_type
        return headers
