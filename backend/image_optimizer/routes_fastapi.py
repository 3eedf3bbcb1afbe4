"""
Image Optimizer API Routes

Provides endpoints for:
- On-demand resize / re-encode with disk caching (GET {path})
- Cache statistics (GET {path}/stats)
- Health check (GET {path}/health)

Errors are returned as plain text with the status code of the
ImageOptimizerError that caused them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from .config import ImageOptimizerConfig
from .errors import ImageOptimizerError
from .handler import ImageRequestHandler

logger = logging.getLogger(__name__)


# ============================================
# Response Models
# ============================================

class CacheStatsResponse(BaseModel):
    """Response model for stats endpoint"""
    total_entries: int
    total_size_bytes: int
    total_size_mb: float


# ============================================
# Router
# ============================================

def create_image_router(
    config: Optional[ImageOptimizerConfig] = None,
    handler: Optional[ImageRequestHandler] = None,
) -> APIRouter:
    """
    Build the router serving optimized images at `config.path`.

    Args:
        config: Optimizer settings (default: read from environment)
        handler: Pre-built handler, mainly for injecting collaborators
    """
    if handler is None:
        handler = ImageRequestHandler(config or ImageOptimizerConfig.from_env())
    config = handler.config
    base_path = config.path.rstrip("/")

    router = APIRouter(tags=["Image Optimizer"])

    @router.get(config.path)
    async def optimize_image(
        src: Optional[str] = Query(None, description="Remote URL or path inside the assets directory"),
        width: Optional[str] = Query(None, description="Target width in pixels"),
        height: Optional[str] = Query(None, description="Target height in pixels"),
        quality: Optional[str] = Query(None, description="Encoder quality (1-100, default 80)"),
        format: Optional[str] = Query(None, description="webp, jpeg, png, avif or gif (default webp)"),
    ):
        """
        Serve a resized / re-encoded image.

        This endpoint:
        1. Derives a cache key from the parameters
        2. Serves the cached file if one exists
        3. Otherwise fetches the source, transforms it, caches the result

        Example:
            GET /image?src=/photo.jpg&width=400&format=webp
        """
        try:
            request = handler.parse_params(src, width, height, quality, format)
            result = await handler.handle(request)
        except ImageOptimizerError as e:
            if e.status_code >= 500:
                logger.error(f"[ImageOptimizer] {type(e).__name__} for src={(src or '')[:80]!r}: {e.message}")
            return PlainTextResponse(e.message, status_code=e.status_code)
        except Exception:
            logger.exception(f"[ImageOptimizer] Unexpected error for src={(src or '')[:80]!r}")
            return PlainTextResponse("Internal Server Error", status_code=500)

        return Response(content=result.data, headers=handler.build_headers(result))

    @router.get(f"{base_path}/stats", response_model=CacheStatsResponse)
    async def get_cache_stats():
        """Get disk cache statistics."""
        return CacheStatsResponse(**await handler.cache.stats())

    @router.get(f"{base_path}/health")
    async def health_check():
        """Health check endpoint."""
        return JSONResponse(content={
            "status": "healthy",
            "service": "image-optimizer",
        })

    return router


# ============================================
# Mounting
# ============================================

class ImageOptimizer:
    """
    Handler + router for one configured optimizer instance.

    Usage:
        optimizer = ImageOptimizer(ImageOptimizerConfig(assets_dir="./assets"))
        app.include_router(optimizer.router)
        ...
        await optimizer.close()
    """

    def __init__(
        self,
        config: Optional[ImageOptimizerConfig] = None,
        handler: Optional[ImageRequestHandler] = None,
    ):
        self.handler = handler or ImageRequestHandler(config or ImageOptimizerConfig.from_env())
        self.config = self.handler.config

        if self.config.clear_cache_on_start:
            self.handler.cache.clear()

        self.router = create_image_router(handler=self.handler)
        logger.info(
            f"[ImageOptimizer] Serving {self.config.path} "
            f"(assets: {self.config.assets_dir}, cache: {self.config.cache_dir})"
        )

    async def close(self):
        await self.handler.close()


def mount_image_optimizer(
    app: FastAPI,
    config: Optional[ImageOptimizerConfig] = None,
    handler: Optional[ImageRequestHandler] = None,
) -> ImageOptimizer:
    """Attach an optimizer to `app` and return it so the caller can close it."""
    optimizer = ImageOptimizer(config, handler=handler)
    app.include_router(optimizer.router)
    return optimizer
