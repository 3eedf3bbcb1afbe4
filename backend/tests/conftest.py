"""
Image optimizer test configuration

Fixtures build a throwaway assets directory with generated images,
a cache directory, and collaborators that count how often they are
called so tests can tell cache hits from fresh work.
"""

import sys
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image

# 添加 backend 目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_optimizer.config import ImageOptimizerConfig
from image_optimizer.fetcher import SourceFetcher
from image_optimizer.handler import ImageRequestHandler
from image_optimizer.transform import TransformEngine


# ============================================
# Image helpers
# ============================================

def make_image_bytes(width, height, fmt="PNG", mode="RGB", color=(200, 40, 40)):
    """Encode a solid-colour image of the given size."""
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    img = Image.new(mode, (width, height), color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def open_image(data):
    img = Image.open(BytesIO(data))
    img.load()
    return img


REMOTE_OK = "https://img.example.com/remote.png"
REMOTE_MISSING = "https://img.example.com/missing.png"
REMOTE_UNREACHABLE = "https://unreachable.invalid/x.jpg"


def remote_transport():
    """httpx transport standing in for the network."""
    remote_png = make_image_bytes(640, 480)

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.url.host == "unreachable.invalid":
            raise httpx.ConnectError("Name or service not known", request=request)
        if url.startswith(REMOTE_OK):
            return httpx.Response(200, content=remote_png, headers={"content-type": "image/png"})
        return httpx.Response(404, text="not found")

    return httpx.MockTransport(handler)


# ============================================
# Counting collaborators
# ============================================

class CountingFetcher(SourceFetcher):
    def __init__(self, **kwargs):
        kwargs.setdefault("client", httpx.AsyncClient(transport=remote_transport()))
        super().__init__(**kwargs)
        self.calls = []

    async def fetch(self, location):
        self.calls.append(location)
        return await super().fetch(location)


class CountingEngine(TransformEngine):
    def __init__(self):
        self.calls = 0

    def transform_sync(self, *args, **kwargs):
        self.calls += 1
        return super().transform_sync(*args, **kwargs)


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def assets_dir(tmp_path):
    """
    Sandbox with:
    - photo.jpg: 800x600
    - square.png: 100x100
    - portrait.png: 100x200
    - nested/alpha.png: 50x50 RGBA
    - broken.jpg: not an image
    """
    root = tmp_path / "project" / "assets"
    (root / "nested").mkdir(parents=True)
    (root / "photo.jpg").write_bytes(make_image_bytes(800, 600, fmt="JPEG"))
    (root / "square.png").write_bytes(make_image_bytes(100, 100))
    (root / "portrait.png").write_bytes(make_image_bytes(100, 200))
    (root / "nested" / "alpha.png").write_bytes(make_image_bytes(50, 50, mode="RGBA"))
    (root / "broken.jpg").write_bytes(b"definitely not an image")
    return root


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache" / "images"


@pytest.fixture
def config(assets_dir, cache_dir):
    return ImageOptimizerConfig(
        project_root=assets_dir.parent,
        assets_dir=assets_dir,
        cache_dir=cache_dir,
    )


@pytest.fixture
def fetcher():
    return CountingFetcher()


@pytest.fixture
def engine():
    return CountingEngine()


@pytest.fixture
def handler(config, fetcher, engine):
    return ImageRequestHandler(config, fetcher=fetcher, engine=engine)
