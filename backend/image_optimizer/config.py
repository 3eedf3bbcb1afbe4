"""
Image Optimizer Configuration

Settings are fixed at construction. `ImageOptimizerConfig.from_env()`
reads IMAGE_OPTIMIZER_* environment variables; anything unset falls
back to the dataclass defaults.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

DEFAULT_CACHE_CONTROL = "public, max-age=31536000, immutable"

ENV_PREFIX = "IMAGE_OPTIMIZER_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class ImageOptimizerConfig:
    """Configuration for the image optimizer endpoint."""
    # HTTP surface
    path: str = "/image"                                    # Endpoint mount path
    cache_control: str = DEFAULT_CACHE_CONTROL              # Cache-Control on every image
    headers: Dict[str, str] = field(default_factory=dict)   # Extra static response headers

    # Filesystem
    project_root: Optional[Path] = None     # Enables "assets/..." sources under project_root/assets
    assets_dir: Optional[Path] = None       # Sandbox root (default: <project_root or cwd>/assets)
    cache_dir: Optional[Path] = None        # Cache directory (default: <project_root or cwd>/.cache/images)
    clear_cache_on_start: bool = False      # Fresh cache on every boot

    # Behaviour
    fetch_timeout: float = 30.0             # Remote fetch timeout in seconds
    max_source_mb: float = 20.0             # Largest source image accepted
    require_persistence: bool = False       # Fail the request if caching fails
    coalesce_requests: bool = False         # Share work between concurrent misses

    def __post_init__(self):
        if not self.path.startswith("/"):
            raise ValueError(f"path must start with '/', got {self.path!r}")
        if self.fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        if self.max_source_mb <= 0:
            raise ValueError("max_source_mb must be positive")

        if self.project_root is not None:
            self.project_root = Path(self.project_root).resolve()
        base_dir = self.project_root or Path.cwd()
        self.assets_dir = Path(self.assets_dir or base_dir / "assets").resolve()
        self.cache_dir = Path(self.cache_dir or base_dir / ".cache" / "images").resolve()
        self.headers = dict(self.headers)

    @property
    def max_source_bytes(self) -> int:
        return int(self.max_source_mb * 1024 * 1024)

    @classmethod
    def from_env(cls) -> "ImageOptimizerConfig":
        kwargs = {}

        for name in ("path", "cache_control", "project_root", "assets_dir", "cache_dir"):
            value = os.getenv(ENV_PREFIX + name.upper())
            if value:
                kwargs[name] = value

        headers = os.getenv(ENV_PREFIX + "HEADERS")
        if headers:
            parsed = json.loads(headers)
            if not isinstance(parsed, dict):
                raise ValueError(f"{ENV_PREFIX}HEADERS must be a JSON object")
            kwargs["headers"] = {str(k): str(v) for k, v in parsed.items()}

        for name in ("fetch_timeout", "max_source_mb"):
            value = os.getenv(ENV_PREFIX + name.upper())
            if value:
                kwargs[name] = float(value)

        for name in ("clear_cache_on_start", "require_persistence", "coalesce_requests"):
            kwargs[name] = _env_bool(ENV_PREFIX + name.upper(), getattr(cls, name))

        return cls(**kwargs)
