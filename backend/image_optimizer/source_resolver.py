"""
Source Resolver

Decides whether a raw `src` value is a remote URL or a local path and,
for local paths, confines them to a sandbox directory.

Local resolution:
1. Strip the query string and a single leading "/"
2. Join onto the sandbox root
3. Canonicalize with Path.resolve() (collapses "..", follows symlinks)
4. Accept only if the result lies strictly inside the canonical root

Anything that escapes resolves to None. The rejected path is logged
server-side only.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .cache_key import is_remote_source, normalize_source
from .models import LocalSource, RemoteSource, SourceLocation

logger = logging.getLogger(__name__)

ASSETS_PREFIX = "assets/"


def resolve_within(relative_path: str, root: Union[str, Path]) -> Optional[Path]:
    """
    Resolve `relative_path` under `root`.

    Returns the canonical path, or None if it is not strictly inside
    the canonical root.
    """
    try:
        canonical_root = Path(root).resolve()
        candidate = (canonical_root / relative_path).resolve()
    except (OSError, ValueError, RuntimeError):
        # NUL bytes, symlink loops and similar
        return None

    if candidate == canonical_root or not candidate.is_relative_to(canonical_root):
        return None
    return candidate


class SourceResolver:
    """
    Resolves request sources against a fixed sandbox.

    Args:
        assets_dir: Sandbox root for plain local paths
        project_root: Optional root for "assets/..." paths, which must
            stay inside project_root/assets
    """

    def __init__(
        self,
        assets_dir: Union[str, Path],
        project_root: Optional[Union[str, Path]] = None,
    ):
        self.assets_dir = Path(assets_dir).resolve()
        self.project_root = Path(project_root).resolve() if project_root else None

    def resolve(self, source: str) -> Optional[SourceLocation]:
        if is_remote_source(source):
            return RemoteSource(url=source)

        path = self.resolve_local(source)
        if path is None:
            return None
        return LocalSource(path=path)

    def resolve_local(self, raw_path: str) -> Optional[Path]:
        relative = normalize_source(raw_path)
        if relative.startswith("/"):
            relative = relative[1:]

        if self.project_root is not None and relative.startswith(ASSETS_PREFIX):
            resolved = resolve_within(
                relative[len(ASSETS_PREFIX):], self.project_root / "assets"
            )
        else:
            resolved = resolve_within(relative, self.assets_dir)

        if resolved is None:
            logger.warning(f"[SourceResolver] Rejected path outside sandbox: {raw_path[:120]!r}")
        return resolved
