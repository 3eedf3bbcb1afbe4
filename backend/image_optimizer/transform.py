"""
Transform Engine

Resizes and re-encodes images with Pillow.

Resize policy is "fit inside, no upscaling":
- no width/height: re-encode only
- one dimension: the other follows the source aspect ratio
- both: shrink to fit the box, aspect ratio preserved
- never larger than the source in either axis
"""

import asyncio
import logging
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image

from .errors import DecodeFailure, EncodeFailure
from .models import ImageFormat

logger = logging.getLogger(__name__)

# Modes each encoder accepts without conversion
NATIVE_MODES = {
    ImageFormat.JPEG: ("RGB", "L", "CMYK"),
    ImageFormat.WEBP: ("RGB", "RGBA"),
    ImageFormat.AVIF: ("RGB", "RGBA"),
    ImageFormat.PNG: ("RGB", "RGBA", "L", "LA", "P", "1", "I;16"),
    ImageFormat.GIF: ("P", "L", "RGB", "RGBA"),
}


def compute_target_size(
    source_width: int,
    source_height: int,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Optional[Tuple[int, int]]:
    """
    Output size for a fit-inside, no-enlargement resize.

    Returns None when no resize should happen.
    """
    if not width and not height:
        return None

    scales = [1.0]
    if width:
        scales.append(width / source_width)
    if height:
        scales.append(height / source_height)
    scale = min(scales)

    return (
        max(1, round(source_width * scale)),
        max(1, round(source_height * scale)),
    )


def _prepare_mode(img: Image.Image, target: ImageFormat) -> Image.Image:
    """Convert `img` into a mode the target encoder can write."""
    if img.mode in NATIVE_MODES[target]:
        return img

    if target == ImageFormat.PNG and img.mode == "I":
        # PNG stores integer images as 16-bit grayscale
        return img.convert("I;16")

    has_alpha = img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )

    if target == ImageFormat.JPEG:
        if has_alpha:
            # JPEG has no alpha channel: flatten onto white
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            return background
        return img.convert("RGB")

    return img.convert("RGBA" if has_alpha else "RGB")


class TransformEngine:
    """Pillow-backed resize + re-encode."""

    resample = Image.Resampling.LANCZOS

    async def transform(
        self,
        data: bytes,
        width: Optional[int],
        height: Optional[int],
        quality: int,
        format: ImageFormat,
    ) -> bytes:
        return await asyncio.to_thread(
            self.transform_sync, data, width, height, quality, format
        )

    def transform_sync(
        self,
        data: bytes,
        width: Optional[int],
        height: Optional[int],
        quality: int,
        format: ImageFormat,
    ) -> bytes:
        img = self._decode(data)

        target_size = compute_target_size(img.width, img.height, width, height)
        if target_size is not None and target_size != img.size:
            logger.debug(f"[TransformEngine] Resize {img.width}x{img.height} -> {target_size[0]}x{target_size[1]}")
            img = img.resize(target_size, self.resample)

        return self._encode(img, ImageFormat(format), quality)

    def _decode(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            # UnidentifiedImageError and truncated files are OSError subclasses
            logger.warning(f"[TransformEngine] Decode failed ({len(data)} bytes): {e}")
            raise DecodeFailure()
        return img

    def _encode(self, img: Image.Image, target: ImageFormat, quality: int) -> bytes:
        output = BytesIO()
        try:
            _prepare_mode(img, target).save(
                output, format=target.pil_format, quality=quality
            )
        except (OSError, ValueError, KeyError) as e:
            # KeyError: Pillow built without this encoder
            logger.error(f"[TransformEngine] Encode to {target.value} failed: {e}")
            raise EncodeFailure()
        return output.getvalue()
