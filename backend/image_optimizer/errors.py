"""
Image Optimizer Errors

Every failure a request can hit maps to one exception class here.
The route layer catches ImageOptimizerError and turns it into a
plain-text response with the class's status code.
"""

from typing import Optional


class ImageOptimizerError(Exception):
    """Base error. `message` is safe to show to the client."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(ImageOptimizerError):
    status_code = 400
    default_message = "Bad request"


class Forbidden(ImageOptimizerError):
    """Local source path escapes the sandbox root."""
    status_code = 403
    default_message = "Invalid image path (path traversal blocked)"


class SourceNotFound(ImageOptimizerError):
    status_code = 404
    default_message = "Image file not found"


class UpstreamFailure(ImageOptimizerError):
    """Remote fetch failed (non-2xx or transport error)."""
    status_code = 500
    default_message = "Upstream fetch failed"


class SourceTooLarge(UpstreamFailure):
    """Source exceeds the configured size limit."""
    default_message = "Image source too large"


class SourceReadError(UpstreamFailure):
    """Local source exists but could not be read."""
    default_message = "Failed to read image source"


class TransformError(ImageOptimizerError):
    status_code = 500
    default_message = "Image transform failed"


class DecodeFailure(TransformError):
    default_message = "Unable to decode image"


class EncodeFailure(TransformError):
    default_message = "Unable to encode image"


class StorageFailure(ImageOptimizerError):
    """Cache write failed. Non-fatal unless persistence is required."""
    status_code = 500
    default_message = "Failed to store cached image"
