"""
Error taxonomy shared by the gateway, compositing and session layers.

Each error carries the HTTP status the routers answer with. Nothing here is
retried: the caller surfaces the message and the user re-attempts the action.
"""
from enum import Enum


class ShapeCropError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShapeCropError):
    """Malformed save request or an action the current state does not allow."""
    status_code = 400


class NotFoundError(ShapeCropError):
    status_code = 404


class TransportError(ShapeCropError):
    """Shape store unreachable, unconfigured, or the query failed."""
    status_code = 500


class SessionStateError(ShapeCropError):
    """Wizard step preconditions not met (e.g. cropping before an upload)."""
    status_code = 409


class MediaErrorKind(str, Enum):
    IMAGE_LOAD_FAILED = "image load failed"
    CONTEXT_UNAVAILABLE = "context unavailable"
    ENCODING_FAILED = "encoding failed"


class MediaError(ShapeCropError):
    status_code = 422

    def __init__(self, kind: MediaErrorKind, detail: str = ""):
        message = kind.value if not detail else f"{kind.value}: {detail}"
        super().__init__(message)
        self.kind = kind
