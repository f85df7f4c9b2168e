"""Error types shared across the slot, enhancement and persistence services."""


class BeforeAfterError(Exception):
    """Base class for all errors raised by this package."""

    pass


class ValidationError(BeforeAfterError):
    """Caller passed an unknown slot, missing geometry or a malformed value."""

    pass


class InvalidTransitionError(ValidationError):
    """Slot state change not allowed from the current state."""

    pass


class NotFoundError(BeforeAfterError):
    """Requested job or project does not exist."""

    pass


class InsufficientCreditsError(BeforeAfterError):
    """User balance does not cover the feature cost."""

    def __init__(self, credits_remaining: int, credits_required: int):
        super().__init__(
            f"Not enough credits: {credits_remaining} remaining, {credits_required} required"
        )
        self.credits_remaining = credits_remaining
        self.credits_required = credits_required


class RemoteError(BeforeAfterError):
    """Remote enhancement queue returned an error."""

    code = "REMOTE_ERROR"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientRemoteError(RemoteError):
    """Retryable queue error. Never surfaced as a job failure."""

    code = "TRANSIENT"


class PermanentRemoteError(RemoteError):
    """Auth/not-found class error or an explicit remote FAILED."""

    pass


class EnhancementTimeoutError(RemoteError):
    """Job exceeded the processing ceiling."""

    code = "TIMEOUT"


class UploadError(BeforeAfterError):
    """Uploading a local image to object storage failed."""

    def __init__(self, uri: str, reason: str):
        super().__init__(f"Failed to upload {uri}: {reason}")
        self.uri = uri
