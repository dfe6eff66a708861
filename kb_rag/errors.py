"""
Errors raised while answering a knowledge-base question.

ValidationError and ConfigurationError are raised before Bedrock is called.
UpstreamSessionError is recovered by retrying once without the session id;
UpstreamError is returned to the caller with the service's own code and message.
"""
from typing import Optional


class KbRagError(Exception):
    """Base class; carries a caller-facing message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(KbRagError):
    """Caller sent a payload missing a required field (HTTP 400)."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class ConfigurationError(KbRagError):
    """A required setting (e.g. MODEL_ARN) is not configured (HTTP 500)."""

    kind = "Configuration Error"


class UpstreamError(KbRagError):
    """Bedrock rejected or failed the call."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class UpstreamSessionError(UpstreamError):
    """Bedrock rejected the session id the caller sent."""
