"""Error taxonomy for the monitoring core."""


class ScopeMonitorError(Exception):
    """Base class for all monitoring errors."""

    kind = "ScopeMonitorError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Kind + message pair for UI diagnostics."""
        return {"kind": self.kind, "message": self.message}


class ConfigurationError(ScopeMonitorError):
    """Missing or invalid configuration (e.g. no watch target, no API key)."""

    kind = "ConfigurationError"


class ModelLoadError(ScopeMonitorError):
    """A model artifact is unreachable or malformed."""

    kind = "ModelLoadError"


class InitializationError(ScopeMonitorError):
    """The segmentation engine failed to reach a ready state."""

    kind = "InitializationError"


class InferenceError(ScopeMonitorError):
    """Encoder/decoder execution failed (shape mismatch, runtime failure)."""

    kind = "InferenceError"


class NotInitializedError(ScopeMonitorError):
    """An engine operation was called before initialize() completed."""

    kind = "NotInitializedError"


class UpstreamError(ScopeMonitorError):
    """The vision collaborator answered with an error or no content."""

    kind = "UpstreamError"

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(UpstreamError):
    """The vision collaborator could not be reached."""

    kind = "NetworkError"
