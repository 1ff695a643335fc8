class QualitySyncError(RuntimeError):
    """Base class for failures inside a convergence step."""


class ElementNotFoundError(QualitySyncError):
    """Raised when a selector chain matched nothing within the attempt budget."""

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or f"Attempt stopped: {reason.replace('_', ' ')}")
        self.reason = reason


class RecordDecodeError(QualitySyncError):
    """Raised when a persisted value does not match a known record shape."""


class StorageWriteError(QualitySyncError):
    """Raised when the page refuses a storage write."""


class NoEligibleOptionError(QualitySyncError):
    """Raised when every candidate quality option is gated or missing."""


class ActivationError(QualitySyncError):
    """Raised when a simulated click could not be delivered."""
