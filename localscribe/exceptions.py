"""
localscribe.exceptions - Custom exception classes.

All localscribe-specific exceptions inherit from LocalScribeError.
"""


class LocalScribeError(Exception):
    """Base exception for all localscribe errors."""

    pass


class ConfigError(LocalScribeError):
    """Configuration loading or validation error."""

    pass


class InputError(LocalScribeError):
    """Unsupported, unreadable or empty media input."""

    pass


class ConstructionError(LocalScribeError):
    """Inference engine could not be built, even on the fallback device."""

    pass


class TranscriptionError(LocalScribeError):
    """Inference failed while a task was running."""

    pass


class TaskTimeoutError(TranscriptionError):
    """Task did not reach a terminal state in time."""

    pass


class CancellationError(LocalScribeError):
    """Task was cancelled by the user."""

    pass


class TaskStateError(LocalScribeError):
    """Task controller used out of order (e.g. start while a task is active)."""

    pass


class ExportError(LocalScribeError):
    """Subtitle or transcript export error."""

    pass


class DependencyError(LocalScribeError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
