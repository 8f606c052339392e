from scrubber.rules.exceptions import ConfigError


class ProcessorError(Exception):
    """Base exception for errors raised while anonymizing records."""


class CustomServiceError(ProcessorError):
    """Raised when a custom entity anonymizer fails for a record or a page."""


class RunAbortedError(ProcessorError):
    """Raised when a recoverable error is escalated to stop the whole run."""


class UnsafeEnvironmentError(ConfigError):
    """Raised when the run is started in an environment that is not allowed."""
