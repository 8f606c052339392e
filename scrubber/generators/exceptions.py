from scrubber.rules.exceptions import ConfigError


class GeneratorError(Exception):
    """Raised when a generator cannot produce a value for a field."""


class UnknownGeneratorError(GeneratorError, ConfigError):
    """Raised when a generator type or service reference cannot be resolved."""
