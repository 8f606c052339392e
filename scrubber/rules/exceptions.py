class ConfigError(Exception):
    """Raised when entity definitions are malformed or reference unknown collaborators."""
