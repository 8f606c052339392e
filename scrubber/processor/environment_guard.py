from scrubber.config.settings import Settings
from scrubber.processor.exceptions import UnsafeEnvironmentError


class EnvironmentGuard:
    """Refuses to run outside the configured safe environments (never production)."""

    def __init__(self, app_env: str, allowed_environments: list[str]) -> None:
        self._app_env = app_env.strip().lower()
        self._allowed = [env.strip().lower() for env in allowed_environments]

    @classmethod
    def from_settings(cls, settings: Settings) -> "EnvironmentGuard":
        return cls(settings.app_env, settings.allowed_environments)

    def check(self) -> None:
        """Raises UnsafeEnvironmentError unless the current environment is allowed."""
        if self._app_env in ("prod", "production"):
            raise UnsafeEnvironmentError(
                f"Refusing to anonymize in the '{self._app_env}' environment"
            )
        if self._app_env not in self._allowed:
            raise UnsafeEnvironmentError(
                f"Environment '{self._app_env}' is not allowed. Allowed: {self._allowed}"
            )
