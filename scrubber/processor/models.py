import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from scrubber.config.settings import Settings
from scrubber.rules.exceptions import ConfigError


class StoreErrorPolicy(str, Enum):
    """What a failed page fetch or commit does to the rest of the run."""

    ABORT_ENTITY = "abort_entity"
    SKIP_PAGE = "skip_page"
    ABORT_RUN = "abort_run"


@dataclass(frozen=True)
class FieldError:
    """A recoverable failure scoped to one property of one record."""

    property_name: str
    message: str


@dataclass
class RecordResult:
    """Outcome of running the property pipeline on one record."""

    updates: dict[str, Any] = field(default_factory=dict)
    applied_properties: list[str] = field(default_factory=list)
    errors: list[FieldError] = field(default_factory=list)
    excluded: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.updates)


@dataclass
class EntityStats:
    """Counters for one entity on one connection."""

    entity: str
    connection: str
    processed: int = 0
    updated: int = 0
    errored: int = 0
    per_property: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    status: str = "pending"
    pages_committed: int = 0
    pages_failed: int = 0

    @property
    def key(self) -> str:
        return f"{self.entity}@{self.connection}"

    def count_property(self, name: str, amount: int = 1) -> None:
        self.per_property[name] = self.per_property.get(name, 0) + amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "connection": self.connection,
            "status": self.status,
            "processed": self.processed,
            "updated": self.updated,
            "errored": self.errored,
            "per_property": dict(sorted(self.per_property.items())),
            "pages_committed": self.pages_committed,
            "pages_failed": self.pages_failed,
            "errors": list(self.errors),
        }


@dataclass
class Report:
    """Aggregated result of one run over all selected entities."""

    dry_run: bool = False
    entities: dict[str, EntityStats] = field(default_factory=dict)
    truncated: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def add(self, stats: EntityStats) -> None:
        self.entities[stats.key] = stats

    @property
    def totals(self) -> dict[str, Any]:
        per_property: dict[str, int] = {}
        for stats in self.entities.values():
            for name, count in stats.per_property.items():
                per_property[name] = per_property.get(name, 0) + count
        return {
            "processed": sum(s.processed for s in self.entities.values()),
            "updated": sum(s.updated for s in self.entities.values()),
            "errored": sum(s.errored for s in self.entities.values()),
            "per_property": dict(sorted(per_property.items())),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "duration_seconds": round(self.duration_seconds, 3),
            "totals": self.totals,
            "entities": {key: stats.to_dict() for key, stats in sorted(self.entities.items())},
            "truncated": dict(sorted(self.truncated.items())),
            "errors": list(self.errors),
        }


@dataclass
class RunOptions:
    """Per-run switches; ``cancel()`` stops the run at the next page boundary."""

    dry_run: bool = False
    batch_size: int = 100
    connections: list[str] = field(default_factory=list)
    fail_fast: bool = False
    on_store_error: StoreErrorPolicy = StoreErrorPolicy.ABORT_ENTITY
    cancel_event: threading.Event = field(default_factory=threading.Event)
    # Set by the orchestrator on escalation; private to one run_all call.
    abort_event: threading.Event = field(default_factory=threading.Event, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ConfigError(f"batch_size must be an integer, got {self.batch_size!r}")
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1, got {self.batch_size}")
        try:
            self.on_store_error = StoreErrorPolicy(self.on_store_error)
        except ValueError as exc:
            raise ConfigError(
                f"Unknown store error policy '{self.on_store_error}'. "
                f"Choose from: {[p.value for p in StoreErrorPolicy]}"
            ) from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> "RunOptions":
        return cls(
            dry_run=settings.dry_run,
            batch_size=settings.batch_size,
            connections=list(settings.connections),
            fail_fast=settings.fail_fast,
            on_store_error=settings.on_store_error,  # type: ignore[arg-type]
        )

    def for_run(self) -> "RunOptions":
        """Copy sharing the caller's cancel signal with a fresh abort signal."""
        return replace(self, abort_event=threading.Event())

    def cancel(self) -> None:
        self.cancel_event.set()

    def abort(self) -> None:
        self.abort_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set() or self.abort_event.is_set()
