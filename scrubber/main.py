import json
from pathlib import Path
from typing import Any

from scrubber.config.settings import Settings
from scrubber.database.connection import close_pools, connection_names, init_pools
from scrubber.database.record_store import BaseRecordStore
from scrubber.database.repositories.postgres_record_store import PostgresRecordStore
from scrubber.generators.factory import GeneratorFactory
from scrubber.logging.logger import Log
from scrubber.processor.entity_anonymizer import BaseEntityAnonymizer
from scrubber.processor.environment_guard import EnvironmentGuard
from scrubber.processor.hooks import LifecycleHooks
from scrubber.processor.models import Report, RunOptions
from scrubber.processor.orchestrator import Orchestrator
from scrubber.rules.loader import load_entity_specs


def build_orchestrator(
    settings: Settings,
    stores: dict[str, BaseRecordStore] | None = None,
    services: dict[str, Any] | None = None,
    anonymizers: dict[str, BaseEntityAnonymizer] | None = None,
    hooks: LifecycleHooks | None = None,
) -> Orchestrator:
    """Build an Orchestrator; stores default to one PostgreSQL store per pool."""
    if stores is None:
        stores = {name: PostgresRecordStore(name) for name in connection_names()}
    factory = GeneratorFactory(
        locale=settings.locale, services=services, seed=settings.faker_seed
    )
    return Orchestrator(
        stores=stores,
        factory=factory,
        anonymizers=anonymizers,
        hooks=hooks,
        guard=EnvironmentGuard.from_settings(settings),
        max_parallel_connections=settings.max_parallel_connections,
    )


def run(settings: Settings) -> Report:
    """Load the entity specs and run them against the configured databases."""
    specs = load_entity_specs(Path(settings.specs_path))
    options = RunOptions.from_settings(settings)
    init_pools(settings)
    try:
        orchestrator = build_orchestrator(settings)
        return orchestrator.run_all(specs, options)
    finally:
        close_pools()


def main() -> None:
    """Entry point: settings -> specs -> pools -> orchestrator -> report."""
    settings = Settings()
    Log.configure(settings.log_level)
    report = run(settings)
    Log.info(json.dumps(report.to_dict(), default=str))


if __name__ == "__main__":
    main()
