import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from scrubber.database.exceptions import StoreError
from scrubber.database.record_store import BaseRecordStore
from scrubber.generators.factory import GeneratorFactory
from scrubber.logging.logger import Log
from scrubber.matching.pattern_matcher import PatternMatcher
from scrubber.processor.batch_processor import BatchProcessor
from scrubber.processor.entity_anonymizer import BaseEntityAnonymizer
from scrubber.processor.environment_guard import EnvironmentGuard
from scrubber.processor.exceptions import RunAbortedError
from scrubber.processor.hooks import LifecycleHooks
from scrubber.processor.models import Report, RunOptions, StoreErrorPolicy
from scrubber.processor.property_pipeline import PropertyPipeline
from scrubber.processor.schema_check import SchemaCheck
from scrubber.processor.truncation import TruncationManager
from scrubber.rules.exceptions import ConfigError
from scrubber.rules.models import EntitySpec

Target = tuple[EntitySpec, str]


class Orchestrator:
    """Runs a set of entity specs against the configured record stores.

    Order of a run: validate every spec, check the environment and the
    schema, truncate the planned stores, then anonymize. Specs on one
    connection run sequentially in the given order; different connections
    may run in parallel. An escalated error stops the other connections
    without touching the caller's RunOptions, which stay reusable.
    """

    def __init__(
        self,
        stores: dict[str, BaseRecordStore],
        factory: GeneratorFactory,
        anonymizers: dict[str, BaseEntityAnonymizer] | None = None,
        hooks: LifecycleHooks | None = None,
        guard: EnvironmentGuard | None = None,
        max_parallel_connections: int = 1,
        rng: random.Random | None = None,
    ) -> None:
        self._stores = stores
        self._hooks = hooks or LifecycleHooks()
        self._guard = guard
        self._max_parallel = max(1, max_parallel_connections)
        self._pipeline = PropertyPipeline(
            factory=factory,
            matcher=PatternMatcher(),
            anonymizers=anonymizers,
            hooks=self._hooks,
            rng=rng,
        )
        self._schema_check = SchemaCheck(stores)
        self._truncation = TruncationManager(stores)
        self._report_lock = threading.Lock()

    @property
    def hooks(self) -> LifecycleHooks:
        return self._hooks

    def validate(self, specs: list[EntitySpec]) -> None:
        """Raises ConfigError for the first spec that cannot run."""
        for spec in specs:
            if spec.connection_id is not None and spec.connection_id not in self._stores:
                raise ConfigError(
                    f"entity '{spec.name}': unknown connection '{spec.connection_id}'. "
                    f"Configured: {sorted(self._stores)}"
                )
            self._pipeline.validate(spec)

    def resolve(self, specs: list[EntitySpec], connections: list[str]) -> list[Target]:
        """Pair each spec with every selected connection it applies to."""
        selected = connections or sorted(self._stores)
        unknown = sorted(set(selected) - set(self._stores))
        if unknown:
            raise ConfigError(f"Unknown connections {unknown}. Configured: {sorted(self._stores)}")
        return [
            (spec, connection)
            for connection in selected
            for spec in specs
            if spec.applies_to(connection)
        ]

    def run_all(self, specs: list[EntitySpec], options: RunOptions) -> Report:
        """Truncate, then anonymize every selected spec and aggregate the results.

        Raises:
            ConfigError: before any write, for invalid specs, options or a schema
                that lacks a targeted table or column.
            StoreError: when the schema cannot be inspected.
            RunAbortedError: when a recoverable error is escalated.
        """
        self.validate(specs)
        if self._guard is not None:
            self._guard.check()
        targets = self.resolve(specs, options.connections)
        self._schema_check.check(targets)
        options = options.for_run()

        started = time.monotonic()
        report = Report(dry_run=options.dry_run)
        Log.info(
            f"Starting {'dry run' if options.dry_run else 'anonymization'} of "
            f"{len(targets)} entities on {len({c for _, c in targets})} connections"
        )
        self._hooks.before_run(specs, options)

        try:
            self._truncate(targets, options, report)
            self._anonymize(targets, options, report)
        finally:
            report.duration_seconds = time.monotonic() - started

        totals = report.totals
        Log.info(
            f"Finished in {report.duration_seconds:.2f}s: {totals['processed']} processed, "
            f"{totals['updated']} updated, {totals['errored']} errored"
        )
        self._hooks.after_run(report)
        return report

    def _truncate(self, targets: list[Target], options: RunOptions, report: Report) -> None:
        for task in self._truncation.plan(targets):
            try:
                report.truncated[task.key] = self._truncation.execute(task, options.dry_run)
            except StoreError as exc:
                message = f"truncation of {task.key} failed: {exc}"
                report.errors.append(message)
                Log.error(message)
                if options.on_store_error is StoreErrorPolicy.ABORT_RUN:
                    raise RunAbortedError(message) from exc

    def _anonymize(self, targets: list[Target], options: RunOptions, report: Report) -> None:
        groups: dict[str, list[EntitySpec]] = {}
        for spec, connection in targets:
            groups.setdefault(connection, []).append(spec)
        if not groups:
            return

        if self._max_parallel == 1 or len(groups) == 1:
            for connection, specs in groups.items():
                self._run_group(connection, specs, options, report)
            return

        workers = min(self._max_parallel, len(groups))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scrubber") as pool:
            futures = [
                pool.submit(self._run_group, connection, specs, options, report)
                for connection, specs in groups.items()
            ]
        # Re-raise the first escalated error once every group has stopped.
        for future in futures:
            future.result()

    def _run_group(
        self,
        connection: str,
        specs: list[EntitySpec],
        options: RunOptions,
        report: Report,
    ) -> None:
        processor = BatchProcessor(self._stores[connection], self._pipeline, connection)
        for spec in specs:
            if options.cancelled:
                Log.warning(f"Run cancelled; skipping remaining entities on {connection}")
                return
            self._hooks.before_entity(spec, connection)
            try:
                stats = processor.run(spec, options)
            except RunAbortedError:
                # Stop the other connections at their next page boundary.
                options.abort()
                raise
            with self._report_lock:
                report.add(stats)
            self._hooks.after_entity(spec, stats)
