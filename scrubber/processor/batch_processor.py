from enum import Enum
from typing import Any

from scrubber.database.connection import DEFAULT_CONNECTION
from scrubber.database.exceptions import StoreError
from scrubber.database.record_store import BaseRecordStore, RecordPage, RecordUpdate
from scrubber.logging.logger import Log
from scrubber.processor.exceptions import RunAbortedError
from scrubber.processor.models import EntityStats, RunOptions, StoreErrorPolicy
from scrubber.processor.property_pipeline import PropertyPipeline
from scrubber.rules.models import EntitySpec


class BatchState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    APPLYING = "applying"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BatchProcessor:
    """Streams one entity's records page by page through the property pipeline.

    Each page is committed as one unit. Cancellation is checked between pages,
    so an in-flight commit always completes (or rolls back) first.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        pipeline: PropertyPipeline,
        connection: str = DEFAULT_CONNECTION,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._connection = connection
        self._state = BatchState.IDLE

    @property
    def state(self) -> BatchState:
        return self._state

    def run(self, spec: EntitySpec, options: RunOptions) -> EntityStats:
        """Anonymize every eligible record of *spec*.

        Raises:
            RunAbortedError: when ``fail_fast`` meets a record error, or the
                             store error policy is ``abort_run``.
        """
        stats = EntityStats(entity=spec.name, connection=self._connection)
        mode = "dry run" if options.dry_run else "live"
        Log.info(f"Anonymizing {stats.key} ({mode}, batch size {options.batch_size})")

        token: Any = None
        page_number = 0
        self._state = BatchState.STREAMING
        while True:
            if options.cancelled:
                self._state = BatchState.CANCELLED
                Log.warning(f"{stats.key}: cancelled after {page_number} pages")
                break

            try:
                page = self._store.list_eligible(spec, token, options.batch_size)
            except StoreError as exc:
                # Without a page there is no token to resume from, so fetch
                # failures end the entity under every policy but abort_run.
                self._fail(stats, f"page {page_number + 1} fetch failed: {exc}")
                if options.on_store_error is StoreErrorPolicy.ABORT_RUN:
                    raise RunAbortedError(f"{stats.key}: {exc}") from exc
                break

            if not page.records:
                break
            page_number += 1
            self._process_page(spec, page, page_number, options, stats)
            if self._state is BatchState.FAILED:
                break
            token = page.next_token
            if token is None:
                break
            self._state = BatchState.STREAMING

        if self._state not in (BatchState.FAILED, BatchState.CANCELLED):
            self._state = BatchState.DONE
        stats.status = self._state.value
        Log.info(
            f"{stats.key}: {stats.processed} processed, {stats.updated} updated, "
            f"{stats.errored} errored ({stats.status})"
        )
        return stats

    def _process_page(
        self,
        spec: EntitySpec,
        page: RecordPage,
        page_number: int,
        options: RunOptions,
        stats: EntityStats,
    ) -> None:
        self._state = BatchState.APPLYING
        results = self._pipeline.apply_batch(spec, page.records, options.dry_run)

        updates: list[RecordUpdate] = []
        per_property: dict[str, int] = {}
        for record, result in zip(page.records, results):
            stats.processed += 1
            if result.errors:
                stats.errored += 1
                for error in result.errors:
                    message = f"{spec.record_key(record)} {error.property_name}: {error.message}"
                    stats.errors.append(message)
                    Log.warning(f"{stats.key}: {message}")
                if options.fail_fast:
                    self._fail(stats, "aborting on first record error (fail_fast)")
                    raise RunAbortedError(f"{stats.key}: {stats.errors[-1]}")
            if not result.changed:
                continue
            for name in result.applied_properties:
                per_property[name] = per_property.get(name, 0) + 1
            fields = dict(result.updates)
            if spec.marker_column is not None:
                fields[spec.marker_column] = True
            updates.append(RecordUpdate(key=spec.record_key(record), fields=fields))

        if Log.is_debug():
            Log.debug(
                f"{stats.key}: page {page_number} has {len(page.records)} records, "
                f"{len(updates)} to update"
            )

        if updates and not options.dry_run:
            self._state = BatchState.COMMITTING
            try:
                self._store.apply_updates(spec, updates)
            except StoreError as exc:
                stats.pages_failed += 1
                message = f"page {page_number} commit failed and was rolled back: {exc}"
                if options.on_store_error is StoreErrorPolicy.SKIP_PAGE:
                    stats.errors.append(message)
                    Log.error(f"{stats.key}: {message}")
                    return
                self._fail(stats, message)
                if options.on_store_error is StoreErrorPolicy.ABORT_RUN:
                    raise RunAbortedError(f"{stats.key}: {message}") from exc
                return
            stats.pages_committed += 1

        stats.updated += len(updates)
        for name, count in per_property.items():
            stats.count_property(name, count)

    def _fail(self, stats: EntityStats, message: str) -> None:
        self._state = BatchState.FAILED
        stats.status = BatchState.FAILED.value
        stats.errors.append(message)
        Log.error(f"{stats.key}: {message}")
