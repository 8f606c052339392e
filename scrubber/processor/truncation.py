from dataclasses import dataclass

from scrubber.database.record_store import BaseRecordStore
from scrubber.logging.logger import Log
from scrubber.rules.models import EntitySpec


@dataclass(frozen=True)
class TruncationTask:
    spec: EntitySpec
    connection: str

    @property
    def key(self) -> str:
        return f"{self.spec.name}@{self.connection}"


class TruncationManager:
    """Empties stores flagged with ``truncate`` before any record is anonymized."""

    def __init__(self, stores: dict[str, BaseRecordStore]) -> None:
        self._stores = stores

    @staticmethod
    def plan(targets: list[tuple[EntitySpec, str]]) -> list[TruncationTask]:
        """Order by ``truncate_order`` (unset last), then entity name, then connection."""
        tasks = [
            TruncationTask(spec=spec, connection=connection)
            for spec, connection in targets
            if spec.truncate
        ]
        return sorted(
            tasks,
            key=lambda task: (
                task.spec.truncate_order is None,
                task.spec.truncate_order or 0,
                task.spec.name,
                task.connection,
            ),
        )

    def execute(self, task: TruncationTask, dry_run: bool = False) -> int:
        """Delete the task's rows and return how many went; dry runs only count them.

        Raises:
            StoreError: if the store cannot count or delete.
        """
        store = self._stores[task.connection]
        scope = (
            f"{task.spec.table_name} where {task.spec.discriminator_column}="
            f"{task.spec.discriminator!r}"
            if task.spec.discriminator is not None
            else task.spec.table_name
        )
        if dry_run:
            rows = store.count(task.spec)
            Log.info(f"[dry run] Would truncate {rows} rows from {scope} on {task.connection}")
            return rows
        rows = store.truncate(task.spec)
        Log.info(f"Truncated {rows} rows from {scope} on {task.connection}")
        return rows
