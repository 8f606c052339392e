from scrubber.database.record_store import BaseRecordStore
from scrubber.logging.logger import Log
from scrubber.rules.exceptions import ConfigError
from scrubber.rules.models import EntitySpec


class SchemaCheck:
    """Pre-flight check that every targeted table and column exists.

    Runs before truncation so a misspelled column fails the run instead of
    silently anonymizing nothing. A store that reports an empty column set
    (an in-memory table without rows) only has its table checked.
    """

    def __init__(self, stores: dict[str, BaseRecordStore]) -> None:
        self._stores = stores

    @staticmethod
    def required_columns(spec: EntitySpec) -> list[str]:
        columns = list(spec.primary_key)
        if spec.discriminator is not None:
            columns.append(spec.discriminator_column)
        if spec.marker_column is not None:
            columns.append(spec.marker_column)
        # Custom anonymizers name their own output fields.
        if spec.custom_anonymizer is None:
            columns.extend(prop.column_name for prop in spec.properties)
        return list(dict.fromkeys(columns))

    def check(self, targets: list[tuple[EntitySpec, str]]) -> None:
        """Raises ConfigError listing every missing table and column.

        StoreError from the backend propagates unchanged.
        """
        problems: list[str] = []
        for spec, connection in targets:
            where = f"entity '{spec.name}' on '{connection}'"
            columns = self._stores[connection].table_columns(spec)
            if columns is None:
                problems.append(f"{where}: table '{spec.table_name}' does not exist")
                continue
            if not columns:
                continue
            missing = [c for c in self.required_columns(spec) if c not in columns]
            if missing:
                problems.append(f"{where}: table '{spec.table_name}' has no column(s) {missing}")

        if problems:
            raise ConfigError("Schema check failed: " + "; ".join(problems))
        Log.debug(f"Schema check passed for {len(targets)} entities")
