from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from scrubber.rules.models import EntitySpec, Record


@dataclass
class RecordPage:
    """One page of records plus the token for the next page (None when exhausted)."""

    records: list[Record] = field(default_factory=list)
    next_token: Any = None


@dataclass(frozen=True)
class RecordUpdate:
    """New column values for the record identified by ``key`` (primary-key columns)."""

    key: dict[str, Any]
    fields: dict[str, Any]


class BaseRecordStore(ABC):
    """Persistence boundary used by the batch processor and truncation manager.

    Implementations raise StoreError for any backend failure.
    """

    @abstractmethod
    def list_eligible(
        self, spec: EntitySpec, page_token: Any, page_size: int
    ) -> RecordPage:
        """Fetch the page after *page_token* (None for the first page).

        Rows are restricted to the entity's discriminator, if any, and ordered
        by primary key.
        """
        raise NotImplementedError

    @abstractmethod
    def apply_updates(self, spec: EntitySpec, updates: list[RecordUpdate]) -> None:
        """Write all *updates* atomically: either every update lands or none does."""
        raise NotImplementedError

    @abstractmethod
    def truncate(self, spec: EntitySpec) -> int:
        """Delete the entity's rows (only its discriminator slice, if any); return the count."""
        raise NotImplementedError

    @abstractmethod
    def count(self, spec: EntitySpec) -> int:
        """Count the rows ``truncate`` would delete."""
        raise NotImplementedError

    @abstractmethod
    def table_columns(self, spec: EntitySpec) -> frozenset[str] | None:
        """Column names of the entity's table, or None if the table does not exist."""
        raise NotImplementedError
