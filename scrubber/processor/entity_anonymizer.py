from abc import ABC, abstractmethod
from typing import Any

from scrubber.rules.models import Record


class BaseEntityAnonymizer(ABC):
    """Replaces property-based anonymization for a whole entity.

    Returned mappings are ``{column: new_value}``; an empty mapping leaves the
    record unchanged.
    """

    def supports_batch(self) -> bool:
        return False

    @abstractmethod
    def anonymize(self, record: Record) -> dict[str, Any]:
        raise NotImplementedError

    def anonymize_batch(self, records: list[Record]) -> dict[int, dict[str, Any]]:
        """Anonymize a page at once, keyed by the record's index in *records*."""
        return {index: self.anonymize(record) for index, record in enumerate(records)}
