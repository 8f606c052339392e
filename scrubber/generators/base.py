from abc import ABC, abstractmethod
from typing import Any, ClassVar

from faker import Faker

from scrubber.generators.exceptions import GeneratorError


class BaseGenerator(ABC):
    """Contract for all value generators."""

    # When True the produced value is written even if it equals the original.
    forces_write: ClassVar[bool] = False

    @abstractmethod
    def generate(self, options: dict[str, Any]) -> Any:
        """Produce a synthetic value.

        Args:
            options: Property options plus the injected keys ``original_value``
                     (the field's value before anonymization), ``record`` (the
                     full pre-mutation record) and ``current_record`` (the
                     record overlaid with values already computed for it).

        Raises:
            GeneratorError: if the options are unusable.
        """


class FakerGenerator(BaseGenerator):
    """Base for generators backed by a shared Faker instance."""

    def __init__(self, faker: Faker) -> None:
        self._faker = faker


def int_option(options: dict[str, Any], key: str, default: int) -> int:
    raw = options.get(key, default)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise GeneratorError(f"Option '{key}' must be an integer, got {raw!r}") from exc


def float_option(options: dict[str, Any], key: str, default: float) -> float:
    raw = options.get(key, default)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise GeneratorError(f"Option '{key}' must be a number, got {raw!r}") from exc


def record_field(record: dict[str, Any], field_name: str) -> Any:
    """Read a field by exact name, then lower/upper/capitalized variants."""
    for candidate in (
        field_name,
        field_name.lower(),
        field_name.upper(),
        field_name[:1].upper() + field_name[1:],
    ):
        if record.get(candidate) is not None:
            return record[candidate]
    return None
