from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PatternExpr = str | list[str]
RuleConfig = dict[str, PatternExpr]
RuleSet = list[RuleConfig]
Record = dict[str, Any]


@dataclass(frozen=True)
class PropertySpec:
    """Anonymization rule for one field of an entity."""

    name: str
    generator_type: str
    weight: int | None = None
    include_patterns: RuleSet = field(default_factory=list)
    exclude_patterns: RuleSet = field(default_factory=list)
    service_ref: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    column: str | None = None

    def __post_init__(self) -> None:
        # GeneratorType members and plain registry keys share one representation.
        if isinstance(self.generator_type, Enum):
            object.__setattr__(self, "generator_type", str(self.generator_type.value))

    @property
    def column_name(self) -> str:
        return self.column or self.name

    @property
    def bypass_entity_exclusion(self) -> bool:
        return bool(self.options.get("bypass_entity_exclusion", False))


def property_sort_key(prop: PropertySpec) -> tuple[bool, int, str]:
    """Weighted properties first (ascending), unweighted last, ties by name."""
    return (prop.weight is None, prop.weight or 0, prop.name)


@dataclass(frozen=True)
class EntitySpec:
    """One anonymizable record source (a table or a discriminated slice of one)."""

    name: str
    table: str | None = None
    connection_id: str | None = None
    primary_key: tuple[str, ...] = ("id",)
    include_patterns: RuleSet = field(default_factory=list)
    exclude_patterns: RuleSet = field(default_factory=list)
    custom_anonymizer: str | None = None
    truncate: bool = False
    truncate_order: int | None = None
    discriminator: str | None = None
    discriminator_column: str = "dtype"
    marker_column: str | None = None
    properties: list[PropertySpec] = field(default_factory=list)

    @property
    def table_name(self) -> str:
        return self.table or self.name

    def ordered_properties(self) -> list[PropertySpec]:
        return sorted(self.properties, key=property_sort_key)

    def record_key(self, record: Record) -> dict[str, Any]:
        """Opaque identity of a record: its primary-key columns."""
        return {column: record.get(column) for column in self.primary_key}

    def applies_to(self, connection: str) -> bool:
        return self.connection_id is None or self.connection_id == connection
