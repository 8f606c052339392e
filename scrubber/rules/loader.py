"""Loads entity definitions from a JSON document into frozen models."""

import json
from pathlib import Path
from typing import Any

from scrubber.rules.exceptions import ConfigError
from scrubber.rules.models import EntitySpec, PropertySpec, RuleSet

_ENTITY_KEYS = frozenset(
    {
        "name",
        "table",
        "connection",
        "primary_key",
        "include_patterns",
        "exclude_patterns",
        "custom_anonymizer",
        "truncate",
        "truncate_order",
        "discriminator",
        "discriminator_column",
        "marker_column",
        "properties",
    }
)
_PROPERTY_KEYS = frozenset(
    {
        "name",
        "type",
        "weight",
        "column",
        "service",
        "options",
        "include_patterns",
        "exclude_patterns",
    }
)


def load_entity_specs(path: Path) -> list[EntitySpec]:
    """Read and build the entity definitions stored at *path*.

    Raises:
        ConfigError: if the file cannot be read, is not valid JSON or does not
                     describe a well-formed list of entities.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read entity specs from {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Entity specs in {path} are not valid JSON: {exc}") from exc
    return build_entity_specs(data)


def build_entity_specs(data: Any) -> list[EntitySpec]:
    """Build EntitySpecs from an already parsed document.

    Accepts ``{"entities": [...]}`` or a bare list of entity objects.
    """
    if isinstance(data, dict):
        if "entities" not in data:
            raise ConfigError("Missing required top-level field: entities")
        data = data["entities"]
    if not isinstance(data, list):
        raise ConfigError("'entities' must be a list")

    specs = [_build_entity(item, i) for i, item in enumerate(data)]
    seen: set[tuple[str, str | None]] = set()
    for spec in specs:
        key = (spec.name, spec.connection_id)
        if key in seen:
            raise ConfigError(
                f"Duplicate entity '{spec.name}' for connection {spec.connection_id!r}"
            )
        seen.add(key)
    return specs


def _build_entity(raw: Any, index: int) -> EntitySpec:
    if not isinstance(raw, dict):
        raise ConfigError(f"Entity at index {index} must be an object")
    name = raw.get("name")
    if not name or not isinstance(name, str):
        raise ConfigError(f"Entity at index {index}: 'name' must be a non-empty string")
    context = f"entity '{name}'"
    _reject_unknown_keys(raw, _ENTITY_KEYS, context)

    properties_raw = raw.get("properties", [])
    if not isinstance(properties_raw, list):
        raise ConfigError(f"{context}: 'properties' must be a list")
    properties = [_build_property(item, i, context) for i, item in enumerate(properties_raw)]
    names = [prop.name for prop in properties]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"{context}: duplicate properties {duplicates}")

    truncate_order = raw.get("truncate_order")
    if truncate_order is not None and (
        isinstance(truncate_order, bool) or not isinstance(truncate_order, int)
    ):
        raise ConfigError(f"{context}: 'truncate_order' must be an integer or null")

    return EntitySpec(
        name=name,
        table=_optional_str(raw, "table", context),
        connection_id=_optional_str(raw, "connection", context),
        primary_key=_primary_key(raw.get("primary_key", ["id"]), context),
        include_patterns=_rule_set(raw.get("include_patterns"), f"{context} include_patterns"),
        exclude_patterns=_rule_set(raw.get("exclude_patterns"), f"{context} exclude_patterns"),
        custom_anonymizer=_optional_str(raw, "custom_anonymizer", context),
        truncate=_bool(raw, "truncate", context),
        truncate_order=truncate_order,
        discriminator=_optional_str(raw, "discriminator", context),
        discriminator_column=_optional_str(raw, "discriminator_column", context) or "dtype",
        marker_column=_optional_str(raw, "marker_column", context),
        properties=properties,
    )


def _build_property(raw: Any, index: int, entity_context: str) -> PropertySpec:
    if not isinstance(raw, dict):
        raise ConfigError(f"{entity_context}: property at index {index} must be an object")
    name = raw.get("name")
    if not name or not isinstance(name, str):
        raise ConfigError(
            f"{entity_context}: property at index {index}: 'name' must be a non-empty string"
        )
    context = f"{entity_context} property '{name}'"
    _reject_unknown_keys(raw, _PROPERTY_KEYS, context)

    generator_type = raw.get("type")
    if not generator_type or not isinstance(generator_type, str):
        raise ConfigError(f"{context}: 'type' must be a non-empty string")
    weight = raw.get("weight")
    if weight is not None and (isinstance(weight, bool) or not isinstance(weight, int)):
        raise ConfigError(f"{context}: 'weight' must be an integer or null")
    options = raw.get("options", {})
    if options is None:
        options = {}
    if not isinstance(options, dict):
        raise ConfigError(f"{context}: 'options' must be an object")

    return PropertySpec(
        name=name,
        generator_type=generator_type.lower(),
        weight=weight,
        include_patterns=_rule_set(raw.get("include_patterns"), f"{context} include_patterns"),
        exclude_patterns=_rule_set(raw.get("exclude_patterns"), f"{context} exclude_patterns"),
        service_ref=_optional_str(raw, "service", context),
        options=dict(options),
        column=_optional_str(raw, "column", context),
    )


def _rule_set(raw: Any, context: str) -> RuleSet:
    """A RuleSet may be written as one mapping or a list of mappings."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        raise ConfigError(f"{context}: must be an object or a list of objects")
    return [dict(config) if isinstance(config, dict) else config for config in raw]


def _primary_key(raw: Any, context: str) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not raw or not all(isinstance(c, str) and c for c in raw):
        raise ConfigError(f"{context}: 'primary_key' must be a column name or a list of them")
    return tuple(raw)


def _optional_str(raw: dict[str, Any], key: str, context: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{context}: '{key}' must be a non-empty string or null")
    return value


def _bool(raw: dict[str, Any], key: str, context: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{context}: '{key}' must be a boolean")
    return value


def _reject_unknown_keys(raw: dict[str, Any], allowed: frozenset[str], context: str) -> None:
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ConfigError(f"{context}: unknown keys {unknown}")
