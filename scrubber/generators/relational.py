"""Generators whose output depends on the original value or on other fields of the record."""

from __future__ import annotations

import hashlib
import random
import re
from typing import TYPE_CHECKING, Any, ClassVar

from scrubber.generators.base import BaseGenerator, FakerGenerator, record_field
from scrubber.generators.exceptions import GeneratorError

if TYPE_CHECKING:
    from scrubber.generators.factory import GeneratorFactory


def _source_record(options: dict[str, Any]) -> dict[str, Any]:
    record = options.get("current_record") or options.get("record")
    if not record:
        raise GeneratorError("a 'record' is required to read the source field")
    return record


class PatternBasedGenerator(BaseGenerator):
    """Builds ``<source value><separator><fragment of the original value>``.

    The fragment is extracted from this field's original value with ``pattern``
    (default: a trailing ``(123)`` counter) and rendered with
    ``pattern_replacement`` where ``$1``/``\\1`` refer to capture groups. When the
    source field is empty, ``fallback_generator`` (default ``username``) supplies
    the prefix.
    """

    DEFAULT_PATTERN: ClassVar[str] = r"(\(\d+\))$"

    def __init__(self, factory: GeneratorFactory) -> None:
        self._factory = factory

    def generate(self, options: dict[str, Any]) -> str:
        source_field = options.get("source_field")
        if not source_field:
            raise GeneratorError("pattern_based requires a 'source_field' option")
        source_value = record_field(_source_record(options), str(source_field))
        fragment = self._extract(
            options.get("original_value"),
            str(options.get("pattern", self.DEFAULT_PATTERN)),
            str(options.get("pattern_replacement", "$1")),
        )
        separator = str(options.get("separator", ""))

        if source_value is None or source_value == "":
            fallback = self._factory.create(str(options.get("fallback_generator", "username")))
            source_value = fallback.generate(dict(options.get("fallback_options", {})))
        return f"{source_value}{separator}{fragment}"

    @staticmethod
    def _extract(original: Any, pattern: str, replacement: str) -> str:
        if not isinstance(original, str):
            return ""
        try:
            match = re.search(pattern, original)
        except re.error as exc:
            raise GeneratorError(f"Invalid pattern '{pattern}': {exc}") from exc
        if match is None:
            return ""
        template = re.sub(r"\$(\d+)", r"\\g<\1>", replacement)
        try:
            return match.expand(template)
        except (re.error, IndexError) as exc:
            raise GeneratorError(f"Invalid pattern_replacement '{replacement}': {exc}") from exc


class CopyGenerator(BaseGenerator):
    """Copies another field (its anonymized value when that field ran first)."""

    def __init__(self, factory: GeneratorFactory) -> None:
        self._factory = factory

    def generate(self, options: dict[str, Any]) -> Any:
        source_field = options.get("source_field")
        if not source_field:
            raise GeneratorError("copy requires a 'source_field' option")
        value = record_field(_source_record(options), str(source_field))
        if value is not None and value != "":
            return value
        fallback = self._factory.create(str(options.get("fallback_generator", "email")))
        return fallback.generate(dict(options.get("fallback_options", {})))


class NameFallbackGenerator(FakerGenerator):
    """First names for paired name columns.

    Whether this field, its ``fallback_field`` partner, both or neither hold a
    value, each field receives its own independently generated name, so a
    record never ends up with one name column filled and the other empty.
    """

    def generate(self, options: dict[str, Any]) -> str:
        gender = str(options.get("gender", "random")).lower()
        if gender == "male":
            return self._faker.first_name_male()
        if gender == "female":
            return self._faker.first_name_female()
        return self._faker.first_name()


class ShuffleGenerator(FakerGenerator):
    """Picks from a random permutation of ``values`` (reproducible with ``seed``)."""

    def generate(self, options: dict[str, Any]) -> Any:
        values = options.get("values")
        if not isinstance(values, list) or not values:
            raise GeneratorError("shuffle requires a non-empty 'values' list")
        if "exclude" in options:
            values = [value for value in values if value != options["exclude"]]
            if not values:
                raise GeneratorError("shuffle: every value was excluded")
        shuffled = list(values)
        seed = options.get("seed")
        rng = random.Random(seed) if seed is not None else self._faker.random
        rng.shuffle(shuffled)
        return shuffled[0]


class EnumGenerator(FakerGenerator):
    """Maps each original value onto one of ``values`` deterministically.

    The bucket is chosen from a digest of the original value, so equal inputs
    always map to equal outputs. ``weighted`` (``{value: weight}``) skews the
    distribution. Null originals get a random pick.
    """

    def generate(self, options: dict[str, Any]) -> Any:
        weighted = options.get("weighted")
        if isinstance(weighted, dict) and weighted:
            choices = list(weighted.keys())
            weights = [float(weight) for weight in weighted.values()]
        else:
            values = options.get("values")
            if not isinstance(values, list) or not values:
                raise GeneratorError("enum requires a non-empty 'values' list or 'weighted' map")
            choices = list(values)
            weights = [1.0] * len(choices)

        total = sum(weights)
        if total <= 0:
            raise GeneratorError("enum weights must add up to a positive number")

        original = options.get("original_value")
        if original is None:
            point = self._faker.random.uniform(0, total)
        else:
            digest = hashlib.sha256(str(original).encode("utf-8")).digest()
            point = int.from_bytes(digest[:8], "big") / 2**64 * total

        cumulative = 0.0
        for choice, weight in zip(choices, weights):
            cumulative += weight
            if point < cumulative:
                return choice
        return choices[-1]


class MapGenerator(BaseGenerator):
    """Explicit ``map`` of original → replacement; unmapped values use ``default`` if set."""

    def generate(self, options: dict[str, Any]) -> Any:
        mapping = options.get("map")
        if not isinstance(mapping, dict) or not mapping:
            raise GeneratorError("map requires a non-empty 'map' option")
        original = options.get("original_value")
        if original in mapping:
            return mapping[original]
        # JSON object keys are always strings.
        if original is not None and str(original) in mapping:
            return mapping[str(original)]
        return options["default"] if "default" in options else original


class ConstantGenerator(BaseGenerator):
    def generate(self, options: dict[str, Any]) -> Any:
        if "value" not in options:
            raise GeneratorError("constant requires a 'value' option")
        return options["value"]


class NullGenerator(BaseGenerator):
    forces_write = True

    def generate(self, options: dict[str, Any]) -> None:
        return None


class ServiceGenerator(BaseGenerator):
    """Adapter for user-supplied generators registered under a service name."""

    def __init__(self, service: Any, service_ref: str) -> None:
        self._service = service
        self._service_ref = service_ref

    def generate(self, options: dict[str, Any]) -> Any:
        if hasattr(self._service, "generate"):
            return self._service.generate(options)
        if callable(self._service):
            return self._service(options)
        raise GeneratorError(
            f"Service '{self._service_ref}' must have a generate() method or be callable"
        )

    def __repr__(self) -> str:
        return f"ServiceGenerator({self._service_ref!r})"


__all__ = [
    "ConstantGenerator",
    "CopyGenerator",
    "EnumGenerator",
    "MapGenerator",
    "NameFallbackGenerator",
    "NullGenerator",
    "PatternBasedGenerator",
    "ServiceGenerator",
    "ShuffleGenerator",
]
