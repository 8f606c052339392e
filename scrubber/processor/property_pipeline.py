import random
from typing import Any

from scrubber.generators.exceptions import GeneratorError
from scrubber.generators.factory import GeneratorFactory
from scrubber.logging.logger import Log
from scrubber.matching.pattern_matcher import PatternMatcher
from scrubber.processor.entity_anonymizer import BaseEntityAnonymizer
from scrubber.processor.exceptions import CustomServiceError
from scrubber.processor.hooks import LifecycleHooks, PropertyEvent
from scrubber.processor.models import FieldError, RecordResult
from scrubber.rules.exceptions import ConfigError
from scrubber.rules.models import EntitySpec, PropertySpec, Record


class PropertyPipeline:
    """Computes the field replacements for one record of an entity.

    Properties run in weight order. Every generator sees the pre-mutation
    ``record`` and a ``current_record`` that already carries the values
    computed earlier in the same pass.
    """

    def __init__(
        self,
        factory: GeneratorFactory,
        matcher: PatternMatcher | None = None,
        anonymizers: dict[str, BaseEntityAnonymizer] | None = None,
        hooks: LifecycleHooks | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._factory = factory
        self._matcher = matcher or PatternMatcher()
        self._anonymizers = dict(anonymizers or {})
        self._hooks = hooks or LifecycleHooks()
        self._rng = rng or random.Random()

    def validate(self, spec: EntitySpec) -> None:
        """Check everything about *spec* that can fail before touching a store.

        Raises:
            ConfigError: on malformed patterns, unknown generators or services,
                         or an unregistered custom anonymizer.
        """
        context = f"entity '{spec.name}'"
        self._matcher.validate(spec.include_patterns, f"{context} include_patterns")
        self._matcher.validate(spec.exclude_patterns, f"{context} exclude_patterns")
        if spec.custom_anonymizer is not None and spec.custom_anonymizer not in self._anonymizers:
            raise ConfigError(
                f"{context}: unknown custom anonymizer '{spec.custom_anonymizer}'. "
                f"Registered: {sorted(self._anonymizers)}"
            )
        for prop in spec.properties:
            where = f"{context} property '{prop.name}'"
            self._matcher.validate(prop.include_patterns, f"{where} include_patterns")
            self._matcher.validate(prop.exclude_patterns, f"{where} exclude_patterns")
            try:
                self._factory.validate(prop.generator_type, prop.service_ref)
            except ConfigError as exc:
                raise ConfigError(f"{where}: {exc}") from exc
            self._null_probability(prop, where)

    def apply(self, spec: EntitySpec, record: Record, dry_run: bool = False) -> RecordResult:
        anonymizer = self._anonymizer_for(spec)
        if anonymizer is not None:
            return self._delegate(spec, anonymizer, record)

        excluded = not self._matcher.is_included(
            spec.include_patterns, spec.exclude_patterns, record
        )
        result = RecordResult(excluded=excluded)
        current = dict(record)

        for prop in spec.ordered_properties():
            if excluded and not prop.bypass_entity_exclusion:
                continue
            if not self._matcher.is_included(prop.include_patterns, prop.exclude_patterns, record):
                continue
            column = prop.column_name
            if column not in record:
                continue
            original = record[column]
            if prop.options.get("preserve_null") and original is None:
                continue

            try:
                value, forces_write = self._generate(prop, original, record, current)
            except GeneratorError as exc:
                result.errors.append(FieldError(prop.name, str(exc)))
                continue
            except Exception as exc:  # custom generators may raise anything
                result.errors.append(FieldError(prop.name, f"{type(exc).__name__}: {exc}"))
                continue

            if self._hooks.has_property_listeners:
                event = self._hooks.before_property(
                    PropertyEvent(
                        entity=spec,
                        property_name=prop.name,
                        column=column,
                        record=record,
                        original_value=original,
                        anonymized_value=value,
                        dry_run=dry_run,
                    )
                )
                if event.skipped:
                    continue
                value = event.anonymized_value

            if value == original and not forces_write:
                continue
            result.updates[column] = value
            result.applied_properties.append(prop.name)
            current[column] = value

        return result

    def apply_batch(
        self, spec: EntitySpec, records: list[Record], dry_run: bool = False
    ) -> list[RecordResult]:
        """Run the pipeline for a page; batch-capable custom anonymizers get one call."""
        anonymizer = self._anonymizer_for(spec)
        if anonymizer is None or not anonymizer.supports_batch():
            return [self.apply(spec, record, dry_run) for record in records]

        results = [
            RecordResult(
                excluded=not self._matcher.is_included(
                    spec.include_patterns, spec.exclude_patterns, record
                )
            )
            for record in records
        ]
        included = [index for index, result in enumerate(results) if not result.excluded]
        if not included:
            return results
        try:
            batch = anonymizer.anonymize_batch([records[index] for index in included])
        except Exception as exc:
            error = CustomServiceError(
                f"Custom anonymizer '{spec.custom_anonymizer}' failed for a page: {exc}"
            )
            Log.warning(str(error))
            for result in results:
                if not result.excluded:
                    result.errors.append(FieldError(str(spec.custom_anonymizer), str(error)))
            return results

        # Batch indices refer to the included records only.
        for index, updates in (batch or {}).items():
            if not isinstance(index, int) or not 0 <= index < len(included):
                continue
            if not updates:
                continue
            result = results[included[index]]
            result.updates = dict(updates)
            result.applied_properties = list(updates)
        return results

    def _delegate(
        self, spec: EntitySpec, anonymizer: BaseEntityAnonymizer, record: Record
    ) -> RecordResult:
        if not self._matcher.is_included(spec.include_patterns, spec.exclude_patterns, record):
            return RecordResult(excluded=True)
        try:
            updates = anonymizer.anonymize(record) or {}
        except Exception as exc:
            error = CustomServiceError(
                f"Custom anonymizer '{spec.custom_anonymizer}' failed: {exc}"
            )
            return RecordResult(errors=[FieldError(str(spec.custom_anonymizer), str(error))])
        return RecordResult(updates=dict(updates), applied_properties=list(updates))

    def _anonymizer_for(self, spec: EntitySpec) -> BaseEntityAnonymizer | None:
        if spec.custom_anonymizer is None:
            return None
        try:
            return self._anonymizers[spec.custom_anonymizer]
        except KeyError as exc:
            raise ConfigError(
                f"entity '{spec.name}': unknown custom anonymizer '{spec.custom_anonymizer}'"
            ) from exc

    def _generate(
        self,
        prop: PropertySpec,
        original: Any,
        record: Record,
        current: Record,
    ) -> tuple[Any, bool]:
        generator = self._factory.create(prop.generator_type, prop.service_ref)

        probability = self._null_probability(prop, f"property '{prop.name}'")
        if probability and self._rng.randrange(100) < probability:
            return None, generator.forces_write

        options = dict(prop.options)
        options["original_value"] = original
        options["record"] = dict(record)
        options["current_record"] = dict(current)
        return generator.generate(options), generator.forces_write

    @staticmethod
    def _null_probability(prop: PropertySpec, where: str) -> int:
        """0 unless ``nullable`` is set; ``null_probability`` must be an int in 0..100."""
        if not prop.options.get("nullable"):
            return 0
        raw = prop.options.get("null_probability", 0)
        if isinstance(raw, bool) or not isinstance(raw, int) or not 0 <= raw <= 100:
            raise ConfigError(f"{where}: null_probability must be an integer between 0 and 100")
        return raw
