import random
from typing import Any
from unittest.mock import MagicMock

import pytest

from scrubber.generators.factory import GeneratorFactory
from scrubber.processor.entity_anonymizer import BaseEntityAnonymizer
from scrubber.processor.hooks import LifecycleHooks, PropertyEvent
from scrubber.processor.property_pipeline import PropertyPipeline
from scrubber.rules.exceptions import ConfigError
from scrubber.rules.models import EntitySpec, PropertySpec


def _constant(name: str, value: Any = "X", **kwargs: Any) -> PropertySpec:
    options = {"value": value, **kwargs.pop("options", {})}
    return PropertySpec(name=name, generator_type="constant", options=options, **kwargs)


def _pipeline(**kwargs: Any) -> PropertyPipeline:
    return PropertyPipeline(factory=kwargs.pop("factory", GeneratorFactory(seed=1)), **kwargs)


class TestOrderingAndUpdates:
    def test_properties_run_in_weight_order(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[
                _constant("c", weight=3),
                _constant("a", weight=1),
                _constant("z"),
                _constant("b", weight=2),
            ],
        )
        record = {"a": "o", "b": "o", "c": "o", "z": "o"}

        result = _pipeline().apply(spec, record)

        assert result.applied_properties == ["a", "b", "c", "z"]
        assert result.updates == {"a": "X", "b": "X", "c": "X", "z": "X"}

    def test_unchanged_values_are_not_recorded(self) -> None:
        spec = EntitySpec(name="t", properties=[_constant("a", value="same")])
        result = _pipeline().apply(spec, {"a": "same"})
        assert result.updates == {}
        assert result.changed is False

    def test_null_generator_forces_a_write_on_null(self) -> None:
        spec = EntitySpec(name="t", properties=[PropertySpec(name="a", generator_type="null")])
        result = _pipeline().apply(spec, {"a": None})
        assert result.updates == {"a": None}

    def test_missing_columns_are_skipped(self) -> None:
        spec = EntitySpec(name="t", properties=[_constant("a"), _constant("b")])
        result = _pipeline().apply(spec, {"a": "o"})
        assert result.updates == {"a": "X"}

    def test_writes_to_the_configured_column(self) -> None:
        spec = EntitySpec(name="t", properties=[_constant("email", column="mail")])
        result = _pipeline().apply(spec, {"mail": "a@b.c"})
        assert result.updates == {"mail": "X"}
        assert result.applied_properties == ["email"]

    def test_later_properties_see_earlier_values(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[
                PropertySpec(name="email", generator_type="constant", weight=1,
                             options={"value": "new@example.com"}),
                PropertySpec(name="login", generator_type="copy", weight=2,
                             options={"source_field": "email"}),
            ],
        )
        result = _pipeline().apply(spec, {"email": "old@corp.com", "login": "old"})
        assert result.updates == {"email": "new@example.com", "login": "new@example.com"}

    def test_generators_receive_original_value_and_record(self) -> None:
        service = MagicMock()
        service.generate.return_value = "v"
        factory = GeneratorFactory(services={"svc": service})
        spec = EntitySpec(
            name="t",
            properties=[PropertySpec(name="a", generator_type="service", service_ref="svc",
                                     options={"k": 1})],
        )
        record = {"id": 1, "a": "orig"}

        _pipeline(factory=factory).apply(spec, record)

        options = service.generate.call_args.args[0]
        assert options["k"] == 1
        assert options["original_value"] == "orig"
        assert options["record"] == record
        assert options["current_record"] == record


class TestExclusion:
    def test_excluded_record_is_left_untouched(self) -> None:
        spec = EntitySpec(name="t", exclude_patterns=[{"id": "<=5"}], properties=[_constant("a")])
        result = _pipeline().apply(spec, {"id": 3, "a": "o"})
        assert result.excluded is True
        assert result.updates == {}

    def test_not_included_record_is_excluded(self) -> None:
        spec = EntitySpec(
            name="t", include_patterns=[{"status": "active"}], properties=[_constant("a")]
        )
        result = _pipeline().apply(spec, {"status": "inactive", "a": "o"})
        assert result.excluded is True
        assert result.updates == {}

    def test_bypass_property_still_runs_on_excluded_record(self) -> None:
        spec = EntitySpec(
            name="t",
            exclude_patterns=[{"id": "<=5"}],
            properties=[
                _constant("email", options={"bypass_entity_exclusion": True}),
                _constant("name"),
            ],
        )
        result = _pipeline().apply(spec, {"id": 1, "email": "e", "name": "n"})
        assert result.updates == {"email": "X"}

    def test_property_patterns_filter_fields(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[
                _constant("a", include_patterns=[{"role": "user"}]),
                _constant("b", exclude_patterns=[{"role": "user"}]),
            ],
        )
        result = _pipeline().apply(spec, {"role": "user", "a": "o", "b": "o"})
        assert result.updates == {"a": "X"}


class TestNullOptions:
    @pytest.mark.parametrize("generator_type", ["email", "constant", "null", "masking"])
    def test_preserve_null_keeps_null(self, generator_type: str) -> None:
        spec = EntitySpec(
            name="t",
            properties=[PropertySpec(name="a", generator_type=generator_type,
                                     options={"preserve_null": True, "value": "X"})],
        )
        result = _pipeline().apply(spec, {"a": None})
        assert result.updates == {}
        assert result.errors == []

    def test_preserve_null_wins_over_nullable(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[_constant("a", options={"preserve_null": True, "nullable": True,
                                                "null_probability": 100})],
        )
        assert _pipeline().apply(spec, {"a": None}).updates == {}

    def test_null_probability_100_always_nulls(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[_constant("a", options={"nullable": True, "null_probability": 100})],
        )
        pipeline = _pipeline()
        for _ in range(10):
            assert pipeline.apply(spec, {"a": "o"}).updates == {"a": None}

    def test_null_probability_0_never_nulls(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[_constant("a", options={"nullable": True, "null_probability": 0})],
        )
        assert _pipeline().apply(spec, {"a": "o"}).updates == {"a": "X"}

    def test_null_probability_draws_from_the_injected_rng(self) -> None:
        rng = MagicMock(spec=random.Random)
        rng.randrange.side_effect = [29, 30]
        spec = EntitySpec(
            name="t",
            properties=[_constant("a", options={"nullable": True, "null_probability": 30})],
        )
        pipeline = _pipeline(rng=rng)

        assert pipeline.apply(spec, {"a": "o"}).updates == {"a": None}
        assert pipeline.apply(spec, {"a": "o"}).updates == {"a": "X"}
        rng.randrange.assert_called_with(100)


class TestErrors:
    def test_generator_error_is_recorded_and_field_left_unchanged(self) -> None:
        spec = EntitySpec(
            name="t",
            properties=[
                PropertySpec(name="a", generator_type="constant"),
                _constant("b"),
            ],
        )
        result = _pipeline().apply(spec, {"a": "o", "b": "o"})
        assert result.updates == {"b": "X"}
        assert [e.property_name for e in result.errors] == ["a"]
        assert "value" in result.errors[0].message

    def test_unexpected_exceptions_from_services_are_recorded(self) -> None:
        def broken(options: dict) -> str:
            raise RuntimeError("boom")

        factory = GeneratorFactory(services={"broken": broken})
        spec = EntitySpec(
            name="t",
            properties=[PropertySpec(name="a", generator_type="service", service_ref="broken")],
        )
        result = _pipeline(factory=factory).apply(spec, {"a": "o"})
        assert result.updates == {}
        assert result.errors[0].message == "RuntimeError: boom"


class TestPropertyHooks:
    def test_listener_can_override_value(self) -> None:
        hooks = LifecycleHooks()

        def override(event: PropertyEvent) -> None:
            event.anonymized_value = f"{event.original_value}->{event.anonymized_value}"

        hooks.on_before_property(override)
        spec = EntitySpec(name="t", properties=[_constant("a")])

        result = _pipeline(hooks=hooks).apply(spec, {"a": "o"})

        assert result.updates == {"a": "o->X"}

    def test_listener_can_skip_field(self) -> None:
        hooks = LifecycleHooks()
        hooks.on_before_property(
            lambda event: event.skip_anonymization() if event.property_name == "a" else None
        )
        spec = EntitySpec(name="t", properties=[_constant("a"), _constant("b")])

        result = _pipeline(hooks=hooks).apply(spec, {"a": "o", "b": "o"})

        assert result.updates == {"b": "X"}

    def test_listener_receives_context(self) -> None:
        hooks = LifecycleHooks()
        listener = MagicMock()
        hooks.on_before_property(listener)
        spec = EntitySpec(name="t", properties=[_constant("a", column="col")])

        _pipeline(hooks=hooks).apply(spec, {"col": "o"}, dry_run=True)

        event = listener.call_args.args[0]
        assert event.property_name == "a"
        assert event.column == "col"
        assert event.original_value == "o"
        assert event.anonymized_value == "X"
        assert event.dry_run is True


class _Upper(BaseEntityAnonymizer):
    def anonymize(self, record: dict) -> dict:
        return {"name": str(record["name"]).upper()}


class _BatchUpper(_Upper):
    def __init__(self) -> None:
        self.calls = 0
        self.seen: list[dict] = []

    def supports_batch(self) -> bool:
        return True

    def anonymize_batch(self, records: list[dict]) -> dict[int, dict]:
        self.calls += 1
        self.seen.extend(records)
        return {i: ({} if r["name"] == "skip" else self.anonymize(r)) for i, r in enumerate(records)}


class TestCustomAnonymizer:
    def test_delegates_whole_record(self) -> None:
        spec = EntitySpec(name="t", custom_anonymizer="upper", properties=[_constant("name")])
        result = _pipeline(anonymizers={"upper": _Upper()}).apply(spec, {"name": "ann"})
        assert result.updates == {"name": "ANN"}
        assert result.applied_properties == ["name"]

    def test_excluded_records_are_not_delegated(self) -> None:
        anonymizer = MagicMock(spec=BaseEntityAnonymizer)
        spec = EntitySpec(name="t", custom_anonymizer="m", exclude_patterns=[{"id": "1"}])
        result = _pipeline(anonymizers={"m": anonymizer}).apply(spec, {"id": 1, "name": "a"})
        assert result.excluded is True
        anonymizer.anonymize.assert_not_called()

    def test_failures_become_record_errors(self) -> None:
        anonymizer = MagicMock(spec=BaseEntityAnonymizer)
        anonymizer.anonymize.side_effect = ValueError("bad row")
        spec = EntitySpec(name="t", custom_anonymizer="m")
        result = _pipeline(anonymizers={"m": anonymizer}).apply(spec, {"id": 1})
        assert result.updates == {}
        assert "bad row" in result.errors[0].message

    def test_batch_mode_calls_once_per_page(self) -> None:
        anonymizer = _BatchUpper()
        spec = EntitySpec(name="t", custom_anonymizer="b", exclude_patterns=[{"id": "1"}])
        records = [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}, {"id": 3, "name": "skip"}]

        results = _pipeline(anonymizers={"b": anonymizer}).apply_batch(spec, records)

        assert anonymizer.calls == 1
        assert [r.updates for r in results] == [{}, {"name": "B"}, {}]
        assert results[0].excluded is True

    def test_batch_mode_receives_only_included_records(self) -> None:
        anonymizer = _BatchUpper()
        spec = EntitySpec(name="t", custom_anonymizer="b", exclude_patterns=[{"id": "<=2"}])
        records = [{"id": i, "name": n} for i, n in [(1, "a"), (2, "b"), (3, "c"), (4, "d")]]

        results = _pipeline(anonymizers={"b": anonymizer}).apply_batch(spec, records)

        assert [r["id"] for r in anonymizer.seen] == [3, 4]
        assert [r.updates for r in results] == [{}, {}, {"name": "C"}, {"name": "D"}]

    def test_fully_excluded_page_skips_the_batch_call(self) -> None:
        anonymizer = _BatchUpper()
        spec = EntitySpec(
            name="t", custom_anonymizer="b", exclude_patterns=[{"id": "IS NOT NULL"}]
        )
        pipeline = _pipeline(anonymizers={"b": anonymizer})

        results = pipeline.apply_batch(spec, [{"id": 1, "name": "a"}])

        assert anonymizer.calls == 0
        assert results[0].excluded is True

    def test_non_batch_anonymizer_is_called_per_record(self) -> None:
        spec = EntitySpec(name="t", custom_anonymizer="upper")
        results = _pipeline(anonymizers={"upper": _Upper()}).apply_batch(
            spec, [{"name": "a"}, {"name": "b"}]
        )
        assert [r.updates for r in results] == [{"name": "A"}, {"name": "B"}]


class TestValidate:
    def test_unknown_generator_type(self) -> None:
        spec = EntitySpec(name="t", properties=[PropertySpec(name="a", generator_type="nope")])
        with pytest.raises(ConfigError, match="property 'a'"):
            _pipeline().validate(spec)

    def test_service_without_reference(self) -> None:
        spec = EntitySpec(name="t", properties=[PropertySpec(name="a", generator_type="service")])
        with pytest.raises(ConfigError, match="service reference"):
            _pipeline().validate(spec)

    def test_unknown_custom_anonymizer(self) -> None:
        with pytest.raises(ConfigError, match="unknown custom anonymizer"):
            _pipeline().validate(EntitySpec(name="t", custom_anonymizer="missing"))

    def test_malformed_patterns(self) -> None:
        spec = EntitySpec(name="t", exclude_patterns=[{"id": "<="}])
        with pytest.raises(ConfigError, match="requires an operand"):
            _pipeline().validate(spec)

    @pytest.mark.parametrize("probability", [-1, 101, "30", True])
    def test_invalid_null_probability(self, probability: object) -> None:
        spec = EntitySpec(
            name="t",
            properties=[_constant("a", options={"nullable": True, "null_probability": probability})],
        )
        with pytest.raises(ConfigError, match="null_probability"):
            _pipeline().validate(spec)

    def test_valid_spec_passes(self) -> None:
        spec = EntitySpec(
            name="t",
            include_patterns=[{"status": "active|pending"}],
            properties=[PropertySpec(name="email", generator_type="email", weight=1)],
        )
        _pipeline().validate(spec)
