from unittest.mock import MagicMock

import pytest

from scrubber.generators.base import BaseGenerator
from scrubber.generators.exceptions import UnknownGeneratorError
from scrubber.generators.factory import GeneratorFactory
from scrubber.generators.identity import DniCifGenerator, EmailGenerator
from scrubber.generators.relational import CopyGenerator, NullGenerator, ServiceGenerator
from scrubber.generators.technical import UtmGenerator
from scrubber.generators.types import GeneratorType
from scrubber.rules.exceptions import ConfigError


class TestGeneratorFactory:
    def test_every_generator_type_is_registered(self) -> None:
        factory = GeneratorFactory()
        for member in GeneratorType:
            if member is GeneratorType.SERVICE:
                continue
            assert isinstance(factory.create(member.value), BaseGenerator)

    def test_creates_builtin_by_key(self) -> None:
        assert isinstance(GeneratorFactory().create("email"), EmailGenerator)

    def test_keys_are_case_insensitive(self) -> None:
        assert isinstance(GeneratorFactory().create("EMAIL"), EmailGenerator)

    def test_enum_members_resolve_like_strings(self) -> None:
        assert isinstance(GeneratorFactory().create(GeneratorType.NULL.value), NullGenerator)

    def test_instances_are_cached(self) -> None:
        factory = GeneratorFactory()
        assert factory.create("email") is factory.create("email")

    def test_delegating_generators_receive_the_factory(self) -> None:
        assert isinstance(GeneratorFactory().create("copy"), CopyGenerator)

    def test_unknown_type_raises(self) -> None:
        with pytest.raises(UnknownGeneratorError, match="Unknown generator type 'nope'"):
            GeneratorFactory().create("nope")

    def test_unknown_generator_is_a_config_error(self) -> None:
        with pytest.raises(ConfigError):
            GeneratorFactory().validate("nope")

    def test_service_requires_reference(self) -> None:
        with pytest.raises(UnknownGeneratorError, match="requires a service reference"):
            GeneratorFactory().create("service")

    def test_building_a_service_without_reference_raises(self) -> None:
        with pytest.raises(UnknownGeneratorError, match="requires a service reference"):
            GeneratorFactory()._build("service", None)

    def test_spanish_id_and_utm_generators_are_registered(self) -> None:
        factory = GeneratorFactory()
        assert isinstance(factory.create("dni_cif"), DniCifGenerator)
        assert isinstance(factory.create(GeneratorType.UTM.value), UtmGenerator)

    def test_service_must_be_registered(self) -> None:
        with pytest.raises(UnknownGeneratorError, match="Unknown service 'missing'"):
            GeneratorFactory(services={"other": MagicMock()}).create("service", "missing")

    def test_service_objects_are_wrapped(self) -> None:
        service = MagicMock()
        service.generate.return_value = "v"
        generator = GeneratorFactory(services={"custom": service}).create("service", "custom")
        assert isinstance(generator, ServiceGenerator)
        assert generator.generate({}) == "v"

    def test_service_generators_are_used_directly(self) -> None:
        class Upper(BaseGenerator):
            def generate(self, options: dict) -> str:
                return str(options["original_value"]).upper()

        instance = Upper()
        factory = GeneratorFactory(services={"upper": instance})
        assert factory.create("service", "upper") is instance

    def test_supports(self) -> None:
        factory = GeneratorFactory(services={"custom": MagicMock()})
        assert factory.supports("email") is True
        assert factory.supports("service", "custom") is True
        assert factory.supports("service") is False
        assert factory.supports("nope") is False

    def test_seed_makes_output_reproducible(self) -> None:
        first = GeneratorFactory(seed=5).create("name").generate({})
        second = GeneratorFactory(seed=5).create("name").generate({})
        assert first == second
