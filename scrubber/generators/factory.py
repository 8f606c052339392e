from typing import Any, ClassVar

from faker import Faker

from scrubber.generators.base import BaseGenerator, FakerGenerator
from scrubber.generators.exceptions import UnknownGeneratorError
from scrubber.generators.financial import (
    CreditCardGenerator,
    IbanGenerator,
    MaskingGenerator,
)
from scrubber.generators.identity import (
    AddressGenerator,
    CompanyGenerator,
    CountryGenerator,
    DniCifGenerator,
    EmailGenerator,
    LanguageGenerator,
    NameGenerator,
    PasswordGenerator,
    PhoneGenerator,
    SurnameGenerator,
    UrlGenerator,
    UsernameGenerator,
)
from scrubber.generators.numeric import AgeGenerator, BooleanGenerator, NumericGenerator
from scrubber.generators.relational import (
    ConstantGenerator,
    CopyGenerator,
    EnumGenerator,
    MapGenerator,
    NameFallbackGenerator,
    NullGenerator,
    PatternBasedGenerator,
    ServiceGenerator,
    ShuffleGenerator,
)
from scrubber.generators.structured import HtmlGenerator, JsonGenerator, TextGenerator
from scrubber.generators.technical import (
    ColorGenerator,
    CoordinateGenerator,
    FileGenerator,
    HashGenerator,
    HashPreserveGenerator,
    IpAddressGenerator,
    MacAddressGenerator,
    UtmGenerator,
    UuidGenerator,
)
from scrubber.generators.temporal import DateGenerator
from scrubber.generators.types import GeneratorType

SERVICE = GeneratorType.SERVICE.value


class GeneratorFactory:
    """Resolves generator keys to generator instances.

    Built-in generators share one Faker instance (seeded when ``seed`` is
    given). Custom generators are passed in explicitly as ``services`` and
    reached through the ``service`` key plus a service reference.
    """

    BUILTINS: ClassVar[dict[str, type[BaseGenerator]]] = {
        GeneratorType.NAME.value: NameGenerator,
        GeneratorType.SURNAME.value: SurnameGenerator,
        GeneratorType.USERNAME.value: UsernameGenerator,
        GeneratorType.EMAIL.value: EmailGenerator,
        GeneratorType.PHONE.value: PhoneGenerator,
        GeneratorType.ADDRESS.value: AddressGenerator,
        GeneratorType.COMPANY.value: CompanyGenerator,
        GeneratorType.URL.value: UrlGenerator,
        GeneratorType.COUNTRY.value: CountryGenerator,
        GeneratorType.LANGUAGE.value: LanguageGenerator,
        GeneratorType.PASSWORD.value: PasswordGenerator,
        GeneratorType.DNI_CIF.value: DniCifGenerator,
        GeneratorType.AGE.value: AgeGenerator,
        GeneratorType.NUMERIC.value: NumericGenerator,
        GeneratorType.BOOLEAN.value: BooleanGenerator,
        GeneratorType.DATE.value: DateGenerator,
        GeneratorType.JSON.value: JsonGenerator,
        GeneratorType.TEXT.value: TextGenerator,
        GeneratorType.HTML.value: HtmlGenerator,
        GeneratorType.UUID.value: UuidGenerator,
        GeneratorType.IP_ADDRESS.value: IpAddressGenerator,
        GeneratorType.MAC_ADDRESS.value: MacAddressGenerator,
        GeneratorType.COLOR.value: ColorGenerator,
        GeneratorType.COORDINATE.value: CoordinateGenerator,
        GeneratorType.HASH.value: HashGenerator,
        GeneratorType.HASH_PRESERVE.value: HashPreserveGenerator,
        GeneratorType.FILE.value: FileGenerator,
        GeneratorType.UTM.value: UtmGenerator,
        GeneratorType.IBAN.value: IbanGenerator,
        GeneratorType.CREDIT_CARD.value: CreditCardGenerator,
        GeneratorType.MASKING.value: MaskingGenerator,
        GeneratorType.PATTERN_BASED.value: PatternBasedGenerator,
        GeneratorType.NAME_FALLBACK.value: NameFallbackGenerator,
        GeneratorType.COPY.value: CopyGenerator,
        GeneratorType.SHUFFLE.value: ShuffleGenerator,
        GeneratorType.ENUM.value: EnumGenerator,
        GeneratorType.MAP.value: MapGenerator,
        GeneratorType.CONSTANT.value: ConstantGenerator,
        GeneratorType.NULL.value: NullGenerator,
    }

    # Generators that build other generators (fallbacks) through the factory.
    DELEGATING: ClassVar[frozenset[type[BaseGenerator]]] = frozenset(
        {PatternBasedGenerator, CopyGenerator}
    )

    def __init__(
        self,
        locale: str = "en_US",
        services: dict[str, Any] | None = None,
        seed: int | None = None,
    ) -> None:
        self._faker = Faker(locale)
        if seed is not None:
            self._faker.seed_instance(seed)
        self._services = dict(services or {})
        self._cache: dict[tuple[str, str | None], BaseGenerator] = {}

    @property
    def faker(self) -> Faker:
        return self._faker

    def supports(self, generator_type: str, service_ref: str | None = None) -> bool:
        key = str(generator_type).lower()
        if key == SERVICE:
            return bool(service_ref) and service_ref in self._services
        return key in self.BUILTINS

    def validate(self, generator_type: str, service_ref: str | None = None) -> None:
        """Raise UnknownGeneratorError unless ``create`` would succeed."""
        key = str(generator_type).lower()
        if key == SERVICE:
            if not service_ref:
                raise UnknownGeneratorError("Generator type 'service' requires a service reference")
            if service_ref not in self._services:
                raise UnknownGeneratorError(
                    f"Unknown service '{service_ref}'. Registered: {sorted(self._services)}"
                )
            return
        if key not in self.BUILTINS:
            raise UnknownGeneratorError(
                f"Unknown generator type '{generator_type}'. "
                f"Choose from: {sorted([*self.BUILTINS, SERVICE])}"
            )

    def create(self, generator_type: str, service_ref: str | None = None) -> BaseGenerator:
        self.validate(generator_type, service_ref)
        key = str(generator_type).lower()
        cache_key = (key, service_ref if key == SERVICE else None)
        generator = self._cache.get(cache_key)
        if generator is None:
            generator = self._build(key, service_ref)
            self._cache[cache_key] = generator
        return generator

    def _build(self, key: str, service_ref: str | None) -> BaseGenerator:
        if key == SERVICE:
            if service_ref is None:
                raise UnknownGeneratorError("Generator type 'service' requires a service reference")
            service = self._services[service_ref]
            if isinstance(service, BaseGenerator):
                return service
            return ServiceGenerator(service, service_ref)
        generator_cls = self.BUILTINS[key]
        if generator_cls in self.DELEGATING:
            return generator_cls(self)  # type: ignore[call-arg]
        if issubclass(generator_cls, FakerGenerator):
            return generator_cls(self._faker)
        return generator_cls()
