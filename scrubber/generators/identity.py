"""Person, contact and organization generators."""

import re
from typing import Any, ClassVar

from faker import Faker
from faker.exceptions import UniquenessException

from scrubber.generators.base import FakerGenerator, int_option
from scrubber.generators.exceptions import GeneratorError


class NameGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        gender = str(options.get("gender", "random")).lower()
        if gender == "male":
            return self._faker.first_name_male()
        if gender == "female":
            return self._faker.first_name_female()
        return self._faker.first_name()


class SurnameGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        return self._faker.last_name()


class UsernameGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        min_length = int_option(options, "min_length", 5)
        max_length = int_option(options, "max_length", 20)
        prefix = str(options.get("prefix", ""))
        suffix = str(options.get("suffix", ""))

        base = self._faker.user_name()
        target = self._faker.random_int(min(min_length, max_length), max_length)
        base = base[:target]
        if options.get("include_numbers", True) and self._faker.boolean(70):
            base += str(self._faker.random_int(0, 999))
        return (prefix + base + suffix)[:max_length]


class EmailGenerator(FakerGenerator):
    """Safe (example.*) addresses, unique per run unless ``unique`` is false."""

    def generate(self, options: dict[str, Any]) -> str:
        domain = options.get("domain")
        unique = bool(options.get("unique", True))
        source = self._faker.unique if unique else self._faker
        try:
            if domain:
                return f"{source.user_name()}@{domain}"
            return source.safe_email()
        except UniquenessException as exc:
            raise GeneratorError(f"Ran out of unique e-mail addresses: {exc}") from exc


class PhoneGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        return self._faker.phone_number()


class AddressGenerator(FakerGenerator):
    COUNTRY_LOCALES: ClassVar[dict[str, str]] = {
        "US": "en_US",
        "GB": "en_GB",
        "ES": "es_ES",
        "FR": "fr_FR",
        "DE": "de_DE",
        "IT": "it_IT",
        "NL": "nl_NL",
        "PT": "pt_PT",
    }

    def __init__(self, faker: Faker) -> None:
        super().__init__(faker)
        self._by_country: dict[str, Faker] = {}

    def generate(self, options: dict[str, Any]) -> str:
        faker = self._faker_for(options.get("country"))
        address = faker.street_address()
        if options.get("format", "full") == "short":
            return address
        if options.get("include_postal_code", False):
            address += f", {faker.postcode()}"
        return f"{address}, {faker.city()}"

    def _faker_for(self, country: Any) -> Faker:
        if not country:
            return self._faker
        locale = self.COUNTRY_LOCALES.get(str(country).upper(), "en_US")
        if locale not in self._by_country:
            self._by_country[locale] = Faker(locale)
        return self._by_country[locale]


class CompanyGenerator(FakerGenerator):
    _LEGAL_SUFFIX_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"[\s,]+(Inc\.?|LLC|Ltd\.?|Corp\.?|Corporation|PLC|Group)$", re.IGNORECASE
    )
    _TYPE_SUFFIXES: ClassVar[dict[str, str]] = {
        "corporation": "Corp.",
        "corp": "Corp.",
        "llc": "LLC",
        "inc": "Inc.",
        "ltd": "Ltd.",
    }

    def generate(self, options: dict[str, Any]) -> str:
        name = self._faker.company()
        suffix = options.get("suffix")
        if suffix is None and options.get("type") is not None:
            suffix = self._TYPE_SUFFIXES.get(str(options["type"]).lower())
        if suffix is None:
            return name
        return f"{self._LEGAL_SUFFIX_RE.sub('', name)} {suffix}"


class UrlGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        scheme = str(options.get("scheme", "https"))
        domain = options.get("domain")
        base = f"{scheme}://{domain}/" if domain else self._faker.url(schemes=[scheme])
        if not options.get("path", True):
            return base.rstrip("/")
        return base + self._faker.uri_path()


class CountryGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        fmt = options.get("format", "code")
        if fmt == "name":
            return self._faker.country()
        if fmt == "iso3":
            return self._faker.country_code(representation="alpha-3")
        return self._faker.country_code()


class LanguageGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        if options.get("format", "code") == "name":
            return self._faker.language_name()
        return self._faker.language_code()


class PasswordGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        return self._faker.password(
            length=int_option(options, "length", 12),
            special_chars=bool(options.get("include_special", True)),
            digits=bool(options.get("include_numbers", True)),
            upper_case=bool(options.get("include_uppercase", True)),
            lower_case=True,
        )


class DniCifGenerator(FakerGenerator):
    """Spanish tax identifiers with valid control characters.

    ``type`` is ``dni`` (alias ``nif``), ``nie``, ``cif`` or ``auto``; ``auto``
    follows the shape of ``original_value`` and falls back to ``dni``.
    ``formatted`` inserts dashes: ``12345678-Z``, ``X-1234567-L``, ``A-1234567-4``.
    """

    DNI_LETTERS: ClassVar[str] = "TRWAGMYFPDXBNJZSQVHLCKE"
    NIE_PREFIXES: ClassVar[str] = "XYZ"
    CIF_LETTERS: ClassVar[str] = "ABCDEFGHJKLMNPQRSUVW"
    CIF_CONTROL_LETTERS: ClassVar[str] = "JABCDEFGHI"
    # Organization types whose CIF control character is always a letter.
    _CIF_LETTER_CONTROL: ClassVar[str] = "KNPQRSW"

    _DNI_RE: ClassVar[re.Pattern[str]] = re.compile(r"^\d{8}[A-Z]$")
    _NIE_RE: ClassVar[re.Pattern[str]] = re.compile(r"^[XYZ]\d{7}[A-Z]$")
    _CIF_RE: ClassVar[re.Pattern[str]] = re.compile(r"^[A-Z]\d{7}[A-Z0-9]$")

    def generate(self, options: dict[str, Any]) -> str:
        kind = str(options.get("type", "auto")).lower()
        if kind == "auto":
            kind = self.detect_type(options.get("original_value"))
        if kind == "nif":
            kind = "dni"
        if kind == "dni":
            value = self._dni()
        elif kind == "nie":
            value = self._nie()
        elif kind == "cif":
            value = self._cif()
        else:
            raise GeneratorError(
                f"Unknown dni_cif type '{kind}'. Choose from: auto, dni, nif, nie, cif"
            )
        if options.get("formatted", False):
            return self._format(value, kind)
        return value

    @classmethod
    def detect_type(cls, original: Any) -> str:
        if not isinstance(original, str):
            return "dni"
        cleaned = re.sub(r"[\s.\-]", "", original).upper()
        if cls._NIE_RE.match(cleaned):
            return "nie"
        if cls._DNI_RE.match(cleaned):
            return "dni"
        if cls._CIF_RE.match(cleaned):
            return "cif"
        return "dni"

    @classmethod
    def dni_letter(cls, number: int) -> str:
        return cls.DNI_LETTERS[number % 23]

    @classmethod
    def cif_control(cls, org_letter: str, digits: str) -> str:
        total = sum(int(d) for d in digits[1::2])
        for d in digits[0::2]:
            doubled = int(d) * 2
            total += doubled // 10 + doubled % 10
        control = (10 - total % 10) % 10
        if org_letter in cls._CIF_LETTER_CONTROL:
            return cls.CIF_CONTROL_LETTERS[control]
        return str(control)

    def _dni(self) -> str:
        number = self._faker.random_int(10_000_000, 99_999_999)
        return f"{number}{self.dni_letter(number)}"

    def _nie(self) -> str:
        prefix = self._faker.random_element(tuple(self.NIE_PREFIXES))
        digits = self._faker.numerify("#######")
        number = int(f"{self.NIE_PREFIXES.index(prefix)}{digits}")
        return f"{prefix}{digits}{self.dni_letter(number)}"

    def _cif(self) -> str:
        org_letter = self._faker.random_element(tuple(self.CIF_LETTERS))
        digits = self._faker.numerify("#######")
        return f"{org_letter}{digits}{self.cif_control(org_letter, digits)}"

    @staticmethod
    def _format(value: str, kind: str) -> str:
        if kind == "dni":
            return f"{value[:8]}-{value[8]}"
        return f"{value[0]}-{value[1:8]}-{value[8]}"
