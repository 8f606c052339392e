import string
from typing import Any, ClassVar

from faker import Faker

from scrubber.generators.base import BaseGenerator, FakerGenerator, int_option
from scrubber.generators.exceptions import GeneratorError


class IbanGenerator(FakerGenerator):
    """IBANs with valid check digits for the requested ``country`` (default: the Faker locale's)."""

    COUNTRY_LOCALES: ClassVar[dict[str, str]] = {
        "DE": "de_DE",
        "ES": "es_ES",
        "FR": "fr_FR",
        "GB": "en_GB",
        "IT": "it_IT",
        "NL": "nl_NL",
        "PT": "pt_PT",
    }

    def __init__(self, faker: Faker) -> None:
        super().__init__(faker)
        self._by_country: dict[str, Faker] = {}

    def generate(self, options: dict[str, Any]) -> str:
        country = options.get("country")
        if not country:
            return self._faker.iban()
        country = str(country).upper()
        if len(country) != 2 or not country.isalpha():
            raise GeneratorError(f"Invalid IBAN country code '{country}'")
        locale = self.COUNTRY_LOCALES.get(country)
        if locale is None:
            return self.build(country, self._faker.numerify("#" * 16))
        if locale not in self._by_country:
            self._by_country[locale] = Faker(locale)
        return self._by_country[locale].iban()

    @staticmethod
    def build(country: str, bban: str) -> str:
        """Assemble an IBAN, computing the ISO 13616 mod-97 check digits."""
        rearranged = f"{bban}{country}00"
        digits = "".join(
            str(string.ascii_uppercase.index(ch) + 10) if ch.isalpha() else ch
            for ch in rearranged.upper()
        )
        check = 98 - int(digits) % 97
        return f"{country}{check:02d}{bban}"


class CreditCardGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        return self._faker.credit_card_number(card_type=options.get("card_type"))


class MaskingGenerator(BaseGenerator):
    """Keeps the first/last characters of the original value and masks the rest.

    Options: ``preserve_start`` (default 1), ``preserve_end`` (default 0),
    ``mask_char`` (default ``*``) and ``mask_length`` to force the mask width.
    Values no longer than the preserved parts are masked entirely.
    """

    def generate(self, options: dict[str, Any]) -> str:
        original = options.get("original_value")
        if original is None:
            raise GeneratorError("masking requires a non-null original value")
        value = str(original)
        preserve_start = max(0, int_option(options, "preserve_start", 1))
        preserve_end = max(0, int_option(options, "preserve_end", 0))
        mask_char = str(options.get("mask_char", "*")) or "*"

        if len(value) <= preserve_start + preserve_end:
            return mask_char * len(value)

        mask_length = int_option(
            options, "mask_length", len(value) - preserve_start - preserve_end
        )
        end = value[len(value) - preserve_end:] if preserve_end > 0 else ""
        return value[:preserve_start] + mask_char * mask_length + end
