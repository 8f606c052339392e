import hashlib
import json
import re
from typing import Any, ClassVar

from scrubber.generators.base import BaseGenerator, FakerGenerator, float_option, int_option
from scrubber.generators.exceptions import GeneratorError

_ALGORITHMS: dict[str, str] = {
    "md5": "md5",
    "sha1": "sha1",
    "sha256": "sha256",
    "sha512": "sha512",
}


def _digest(data: str, algorithm: str) -> str:
    name = _ALGORITHMS.get(algorithm.lower(), "sha256")
    return hashlib.new(name, data.encode("utf-8")).hexdigest()


class UuidGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        value = self._faker.uuid4()
        if options.get("format") == "without_dashes":
            return value.replace("-", "")
        return value


class IpAddressGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        kind = options.get("type", "public")
        if int_option(options, "version", 4) == 6:
            if kind == "localhost":
                return "::1"
            return self._faker.ipv6()
        if kind == "localhost":
            return "127.0.0.1"
        if kind == "private":
            return self._faker.ipv4_private()
        return self._faker.ipv4_public()


class MacAddressGenerator(FakerGenerator):
    _SEPARATORS: ClassVar[dict[str, str]] = {"colon": ":", "dash": "-", "none": ""}

    def generate(self, options: dict[str, Any]) -> str:
        separator = self._SEPARATORS.get(str(options.get("separator", "colon")), ":")
        octets = [f"{self._faker.random_int(0, 255):02x}" for _ in range(6)]
        value = separator.join(octets)
        return value.upper() if options.get("uppercase", True) else value


class ColorGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        fmt = options.get("format", "hex")
        if fmt not in ("rgb", "rgba"):
            return self._faker.hex_color()
        red, green, blue = (self._faker.random_int(0, 255) for _ in range(3))
        if fmt == "rgb":
            return f"rgb({red}, {green}, {blue})"
        return f"rgba({red}, {green}, {blue}, {float_option(options, 'alpha', 1.0):.2f})"


class CoordinateGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str | dict[str, float]:
        precision = int_option(options, "precision", 6)
        latitude = round(
            self._faker.random.uniform(
                float_option(options, "min_lat", -90.0), float_option(options, "max_lat", 90.0)
            ),
            precision,
        )
        longitude = round(
            self._faker.random.uniform(
                float_option(options, "min_lng", -180.0), float_option(options, "max_lng", 180.0)
            ),
            precision,
        )
        fmt = options.get("format", "string")
        if fmt == "array":
            return {"latitude": latitude, "longitude": longitude}
        if fmt == "json":
            return json.dumps({"latitude": latitude, "longitude": longitude})
        return f"{latitude:.{precision}f},{longitude:.{precision}f}"


class HashGenerator(FakerGenerator):
    """Hex digest of random text, unrelated to the original value."""

    def generate(self, options: dict[str, Any]) -> str:
        seed_text = f"{self._faker.text(max_nb_chars=100)}{self._faker.random_number(digits=9)}"
        digest = _digest(seed_text, str(options.get("algorithm", "sha256")))
        length = int_option(options, "length", 0)
        return digest[:length] if length > 0 else digest


class HashPreserveGenerator(BaseGenerator):
    """Deterministic digest of the original value (same input, same output)."""

    _NON_DIGITS: ClassVar[re.Pattern[str]] = re.compile(r"[^0-9]")

    def generate(self, options: dict[str, Any]) -> str:
        original = options.get("original_value")
        if original is None:
            raise GeneratorError("hash_preserve requires a non-null original value")
        digest = _digest(
            f"{original}{options.get('salt', '')}", str(options.get("algorithm", "sha256"))
        )
        length = int_option(options, "length", 0)
        if length > 0:
            digest = digest[:length]
        if options.get("preserve_format", False) and self._is_numeric(original):
            digest = self._NON_DIGITS.sub("", digest)[:20] or "0"
        return digest

    @staticmethod
    def _is_numeric(value: Any) -> bool:
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return True
        try:
            float(str(value))
        except ValueError:
            return False
        return True


class FileGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        extension = options.get("extension")
        if extension:
            filename = f"{self._faker.word()}.{str(extension).lstrip('.')}"
        else:
            filename = self._faker.file_name()
        directory = options.get("directory")
        absolute = bool(options.get("absolute", False))
        if directory:
            path = f"{str(directory).rstrip('/')}/{filename}"
            return f"/{path}" if absolute and not path.startswith("/") else path
        if absolute:
            return f"/{self._faker.word()}/{filename}"
        return filename


class UtmGenerator(FakerGenerator):
    """Campaign tracking values (``utm_source``, ``utm_medium``, ...)."""

    SOURCES: ClassVar[tuple[str, ...]] = (
        "google", "facebook", "twitter", "linkedin", "instagram",
        "youtube", "newsletter", "direct", "referral", "bing",
        "yahoo", "reddit", "pinterest", "tiktok", "snapchat",
    )
    MEDIUMS: ClassVar[tuple[str, ...]] = (
        "cpc", "cpm", "email", "social", "organic", "referral",
        "affiliate", "display", "banner", "retargeting", "newsletter",
        "sms", "push", "in-app", "video", "audio", "print",
    )
    CAMPAIGNS: ClassVar[tuple[str, ...]] = (
        "spring_sale", "summer_promotion", "winter_campaign", "fall_offer",
        "product_launch", "new_collection", "limited_edition", "flash_sale",
        "black_friday", "cyber_monday", "holiday_special", "back_to_school",
        "anniversary", "grand_opening", "clearance", "rebate",
    )
    FORMATS: ClassVar[tuple[str, ...]] = (
        "snake_case", "kebab-case", "camelCase", "PascalCase", "lowercase",
    )

    def generate(self, options: dict[str, Any]) -> str:
        kind = str(options.get("type", "source")).lower()
        if kind == "source":
            value = self._pick(options, "custom_sources", self.SOURCES)
        elif kind == "medium":
            value = self._pick(options, "custom_mediums", self.MEDIUMS)
        elif kind == "campaign":
            value = self._campaign(options)
        elif kind == "term":
            value = self._words(
                int_option(options, "min_length", 3),
                int_option(options, "max_length", 20),
                max_words=3,
            )
        elif kind == "content":
            value = self._content(options)
        else:
            raise GeneratorError(
                f"Unknown utm type '{kind}'. Choose from: source, medium, campaign, term, content"
            )
        value = self._apply_format(value, str(options.get("format", "snake_case")))
        return f"{options.get('prefix', '')}{value}{options.get('suffix', '')}"

    def _pick(self, options: dict[str, Any], key: str, defaults: tuple[str, ...]) -> str:
        custom = options.get(key)
        if custom is None:
            return self._faker.random_element(defaults)
        if not isinstance(custom, list) or not custom:
            raise GeneratorError(f"Option '{key}' must be a non-empty list")
        return str(self._faker.random_element(custom))

    def _campaign(self, options: dict[str, Any]) -> str:
        if options.get("custom_campaigns") is not None:
            return self._pick(options, "custom_campaigns", self.CAMPAIGNS)
        if self._faker.boolean(70):
            name = self._faker.random_element(self.CAMPAIGNS)
            if self._faker.boolean(40):
                name += f"_{self._faker.random_int(2020, 2025)}"
            return name
        return self._words(
            int_option(options, "min_length", 5), int_option(options, "max_length", 30)
        )

    def _words(self, min_length: int, max_length: int, max_words: int | None = None) -> str:
        """Underscore-joined words whose total length stays within the target."""
        target = self._faker.random_int(min(min_length, max_length), max_length)
        limit = max_words if max_words is not None else target
        words: list[str] = []
        length = 0
        while len(words) < limit:
            word = self._faker.word()
            if length + len(word) + 1 > target:
                break
            words.append(word)
            length += len(word) + 1
        return "_".join(words) if words else self._faker.word()[:max_length]

    def _content(self, options: dict[str, Any]) -> str:
        min_length = int_option(options, "min_length", 5)
        max_length = int_option(options, "max_length", 25)
        value = self._faker.random_element(
            (
                f"link_{self._faker.random_int(1, 10)}",
                f"button_{self._faker.random_element(('top', 'bottom', 'middle', 'sidebar'))}",
                f"banner_{self._faker.random_element(('a', 'b', 'c', '1', '2', '3'))}",
                f"image_{self._faker.random_int(1, 5)}",
                f"text_{self._faker.random_int(1, 3)}",
                f"{self._faker.word()}_{self._faker.random_int(1, 100)}",
            )
        )
        if len(value) < min_length:
            value += f"_{self._faker.word()}"
        return value[:max_length]

    def _apply_format(self, value: str, fmt: str) -> str:
        if fmt not in self.FORMATS:
            raise GeneratorError(
                f"Unknown utm format '{fmt}'. Choose from: {', '.join(self.FORMATS)}"
            )
        parts = value.split("_")
        if fmt == "kebab-case":
            return value.replace("_", "-")
        if fmt == "camelCase":
            return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])
        if fmt == "PascalCase":
            return "".join(part[:1].upper() + part[1:] for part in parts)
        if fmt == "lowercase":
            return value.replace("_", "").lower()
        return value
