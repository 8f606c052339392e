from typing import Any

from scrubber.generators.base import FakerGenerator, float_option, int_option
from scrubber.generators.exceptions import GeneratorError


class AgeGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> int:
        low = int_option(options, "min", 18)
        high = int_option(options, "max", 100)
        if low > high:
            raise GeneratorError(f"min ({low}) must not exceed max ({high})")
        return self._faker.random_int(low, high)


class NumericGenerator(FakerGenerator):
    """Integers by default; ``type: float`` yields values rounded to ``precision``."""

    def generate(self, options: dict[str, Any]) -> int | float:
        if options.get("type", "int") == "float":
            low = float_option(options, "min", 0.0)
            high = float_option(options, "max", 1000.0)
            if low > high:
                raise GeneratorError(f"min ({low}) must not exceed max ({high})")
            precision = int_option(options, "precision", 2)
            return round(self._faker.random.uniform(low, high), precision)

        low = int_option(options, "min", 0)
        high = int_option(options, "max", 1000)
        if low > high:
            raise GeneratorError(f"min ({low}) must not exceed max ({high})")
        return self._faker.random_int(low, high)


class BooleanGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> bool:
        probability = max(0, min(100, int_option(options, "true_probability", 50)))
        return self._faker.boolean(chance_of_getting_true=probability)
