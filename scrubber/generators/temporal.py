from datetime import date, datetime
from typing import Any

from scrubber.generators.base import FakerGenerator
from scrubber.generators.exceptions import GeneratorError


class DateGenerator(FakerGenerator):
    """Random dates within a window.

    ``min_date``/``max_date`` accept ISO dates or Faker offsets such as
    ``-30y``, ``+6M`` and ``today``. ``type`` selects ``past`` (min..today),
    ``future`` (today..max) or ``between`` (min..max). Output is formatted
    with the strftime ``format`` (default ``%Y-%m-%d``).
    """

    def generate(self, options: dict[str, Any]) -> str:
        kind = options.get("type", "between")
        min_date = self._parse(options.get("min_date", "-100y"))
        if kind == "past":
            start, end = min_date, date.today()
        elif kind == "future":
            start, end = date.today(), self._parse(options.get("max_date", "+10y"))
        else:
            start, end = min_date, self._parse(options.get("max_date", "today"))

        try:
            value = self._faker.date_between(start_date=start, end_date=end)
        except ValueError as exc:
            raise GeneratorError(f"Invalid date window {start!r}..{end!r}: {exc}") from exc
        return value.strftime(str(options.get("format", "%Y-%m-%d")))

    @staticmethod
    def _parse(raw: Any) -> date | str:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        text = str(raw).strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            # Faker understands relative offsets ("-30y", "+2w") and "today".
            return text
