"""Inclusion/exclusion pattern language evaluated against raw records.

A RuleSet is a list of RuleConfigs combined with OR. A RuleConfig maps field
names to PatternExprs combined with AND. A PatternExpr is a string (with
optional ``|``-separated alternatives) or a list of alternatives, combined
with OR. Each alternative is one of:

- ``IS NULL`` / ``IS NOT NULL`` (case-insensitive),
- an operator-prefixed operand: ``<=``, ``>=``, ``!=``, ``<>``, ``<``, ``>``, ``=``,
- a LIKE-style pattern where ``%`` matches any run of characters,
- a bare operand compared for equality.

Comparisons are numeric when both sides parse as finite numbers, otherwise
they are case-sensitive string comparisons. A null (or absent) field value
never satisfies anything but ``IS NULL``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, ClassVar

from scrubber.rules.exceptions import ConfigError
from scrubber.rules.models import PatternExpr, RuleConfig, RuleSet


@lru_cache(maxsize=512)
def _like_regex(pattern: str) -> re.Pattern[str]:
    parts = (re.escape(part) for part in pattern.split("%"))
    return re.compile(".*".join(parts), re.DOTALL)


class PatternMatcher:
    """Evaluates RuleSets against records."""

    NULL_TOKEN: ClassVar[str] = "IS NULL"
    NOT_NULL_TOKEN: ClassVar[str] = "IS NOT NULL"

    # Two-character operators must be tried before their one-character prefixes.
    _OPERATORS: ClassVar[tuple[str, ...]] = ("<=", ">=", "!=", "<>", "<", ">", "=")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def matches(self, rule_set: RuleSet, record: Mapping[str, Any]) -> bool:
        """True if any RuleConfig in *rule_set* matches; an empty set matches everything."""
        if not rule_set:
            return True
        return any(self._matches_config(config, record) for config in rule_set)

    def is_excluded(self, exclude_patterns: RuleSet, record: Mapping[str, Any]) -> bool:
        """An empty exclusion set excludes nothing."""
        if not exclude_patterns:
            return False
        return self.matches(exclude_patterns, record)

    def is_included(
        self,
        include_patterns: RuleSet,
        exclude_patterns: RuleSet,
        record: Mapping[str, Any],
    ) -> bool:
        """Exclusion wins over inclusion."""
        if self.is_excluded(exclude_patterns, record):
            return False
        return self.matches(include_patterns, record)

    def validate(self, rule_set: Any, context: str) -> None:
        """Check the shape of a RuleSet.

        Raises:
            ConfigError: on any malformed RuleConfig or PatternExpr.
        """
        if not isinstance(rule_set, list):
            raise ConfigError(f"{context}: patterns must be a list of mappings")
        for index, config in enumerate(rule_set):
            if not isinstance(config, Mapping):
                raise ConfigError(f"{context}[{index}]: pattern set must be a mapping")
            for field_name, expr in config.items():
                where = f"{context}[{index}].{field_name}"
                if not isinstance(field_name, str) or not field_name:
                    raise ConfigError(f"{where}: field name must be a non-empty string")
                alternatives = self._validate_expr(expr, where)
                for alternative in alternatives:
                    self._validate_alternative(alternative, where)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _matches_config(self, config: RuleConfig, record: Mapping[str, Any]) -> bool:
        for field_name, expr in config.items():
            value = self._resolve(record, field_name)
            if not any(
                self._matches_alternative(alternative, value)
                for alternative in self._alternatives(expr)
            ):
                return False
        return True

    def _matches_alternative(self, alternative: str, value: Any) -> bool:
        token = alternative.upper()
        if token == self.NULL_TOKEN:
            return value is None
        if token == self.NOT_NULL_TOKEN:
            return value is not None
        if value is None:
            return False

        operator, operand = self._split_operator(alternative)
        if operator is not None:
            return self._compare(operator, value, operand)
        if "%" in alternative:
            return _like_regex(alternative).fullmatch(self._as_text(value)) is not None
        return self._compare("=", value, alternative)

    def _compare(self, operator: str, value: Any, operand: str) -> bool:
        left_number = self._as_number(value)
        right_number = self._as_number(operand)
        left: Decimal | str
        right: Decimal | str
        if left_number is not None and right_number is not None:
            left, right = left_number, right_number
        else:
            left, right = self._as_text(value), operand

        if operator == "=":
            return left == right
        if operator in ("!=", "<>"):
            return left != right
        if operator == "<":
            return left < right  # type: ignore[operator]
        if operator == "<=":
            return left <= right  # type: ignore[operator]
        if operator == ">":
            return left > right  # type: ignore[operator]
        return left >= right  # type: ignore[operator]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @classmethod
    def _split_operator(cls, alternative: str) -> tuple[str | None, str]:
        for operator in cls._OPERATORS:
            if alternative.startswith(operator):
                return operator, alternative[len(operator):].strip()
        return None, alternative

    @staticmethod
    def _alternatives(expr: PatternExpr) -> list[str]:
        if isinstance(expr, str):
            return [part.strip() for part in expr.split("|")]
        return [str(part).strip() for part in expr]

    @classmethod
    def _resolve(cls, record: Mapping[str, Any], field_name: str) -> Any:
        """Look up a column; dotted names fall back to nested mappings."""
        if field_name in record:
            return record[field_name]
        if "." in field_name:
            head, rest = field_name.split(".", 1)
            nested = record.get(head)
            if isinstance(nested, Mapping):
                return cls._resolve(nested, rest)
        return None

    @staticmethod
    def _as_number(value: Any) -> Decimal | None:
        """Exact numeric form of *value*; floats go through their shortest repr."""
        if isinstance(value, bool):
            return Decimal(int(value))
        if isinstance(value, (int, Decimal)):
            number = Decimal(value)
        elif isinstance(value, float):
            number = Decimal(repr(value))
        elif isinstance(value, str):
            try:
                number = Decimal(value.strip())
            except InvalidOperation:
                return None
        else:
            return None
        return number if number.is_finite() else None

    @staticmethod
    def _as_text(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        return str(value)

    def _validate_expr(self, expr: Any, where: str) -> list[str]:
        if isinstance(expr, bool):
            raise ConfigError(f"{where}: pattern must be a string or a list of strings")
        if isinstance(expr, str):
            return self._alternatives(expr)
        if isinstance(expr, list) and expr:
            for part in expr:
                if isinstance(part, bool) or not isinstance(part, (str, int, float)):
                    raise ConfigError(f"{where}: list patterns may only contain strings")
            return self._alternatives(expr)
        raise ConfigError(f"{where}: pattern must be a string or a non-empty list of strings")

    def _validate_alternative(self, alternative: str, where: str) -> None:
        if not alternative:
            raise ConfigError(f"{where}: empty pattern alternative")
        if alternative.upper() in (self.NULL_TOKEN, self.NOT_NULL_TOKEN):
            return
        operator, operand = self._split_operator(alternative)
        if operator is not None and not operand:
            raise ConfigError(f"{where}: operator '{operator}' requires an operand")
