"""Metric unit validator.

Flags quantities written in imperial units (cups, ounces, pounds, pints,
inches, sticks of butter) and Fahrenheit temperatures. Teaspoons and
tablespoons are accepted.
"""

import re
from typing import Any, Iterable

from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables
from recipe_guard.utils.normalizer import normalize_text
from recipe_guard.validators.base import ValidationContext, guard_structure, tag, validation_result

_QUANTITY = r"(?:\d+(?:[.,/]\d+)?|[½⅓⅔¼¾⅛]|\b(?:a|an|one|half|a half)\b)"
_FAHRENHEIT = re.compile(r"\b(\d{2,3})\s*(?:°|º|degrees?)?\s*(?:F\b|fahrenheit)", re.IGNORECASE)


def _unit_patterns(tables: RuleTables) -> list[tuple[re.Pattern, str]]:
    return [
        (re.compile(rf"{_QUANTITY}\s*(?:-\s*)?(?:{unit})\b", re.IGNORECASE), hint)
        for unit, hint in tables.imperial_units.items()
    ]


def find_non_metric(text: str, tables: RuleTables = DEFAULT_RULE_TABLES) -> list[tuple[str, str]]:
    """(matched text, conversion hint) pairs for every imperial quantity in ``text``."""
    found = []
    consumed = text
    for pattern, hint in _unit_patterns(tables):
        for match in pattern.finditer(consumed):
            found.append((match.group(0).strip(), hint))
        consumed = pattern.sub(" ", consumed)

    for match in _FAHRENHEIT.finditer(text):
        # "4 F" style false positives are avoided by requiring two or three digits
        fahrenheit = int(match.group(1))
        celsius = round((fahrenheit - 32) * 5 / 9)
        found.append((match.group(0).strip(), f"{fahrenheit}°F ≈ {celsius}°C"))
    return found


def _entry_violations(entries: Iterable[Any], field: str, label: str, tables: RuleTables) -> list[Violation]:
    violations = []
    for index, entry in enumerate(normalize_text(e) for e in entries):
        matches = find_non_metric(entry, tables)
        if not matches:
            continue
        quoted = ", ".join(f"'{text}'" for text, _ in matches)
        hints = "; ".join(dict.fromkeys(hint for _, hint in matches))
        violations.append(Violation(
            kind=ViolationKind.NON_METRIC_UNIT,
            message=f"{label.capitalize()} {index + 1} uses non-metric units: {quoted}",
            field=field,
            fix_instruction=f"Convert {quoted} in {label} {index + 1} to metric units ({hints})",
        ))
    return violations


def validate_metric_units(
    ingredients: Iterable[Any],
    instructions: Iterable[Any],
    tables: RuleTables = DEFAULT_RULE_TABLES,
) -> ValidationResult:
    """Every ingredient and step must use metric quantities and Celsius."""
    violations = _entry_violations(ingredients, "ingredients", "ingredient", tables)
    violations.extend(_entry_violations(instructions, "instructions", "step", tables))
    if not violations:
        return validation_result([], "All quantities are metric.")
    return validation_result(violations)


def check_metric_units(draft: RecipeDraft, profile: UserProfile, context: ValidationContext) -> ValidationResult:
    """Validator adapter: draft ingredients and instructions."""
    guarded = guard_structure(draft, ValidatorKind.METRIC_UNITS)
    if guarded:
        return guarded

    result = validate_metric_units(draft.ingredients, draft.instructions, tables=context.tables)
    return validation_result(tag(result.violations, ValidatorKind.METRIC_UNITS), result.fix_instructions)
