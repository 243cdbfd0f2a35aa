"""Appliance compatibility checker.

Scans each instruction step for appliance keywords and reports every
appliance the user does not own. Keywords are checked most specific first and
a matched phrase is blanked out before the next appliance is tried, so
"use a stick blender" asks for a stick blender only. Cooking verbs such as
"blend" or "bake" stop counting for the general appliance once a variant of
it (stick blender, air fryer) is named in the step, and ingredient phrases
like "baking powder" are ignored.
"""

import re
from typing import Any, Iterable

from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables
from recipe_guard.utils.normalizer import format_key_name, normalize_key, normalize_text
from recipe_guard.validators.base import ValidationContext, guard_structure, tag, validation_result


def required_appliances(step: str, tables: RuleTables = DEFAULT_RULE_TABLES) -> list[str]:
    """Appliance keys a single instruction step needs, in table order."""
    text = step.lower()
    for phrase in tables.appliance_exempt_phrases:
        text = text.replace(phrase, " ")

    needed = []
    for appliance, terms in tables.appliance_keywords:
        if any(variant in needed for variant in tables.appliance_variants.get(appliance, ())):
            verbs = tables.appliance_verbs.get(appliance, ())
            terms = tuple(term for term in terms if term not in verbs)
        matched = False
        for term in terms:
            pattern = re.compile(rf"\b{re.escape(term)}")
            if pattern.search(text):
                matched = True
                text = pattern.sub(" ", text)
        if matched:
            needed.append(appliance)
    return needed


def validate_appliances(
    instructions: Iterable[Any],
    available_appliances: Iterable[Any],
    tables: RuleTables = DEFAULT_RULE_TABLES,
) -> ValidationResult:
    """Report each (step, appliance) pair the user cannot cook with."""
    available = sorted({normalize_key(a) for a in available_appliances if normalize_text(a)})
    available_names = ", ".join(format_key_name(a) for a in available) or "none"

    violations = []
    for index, step in enumerate(normalize_text(s) for s in instructions):
        for appliance in required_appliances(step, tables):
            if appliance in available:
                continue
            name = format_key_name(appliance).lower()
            violations.append(Violation(
                kind=ViolationKind.APPLIANCE_UNAVAILABLE,
                message=f"Step {index + 1} requires a {name}, which the user does not have",
                field="instructions",
                fix_instruction=(
                    f"Rewrite step {index + 1} without the {name}. "
                    f"Available appliances: {available_names}"
                ),
            ))

    if not violations:
        return validation_result([], "All steps use available appliances.")
    return validation_result(violations)


def check_appliances(draft: RecipeDraft, profile: UserProfile, context: ValidationContext) -> ValidationResult:
    """Validator adapter: draft instructions against the profile's appliances."""
    guarded = guard_structure(draft, ValidatorKind.APPLIANCE)
    if guarded:
        return guarded

    result = validate_appliances(draft.instructions, profile.appliances, tables=context.tables)
    return validation_result(tag(result.violations, ValidatorKind.APPLIANCE), result.fix_instructions)
