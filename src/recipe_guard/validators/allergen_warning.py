"""Allergen warning validator.

When the user explicitly asks for an ingredient they are allergic to, the
recipe keeps it but every step that uses it must be preceded by a visible
warning. For a step at index i, the warning may sit in steps i-2, i-1 or i,
must carry the ⚠️ marker, and must name the allergen.

Violation kinds:
- missing_emoji: no marked warning in the window.
- generic_warning: a marked warning is in the window but names no allergen.
- allergen_not_in_instructions: the requested allergen is never used.
"""

import re
from typing import Any, Iterable

from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables
from recipe_guard.utils.normalizer import normalize_key, normalize_text, readable_key
from recipe_guard.validators.base import ValidationContext, guard_structure, tag, validation_result

# Steps before the current one that may carry its warning
WARNING_WINDOW = 2

# U+26A0 with or without the emoji variation selector
_MARKER_CHAR = "⚠"
_SENTENCE_END = re.compile(r"[.!?](?:\s|$)|\n")


def _allergy_overlaps(ingredient: str, allergy: str, tables: RuleTables) -> bool:
    ingredient_l = ingredient.lower()
    name = readable_key(allergy)
    if name in ingredient_l or ingredient_l in name:
        return True
    return any(term in ingredient_l for term in tables.synonyms_for(allergy))


def _warning_sentences(step: str) -> list[str]:
    """Text from each marker to the end of its sentence."""
    sentences = []
    start = step.find(_MARKER_CHAR)
    while start != -1:
        end_match = _SENTENCE_END.search(step, start)
        end = end_match.start() if end_match else len(step)
        sentences.append(step[start:end])
        start = step.find(_MARKER_CHAR, start + 1)
    return sentences


def _allergen_terms(allergy: str, ingredient: str, tables: RuleTables) -> set[str]:
    terms = {readable_key(allergy), allergy.lower(), ingredient.lower()}
    terms.update(readable_key(key) for key in tables.canonical_allergies(allergy))
    return {term for term in terms if term}


def _names_allergen(sentence: str, terms: set[str]) -> bool:
    sentence_l = sentence.lower()
    return any(term in sentence_l for term in terms)


def _example_warning(marker: str, ingredient: str, allergy: str) -> str:
    return f"{marker} WARNING: This step contains {ingredient} ({readable_key(allergy)}) which you are allergic to. Proceed with extreme caution."


def validate_allergen_warnings(
    instructions: Iterable[Any],
    user_allergies: Iterable[Any],
    requested_ingredients: Iterable[Any],
    tables: RuleTables = DEFAULT_RULE_TABLES,
) -> ValidationResult:
    """Check that every step using a requested allergen carries a specific warning.

    Args:
        instructions: Recipe steps in order.
        user_allergies: Allergy keys or everyday names ("nuts", "dairy").
        requested_ingredients: Ingredients the user explicitly asked for.
        tables: Rule tables providing synonyms, aliases and the marker.

    Returns:
        ValidationResult; trivially valid when no requested ingredient is an allergen.
    """
    steps = [normalize_text(step) for step in instructions]
    allergies = [key for key in (normalize_key(a) for a in user_allergies) if key]
    requested = [item for item in (normalize_text(r) for r in requested_ingredients) if item]

    pairs = [
        (ingredient, allergy)
        for ingredient in requested
        for allergy in allergies
        if _allergy_overlaps(ingredient, allergy, tables)
    ]
    if not pairs:
        return validation_result([], "No requested allergens to warn about.")

    marker = tables.warning_marker
    found: dict[tuple, Violation] = {}

    for ingredient, allergy in pairs:
        ingredient_l = ingredient.lower()
        mention_indexes = [index for index, step in enumerate(steps) if ingredient_l in step.lower()]

        if not mention_indexes:
            found.setdefault((ViolationKind.ALLERGEN_NOT_IN_INSTRUCTIONS, ingredient), Violation(
                kind=ViolationKind.ALLERGEN_NOT_IN_INSTRUCTIONS,
                message=f"Requested allergen '{ingredient}' is not used in any instruction step",
                field="instructions",
                fix_instruction=(
                    f"Mention {ingredient} in the step where it is added and put a warning in that step: "
                    f"'{_example_warning(marker, ingredient, allergy)}'"
                ),
            ))
            continue

        terms = _allergen_terms(allergy, ingredient, tables)
        for index in mention_indexes:
            step_number = index + 1
            window = steps[max(0, index - WARNING_WINDOW): index + 1]
            sentences = [sentence for step in window for sentence in _warning_sentences(step)]

            if not sentences:
                found.setdefault((ViolationKind.MISSING_EMOJI, step_number, ingredient), Violation(
                    kind=ViolationKind.MISSING_EMOJI,
                    message=f"Step {step_number} uses {ingredient} without a {marker} allergen warning",
                    field="instructions",
                    fix_instruction=(
                        f"Add the warning emoji {marker} with a warning naming {readable_key(allergy)} "
                        f"in step {step_number} or one of the two steps before it: "
                        f"'{_example_warning(marker, ingredient, allergy)}'"
                    ),
                ))
            elif not any(_names_allergen(sentence, terms) for sentence in sentences):
                found.setdefault((ViolationKind.GENERIC_WARNING, step_number, ingredient), Violation(
                    kind=ViolationKind.GENERIC_WARNING,
                    message=f"The warning before step {step_number} does not name the allergen in {ingredient}",
                    field="instructions",
                    fix_instruction=(
                        f"Rewrite the warning for step {step_number} so it names {ingredient} "
                        f"({readable_key(allergy)}): '{_example_warning(marker, ingredient, allergy)}'"
                    ),
                ))

    violations = list(found.values())
    if not violations:
        return validation_result([], "All requested allergens carry specific warnings.")

    lines = [
        "The user explicitly requested ingredients they are allergic to.",
        f"Every step using them needs a {marker} warning that names the allergen.",
        "",
    ]
    lines.extend(f"- {v.fix_instruction}" for v in violations)
    return validation_result(violations, "\n".join(lines))


def check_allergen_warnings(draft: RecipeDraft, profile: UserProfile, context: ValidationContext) -> ValidationResult:
    """Validator adapter: requested allergens in the draft's instructions."""
    guarded = guard_structure(draft, ValidatorKind.ALLERGEN_WARNING)
    if guarded:
        return guarded

    result = validate_allergen_warnings(
        draft.instructions,
        sorted(profile.allergies),
        context.requested_ingredients,
        tables=context.tables,
    )
    return validation_result(tag(result.violations, ValidatorKind.ALLERGEN_WARNING), result.fix_instructions)
