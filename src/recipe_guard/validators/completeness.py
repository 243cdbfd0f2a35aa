"""Recipe completeness checker.

A complete recipe has a title, a description, at least one ingredient and at
least one instruction step, and every listed ingredient is actually used by
some step.
"""

import re

from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.utils.normalizer import head_noun, ingredient_core_name, significant_words, singular
from recipe_guard.validators.base import ValidationContext, structural_violations, tag, validation_result

# Ingredients commonly used implicitly by a generic verb instead of by name
IMPLICIT_USE = {
    "salt": ("season",),
    "pepper": ("season",),
    "water": ("boil", "simmer", "cook"),
}


def _words(text: str) -> set[str]:
    return {singular(word) for word in re.findall(r"[a-zà-ÿ]+", text.lower())}


def ingredient_is_used(ingredient: str, instructions_text: str) -> bool:
    """True when the ingredient's core name, head noun or a significant word appears in the steps."""
    core = ingredient_core_name(ingredient)
    if not core:
        return True

    text = instructions_text.lower()
    if core in text:
        return True

    step_words = _words(text)
    noun = head_noun(ingredient)
    if noun and singular(noun) in step_words:
        return True

    if significant_words(core) & step_words:
        return True

    for name, verbs in IMPLICIT_USE.items():
        if name in core and any(verb in text for verb in verbs):
            return True
    return False


def check_completeness(draft: RecipeDraft, profile: UserProfile, context: ValidationContext) -> ValidationResult:
    """Required fields present and every ingredient referenced by the instructions."""
    violations = structural_violations(draft, ValidatorKind.COMPLETENESS)

    if not draft.description:
        violations.append(Violation(
            kind=ViolationKind.MISSING_FIELD,
            message="Recipe has no description",
            field="description",
            fix_instruction="Add a one or two sentence description of the dish",
        ))
    if not draft.ingredients:
        violations.append(Violation(
            kind=ViolationKind.MISSING_FIELD,
            message="Recipe has no ingredients",
            field="ingredients",
            fix_instruction="Add the ingredient list with metric quantities",
        ))

    if draft.instructions:
        instructions_text = " ".join(draft.instructions)
        for index, ingredient in enumerate(draft.ingredients):
            if ingredient_is_used(ingredient, instructions_text):
                continue
            violations.append(Violation(
                kind=ViolationKind.UNUSED_INGREDIENT,
                message=f"Ingredient {index + 1} ('{ingredient}') is never used in the instructions",
                field="ingredients",
                fix_instruction=f"Use '{ingredient}' in the step where it belongs, or remove it from the ingredient list",
            ))

    if not violations:
        return validation_result([], "Recipe is complete.")
    return validation_result(tag(violations, ValidatorKind.COMPLETENESS))
