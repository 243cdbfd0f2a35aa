"""Ingredient allergy checker.

Cross-references every ingredient against the user's active allergies,
using the allergen synonym table for detection (so "tahini" reveals sesame).

Allergens the user explicitly requested are not violations here; the
allergen warning validator makes sure they carry warnings. Only unexpected
allergens become ``unexpected_allergen`` violations, each with substitute
suggestions that do not themselves name another of the user's allergies.
"""

from typing import Any, Iterable

from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables
from recipe_guard.utils.normalizer import format_key_name, normalize_key, normalize_text, readable_key
from recipe_guard.validators.base import ValidationContext, guard_structure, tag, validation_result


def normalize_allergies(user_allergies: Any) -> list[str]:
    """Normalize allergies given as a list, a comma string or a ``{key: bool}`` mapping."""
    if user_allergies is None:
        return []
    if isinstance(user_allergies, dict):
        items: Iterable[Any] = [key for key, flag in user_allergies.items() if flag is True]
    elif isinstance(user_allergies, str):
        items = user_allergies.split(",")
    else:
        items = user_allergies
    keys = [normalize_key(item) for item in items]
    return list(dict.fromkeys(key for key in keys if key))


def ingredient_contains_allergen(ingredient: str, allergy: str, tables: RuleTables = DEFAULT_RULE_TABLES) -> bool:
    """Case-insensitive substring match on the allergy key, its readable name and its synonyms."""
    ingredient_l = ingredient.lower()
    if allergy in ingredient_l or readable_key(allergy) in ingredient_l:
        return True
    return any(term in ingredient_l for term in tables.synonyms_for(allergy))


def detect_allergens(ingredients: Iterable[str], allergies: list[str], tables: RuleTables = DEFAULT_RULE_TABLES) -> list[tuple[str, str]]:
    """Deduplicated (ingredient, allergy) pairs in recipe order."""
    detected: dict[tuple[str, str], None] = {}
    for ingredient in ingredients:
        for allergy in allergies:
            if ingredient_contains_allergen(ingredient, allergy, tables):
                detected[(ingredient, allergy)] = None
    return list(detected)


def get_substitutes(allergy: str, user_allergies: list[str], tables: RuleTables = DEFAULT_RULE_TABLES) -> list[str]:
    """Substitutes for ``allergy`` that do not name another of the user's allergies."""
    candidates: list[str] = []
    for key in tables.canonical_allergies(allergy) or (allergy,):
        candidates.extend(tables.allergen_substitutes.get(key, ()))

    others = [other for other in user_allergies if other != allergy]
    kept = []
    for substitute in dict.fromkeys(candidates):
        substitute_l = substitute.lower()
        if any(other in substitute_l or readable_key(other) in substitute_l for other in others):
            continue
        kept.append(substitute)
    return kept


def _was_requested(ingredient: str, requested: list[str]) -> bool:
    ingredient_l = ingredient.lower()
    return any(item in ingredient_l or ingredient_l in item for item in requested)


def _fix_instructions(unexpected: list[tuple[str, str, list[str]]]) -> str:
    if not unexpected:
        return "No allergen violations found."

    lines = ["CRITICAL: The recipe contains allergens that the user is allergic to.", "", "Detected allergens:"]
    for ingredient, allergy, substitutes in unexpected:
        lines.append(f"  - {ingredient} contains {format_key_name(allergy)}")
        if substitutes:
            lines.append(f"    Suggested substitutes: {', '.join(substitutes)}")
    lines.extend([
        "",
        "Fix instructions:",
        "1. Remove all ingredients containing detected allergens",
        "2. Substitute with allergen-free alternatives (see suggestions above)",
        "3. Ensure the recipe remains functional and tasty after substitutions",
        "4. Update ingredient list and instructions accordingly",
    ])
    return "\n".join(lines)


def check_ingredient_allergies(
    ingredients: Iterable[Any],
    user_allergies: Any,
    requested_ingredients: Iterable[Any] = (),
    tables: RuleTables = DEFAULT_RULE_TABLES,
) -> ValidationResult:
    """Validate ingredients against the user's allergies.

    Args:
        ingredients: Recipe ingredient lines.
        user_allergies: Active allergies (list, comma string or flag mapping).
        requested_ingredients: Ingredients the user explicitly asked for.
        tables: Rule tables providing synonyms and substitutes.

    Returns:
        ValidationResult with one ``unexpected_allergen`` violation per detected
        (ingredient, allergen) pair that was not requested.
    """
    allergies = normalize_allergies(user_allergies)
    if not allergies:
        return validation_result([], "No allergies to check.")

    ingredient_lines = [line for line in (normalize_text(i) for i in ingredients) if line]
    if not ingredient_lines:
        return validation_result(
            [Violation(
                kind=ViolationKind.NO_INGREDIENTS,
                message="Recipe has no ingredients to validate",
                field="ingredients",
                fix_instruction="Add ingredients to the recipe",
            )],
            "Recipe must have ingredients",
        )

    requested = [item.lower() for item in (normalize_text(r) for r in requested_ingredients) if item]
    violations = []
    unexpected = []
    for ingredient, allergy in detect_allergens(ingredient_lines, allergies, tables):
        if _was_requested(ingredient, requested):
            continue
        substitutes = get_substitutes(allergy, allergies, tables)
        unexpected.append((ingredient, allergy, substitutes))
        if substitutes:
            fix = f"Remove '{ingredient}' or substitute with: {', '.join(substitutes)}"
        else:
            fix = f"Remove '{ingredient}' and use an allergen-free alternative"
        violations.append(Violation(
            kind=ViolationKind.UNEXPECTED_ALLERGEN,
            message=f"Ingredient '{ingredient}' contains allergen '{format_key_name(allergy)}' which the user is allergic to",
            field="ingredients",
            fix_instruction=fix,
            substitutes=tuple(substitutes),
        ))

    return validation_result(violations, _fix_instructions(unexpected))


def check_draft_allergies(draft: RecipeDraft, profile: UserProfile, context: ValidationContext) -> ValidationResult:
    """Validator adapter: draft ingredients against the profile's allergies."""
    guarded = guard_structure(draft, ValidatorKind.INGREDIENT_ALLERGY)
    if guarded:
        return guarded

    result = check_ingredient_allergies(
        draft.ingredients,
        sorted(profile.allergies),
        context.requested_ingredients,
        tables=context.tables,
    )
    return validation_result(tag(result.violations, ValidatorKind.INGREDIENT_ALLERGY), result.fix_instructions)
