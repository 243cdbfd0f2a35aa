"""Preference compliance checker.

Parses the free-text preferences into diets ("vegetarian", "gluten free")
and dislikes ("no mushrooms", "I hate coriander and olives"), then reports
each ingredient that conflicts with one of them.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable

from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables
from recipe_guard.utils.normalizer import normalize_text, singular
from recipe_guard.validators.base import ValidationContext, guard_structure, tag, validation_result

_DISLIKE = re.compile(
    r"\b(?:no|avoid|avoiding|without|don't like|dont like|do not like|dislike|dislikes|hate|hates|never)\s+([^.;!?\n]+)",
    re.IGNORECASE,
)
_SPLIT = re.compile(r",|/|\band\b|\bor\b|\bnor\b", re.IGNORECASE)
_LEADING = re.compile(r"^(?:any|the|a|an|too much|much|eating|to eat)\s+", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedPreferences:
    diets: tuple[str, ...] = ()
    dislikes: tuple[str, ...] = ()


def parse_preferences(preferences: str, tables: RuleTables = DEFAULT_RULE_TABLES) -> ParsedPreferences:
    """Extract known diets and disliked items from free text."""
    text = normalize_text(preferences).lower()
    if not text:
        return ParsedPreferences()

    diets = []
    for alias, diet in tables.diet_aliases.items():
        if re.search(rf"(?<![\w-]){re.escape(alias)}(?![\w-])", text) and diet not in diets:
            diets.append(diet)

    dislikes = []
    for match in _DISLIKE.finditer(text):
        for part in _SPLIT.split(match.group(1)):
            item = _LEADING.sub("", part.strip()).strip()
            if not item or len(item.split()) > 3 or item in tables.diet_aliases:
                continue
            if item not in dislikes:
                dislikes.append(item)
    return ParsedPreferences(diets=tuple(diets), dislikes=tuple(dislikes))


def _strip_exempt(ingredient_l: str, diet: str, tables: RuleTables) -> str:
    text = ingredient_l
    for phrase in tables.diet_exempt_phrases:
        if phrase in text:
            kept = " ".join(phrase.split()[:-1])
            text = text.replace(phrase, f" {kept} ")
    for qualifier, diets in tables.diet_exempt_qualifiers.items():
        if diet in diets:
            text = re.sub(rf"{re.escape(qualifier)}\s+[\w-]+", " ", text)
    return text


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(singular(term))}(?:s|es)?\b", re.IGNORECASE)


def validate_preferences(
    ingredients: Iterable[Any],
    preferences: str,
    tables: RuleTables = DEFAULT_RULE_TABLES,
) -> ValidationResult:
    """Report ingredients conflicting with the user's diets or dislikes."""
    parsed = parse_preferences(preferences, tables)
    if not parsed.diets and not parsed.dislikes:
        return validation_result([], "No preferences to check.")

    violations = []
    for ingredient in (normalize_text(i) for i in ingredients):
        ingredient_l = ingredient.lower()

        for diet in parsed.diets:
            text = _strip_exempt(ingredient_l, diet, tables)
            hits = [term for term in tables.diet_restrictions.get(diet, ()) if _term_pattern(term).search(text)]
            if hits:
                violations.append(Violation(
                    kind=ViolationKind.PREFERENCE_CONFLICT,
                    message=f"Ingredient '{ingredient}' is not {diet} ({hits[0]})",
                    field="ingredients",
                    fix_instruction=f"Replace '{ingredient}' with a {diet} alternative and update the steps that use it",
                ))

        for item in parsed.dislikes:
            if _term_pattern(item).search(ingredient_l):
                violations.append(Violation(
                    kind=ViolationKind.PREFERENCE_CONFLICT,
                    message=f"Ingredient '{ingredient}' contains {item}, which the user does not want",
                    field="ingredients",
                    fix_instruction=f"Remove '{ingredient}' or replace it with something other than {item}",
                ))

    if not violations:
        return validation_result([], "Recipe matches the user's preferences.")
    return validation_result(violations)


def check_preferences(draft: RecipeDraft, profile: UserProfile, context: ValidationContext) -> ValidationResult:
    """Validator adapter: draft ingredients against the profile's preferences."""
    guarded = guard_structure(draft, ValidatorKind.PREFERENCES)
    if guarded:
        return guarded

    result = validate_preferences(draft.ingredients, profile.preferences, tables=context.tables)
    return validation_result(tag(result.violations, ValidatorKind.PREFERENCES), result.fix_instructions)
