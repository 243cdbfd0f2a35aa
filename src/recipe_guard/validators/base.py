"""Shared helpers for the rule validators.

Every validator is a pure function ``(draft, profile, context) -> ValidationResult``.
None of them mutate their inputs, call each other, or raise for bad drafts:
a draft without a title or without instructions yields a structural
``missing_field`` violation instead.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from recipe_guard.models.models import (
    RecipeDraft,
    UserProfile,
    ValidationResult,
    ValidatorKind,
    Violation,
    ViolationKind,
)
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables


@dataclass(frozen=True)
class ValidationContext:
    """Extra arguments shared by every validator in one pass."""

    requested_ingredients: tuple[str, ...] = ()
    tables: RuleTables = field(default=DEFAULT_RULE_TABLES)


Validator = Callable[[RecipeDraft, UserProfile, ValidationContext], ValidationResult]


def validation_result(violations: Iterable[Violation], fix_instructions: Optional[str] = None) -> ValidationResult:
    """Build a result; fix text defaults to the joined per-violation instructions."""
    violations = tuple(violations)
    if fix_instructions is None:
        fix_instructions = "\n".join(v.fix_instruction for v in violations if v.fix_instruction)
    return ValidationResult(violations=violations, fix_instructions=fix_instructions)


def structural_violations(draft: RecipeDraft, validator: ValidatorKind) -> list[Violation]:
    """Violations for a draft missing its title or instructions (empty list if fine)."""
    violations = []
    if not draft.title:
        violations.append(Violation(
            kind=ViolationKind.MISSING_FIELD,
            message="Recipe has no title",
            field="title",
            fix_instruction="Add a short descriptive title to the recipe",
            validator=validator,
        ))
    if not draft.instructions:
        violations.append(Violation(
            kind=ViolationKind.MISSING_FIELD,
            message="Recipe has no instructions",
            field="instructions",
            fix_instruction="Add step-by-step cooking instructions",
            validator=validator,
        ))
    return violations


def guard_structure(draft: RecipeDraft, validator: ValidatorKind) -> Optional[ValidationResult]:
    """Fail-fast result for structurally invalid drafts, None when the draft can be checked."""
    violations = structural_violations(draft, validator)
    if violations:
        return validation_result(violations)
    return None


def tag(violations: Iterable[Violation], validator: ValidatorKind) -> list[Violation]:
    """Stamp violations with the validator that produced them."""
    return [v if v.validator == validator else v.model_copy(update={"validator": validator}) for v in violations]
