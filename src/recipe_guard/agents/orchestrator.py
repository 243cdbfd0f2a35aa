"""Validation and bounded repair loop.

One pass runs every registered validator concurrently (each in a worker
thread), waits for all of them and merges their violations in registry
order. While violations remain and the repair budget allows, the writer
repairs the draft and the new draft is validated again.
"""

import asyncio
import uuid
from typing import Iterable, Mapping, Optional

from recipe_guard.models.models import (
    RecipeDraft,
    RepairOutcome,
    UserProfile,
    ValidatorKind,
    Violation,
    ViolationKind,
)
from recipe_guard.models.vocabulary import DEFAULT_RULE_TABLES, RuleTables
from recipe_guard.tools.recipe_writer import RecipeWriter
from recipe_guard.utils.errors import GenerationError, ValidatorError
from recipe_guard.utils.logger import logger
from recipe_guard.validators.base import ValidationContext, Validator
from recipe_guard.validators.registry import VALIDATORS

MAX_REPAIR_ITERATIONS = 3


def merge_violations(results: Iterable[Iterable[Violation]]) -> tuple[Violation, ...]:
    """Concatenate in the given order, dropping duplicates.

    Two violations are duplicates when they describe the same problem, whichever
    validator reported them. Structural violations (no title, no instructions)
    come from every validator and are kept once, under the first reporter.
    """
    merged: list[Violation] = []
    seen: set[tuple] = set()
    for violations in results:
        for violation in violations:
            key = (violation.kind, violation.field, violation.message, violation.fix_instruction, violation.substitutes)
            if key in seen:
                continue
            seen.add(key)
            merged.append(violation)
    return tuple(merged)


def validator_error_violation(kind: ValidatorKind, error: BaseException) -> Violation:
    wrapped = ValidatorError(kind.value, error)
    return Violation(
        kind=ViolationKind.VALIDATOR_ERROR,
        message=str(wrapped),
        field=None,
        fix_instruction="",
        validator=kind,
    )


class RepairOrchestrator:
    """Runs validators and drives the repair loop."""

    def __init__(
        self,
        writer: RecipeWriter,
        validators: Mapping[ValidatorKind, Validator] = VALIDATORS,
        tables: RuleTables = DEFAULT_RULE_TABLES,
        max_repairs: int = MAX_REPAIR_ITERATIONS,
    ) -> None:
        self.writer = writer
        self.validators = validators
        self.tables = tables
        self.max_repairs = max_repairs

    async def validate(
        self,
        draft: RecipeDraft,
        profile: UserProfile,
        context: ValidationContext,
        run_id: Optional[str] = None,
    ) -> tuple[Violation, ...]:
        """One validation pass: all validators concurrently, merged in registry order."""
        kinds = list(self.validators)
        results = await asyncio.gather(
            *(asyncio.to_thread(self.validators[kind], draft, profile, context) for kind in kinds),
            return_exceptions=True,
        )

        per_validator: list[tuple[Violation, ...]] = []
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    f"Validator {kind.value} raised: {result}",
                    extra={"run_id": run_id, "validator": kind.value},
                )
                per_validator.append((validator_error_violation(kind, result),))
            else:
                per_validator.append(result.violations)
        return merge_violations(per_validator)

    async def run(
        self,
        draft: RecipeDraft,
        profile: UserProfile,
        requested_ingredients: Iterable[str] = (),
        run_id: Optional[str] = None,
    ) -> RepairOutcome:
        """Validate and repair ``draft`` until it is clean or the budget is spent.

        Returns the last validated draft with its residual violations. A repair
        that fails with GenerationError ends the loop early.
        """
        run_id = run_id or uuid.uuid4().hex[:8]
        context = ValidationContext(requested_ingredients=tuple(requested_ingredients), tables=self.tables)

        iterations = 0
        violations = await self.validate(draft, profile, context, run_id)

        while violations and iterations < self.max_repairs:
            logger.info(
                f"Repairing {len(violations)} violation(s)",
                extra={"run_id": run_id, "iteration": iterations + 1},
            )
            try:
                repaired = await self.writer.repair(draft, violations, profile)
            except GenerationError as e:
                logger.warning(f"Repair failed, keeping last validated draft: {e}", extra={"run_id": run_id})
                break

            iterations += 1
            draft = repaired
            violations = await self.validate(draft, profile, context, run_id)

        if violations:
            logger.warning(
                f"{len(violations)} violation(s) remain after {iterations} repair(s)",
                extra={"run_id": run_id, "iteration": iterations},
            )
        else:
            logger.info(f"Recipe compliant after {iterations} repair(s)", extra={"run_id": run_id})
        return RepairOutcome(draft=draft, violations=violations, iterations=iterations)
