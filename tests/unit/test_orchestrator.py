"""Unit tests for the validation and repair loop."""

import threading
from types import MappingProxyType

import pytest

from recipe_guard.agents.orchestrator import MAX_REPAIR_ITERATIONS, RepairOrchestrator, merge_violations
from recipe_guard.models.models import RecipeDraft, UserProfile, ValidationResult, ValidatorKind, Violation, ViolationKind
from recipe_guard.tools.recipe_writer import RecipeWriter
from recipe_guard.utils.errors import GenerationError
from recipe_guard.validators.base import ValidationContext
from recipe_guard.validators.registry import VALIDATORS


def _as_json(draft):
    return {
        "title": draft.title,
        "description": draft.description,
        "ingredients": list(draft.ingredients),
        "instructions": list(draft.instructions),
    }


@pytest.fixture
def imperial_recipe(clean_recipe):
    return clean_recipe.model_copy(update={"ingredients": ("2 cups spaghetti",) + clean_recipe.ingredients[1:]})


def _violation(kind, message):
    return Violation(kind=kind, message=message)


class TestMergeViolations:
    def test_order_kept_and_duplicates_dropped(self):
        a = _violation(ViolationKind.MISSING_EMOJI, "a")
        b = _violation(ViolationKind.NON_METRIC_UNIT, "b")
        c = _violation(ViolationKind.MISSING_FIELD, "c")

        assert merge_violations([(a, b), (), (b, c)]) == (a, b, c)

    def test_same_problem_from_two_validators_kept_once(self):
        first = Violation(kind=ViolationKind.MISSING_FIELD, message="Recipe has no title", field="title", validator=ValidatorKind.APPLIANCE)
        second = first.model_copy(update={"validator": ValidatorKind.COMPLETENESS})

        assert merge_violations([(first,), (second,)]) == (first,)


class TestValidate:
    @pytest.mark.asyncio
    async def test_registry_order(self, make_generator, default_profile, clean_recipe):
        """Violations arrive in validator order regardless of completion order."""

        def slow_first(draft, profile, context):
            threading.Event().wait(0.05)
            return ValidationResult(violations=(_violation(ViolationKind.MISSING_EMOJI, "first"),))

        def fast_second(draft, profile, context):
            return ValidationResult(violations=(_violation(ViolationKind.NON_METRIC_UNIT, "second"),))

        validators = MappingProxyType({
            ValidatorKind.ALLERGEN_WARNING: slow_first,
            ValidatorKind.METRIC_UNITS: fast_second,
        })
        orchestrator = RepairOrchestrator(RecipeWriter(make_generator()), validators=validators)

        violations = await orchestrator.validate(clean_recipe, default_profile, ValidationContext())

        assert [v.message for v in violations] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_crashing_validator_isolated(self, make_generator, default_profile, imperial_recipe):
        def crashing(draft, profile, context):
            raise KeyError("boom")

        validators = MappingProxyType({
            ValidatorKind.APPLIANCE: crashing,
            ValidatorKind.METRIC_UNITS: VALIDATORS[ValidatorKind.METRIC_UNITS],
        })
        orchestrator = RepairOrchestrator(RecipeWriter(make_generator()), validators=validators)

        violations = await orchestrator.validate(imperial_recipe, default_profile, ValidationContext())

        assert [v.kind for v in violations] == [ViolationKind.VALIDATOR_ERROR, ViolationKind.NON_METRIC_UNIT]
        assert violations[0].validator == ValidatorKind.APPLIANCE
        assert "Validator 'appliance' failed" in violations[0].message

    @pytest.mark.asyncio
    async def test_structural_violations_reported_once(self, make_generator, default_profile):
        draft = RecipeDraft(title="", description="Soup.", ingredients=["1 l stock"], instructions=[])
        orchestrator = RepairOrchestrator(RecipeWriter(make_generator()))

        violations = await orchestrator.validate(draft, default_profile, ValidationContext())

        messages = [v.message for v in violations]
        assert messages.count("Recipe has no title") == 1
        assert messages.count("Recipe has no instructions") == 1

    @pytest.mark.asyncio
    async def test_clean_recipe_passes_all_validators(self, make_generator, default_profile, clean_recipe):
        orchestrator = RepairOrchestrator(RecipeWriter(make_generator()))
        assert await orchestrator.validate(clean_recipe, default_profile, ValidationContext()) == ()


class TestRun:
    @pytest.mark.asyncio
    async def test_clean_draft_needs_no_repair(self, make_generator, default_profile, clean_recipe):
        generator = make_generator()

        outcome = await RepairOrchestrator(RecipeWriter(generator)).run(clean_recipe, default_profile)

        assert outcome.draft == clean_recipe
        assert outcome.converged
        assert outcome.iterations == 0
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_single_repair(self, make_generator, default_profile, clean_recipe, imperial_recipe):
        generator = make_generator({"RecipeSchema": [_as_json(clean_recipe)]})

        outcome = await RepairOrchestrator(RecipeWriter(generator)).run(imperial_recipe, default_profile)

        assert outcome.converged
        assert outcome.iterations == 1
        assert outcome.draft == clean_recipe
        assert "[non_metric_unit]" in generator.calls[0]["prompt"]
        assert "2 cups spaghetti" in generator.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_budget_exhausted_returns_residual_violations(self, make_generator, default_profile, imperial_recipe):
        generator = make_generator({"RecipeSchema": [_as_json(imperial_recipe)]})

        outcome = await RepairOrchestrator(RecipeWriter(generator)).run(imperial_recipe, default_profile)

        assert outcome.iterations == MAX_REPAIR_ITERATIONS
        assert len(generator.calls_for("RecipeSchema")) == MAX_REPAIR_ITERATIONS
        assert [v.kind for v in outcome.violations] == [ViolationKind.NON_METRIC_UNIT]
        assert not outcome.converged

    @pytest.mark.asyncio
    async def test_custom_budget(self, make_generator, default_profile, imperial_recipe):
        generator = make_generator({"RecipeSchema": [_as_json(imperial_recipe)]})

        outcome = await RepairOrchestrator(RecipeWriter(generator), max_repairs=1).run(imperial_recipe, default_profile)

        assert outcome.iterations == 1

    @pytest.mark.asyncio
    async def test_generation_error_keeps_last_draft(self, make_generator, default_profile, imperial_recipe):
        generator = make_generator({"RecipeSchema": [GenerationError("down")]})

        outcome = await RepairOrchestrator(RecipeWriter(generator)).run(imperial_recipe, default_profile)

        assert outcome.draft == imperial_recipe
        assert outcome.iterations == 0
        assert outcome.violations

    @pytest.mark.asyncio
    async def test_requested_ingredients_reach_validators(self, make_generator):
        profile = UserProfile(allergies=["peanut"])
        draft_json = {
            "title": "Peanut Noodles",
            "description": "Quick noodles.",
            "ingredients": ["200 g rice noodles", "50 g peanuts"],
            "instructions": ["Cook the rice noodles on the stove.", "Top with the peanuts."],
        }
        draft = RecipeDraft.model_validate(draft_json)
        orchestrator = RepairOrchestrator(RecipeWriter(make_generator()), max_repairs=0)

        outcome = await orchestrator.run(draft, profile, requested_ingredients=["peanuts"])

        assert [v.kind for v in outcome.violations] == [ViolationKind.MISSING_EMOJI]
