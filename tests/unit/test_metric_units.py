"""Unit tests for the metric unit validator."""

import pytest

from recipe_guard.models.models import RecipeDraft, ValidatorKind, ViolationKind
from recipe_guard.validators.base import ValidationContext
from recipe_guard.validators.metric_units import check_metric_units, find_non_metric, validate_metric_units


class TestFindNonMetric:
    @pytest.mark.parametrize(
        "text,matched,hint",
        [
            ("2 cups flour", "2 cups", "1 cup ≈ 240 ml"),
            ("8 oz cream cheese", "8 oz", "1 oz ≈ 28 g"),
            ("1 fl oz milk", "1 fl oz", "1 fl oz ≈ 30 ml"),
            ("2 lbs potatoes", "2 lbs", "1 lb ≈ 454 g"),
            ("a stick of butter", "a stick of butter", "1 stick of butter ≈ 113 g"),
            ("Cut into 1-inch cubes", "1-inch", "1 inch ≈ 2.5 cm"),
        ],
    )
    def test_imperial_quantities(self, text, matched, hint):
        assert find_non_metric(text) == [(matched, hint)]

    def test_fahrenheit(self):
        assert find_non_metric("Bake at 350°F for 20 minutes.") == [("350°F", "350°F ≈ 177°C")]

    @pytest.mark.parametrize(
        "text",
        ["200 g flour", "1 tbsp olive oil", "½ tsp salt", "Bake at 180°C", "500 ml stock", "1 lemon", "a cupboard"],
    )
    def test_metric_text_passes(self, text):
        assert find_non_metric(text) == []


class TestValidateMetricUnits:
    def test_ingredients_and_steps_reported_separately(self):
        result = validate_metric_units(["2 cups flour", "200 g sugar"], ["Bake at 350°F for 20 minutes."])

        assert [v.kind for v in result.violations] == [ViolationKind.NON_METRIC_UNIT] * 2
        assert result.violations[0].message == "Ingredient 1 uses non-metric units: '2 cups'"
        assert result.violations[0].field == "ingredients"
        assert result.violations[1].message == "Step 1 uses non-metric units: '350°F'"
        assert result.violations[1].field == "instructions"

    def test_all_metric(self):
        result = validate_metric_units(["200 g sugar"], ["Bake at 180°C."])
        assert result.valid
        assert result.fix_instructions == "All quantities are metric."


class TestCheckMetricUnits:
    def test_clean_recipe(self, clean_recipe, default_profile):
        assert check_metric_units(clean_recipe, default_profile, ValidationContext()).valid

    def test_adapter_tags_violations(self, default_profile):
        draft = RecipeDraft(title="Cake", ingredients=["1 cup sugar"], instructions=["Mix."])

        result = check_metric_units(draft, default_profile, ValidationContext())

        assert result.violations[0].validator == ValidatorKind.METRIC_UNITS
