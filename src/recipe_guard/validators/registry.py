"""Validator lookup table.

Insertion order is the merge order of violations.
"""

from types import MappingProxyType
from typing import Mapping

from recipe_guard.models.models import ValidatorKind
from recipe_guard.validators.allergen_warning import check_allergen_warnings
from recipe_guard.validators.appliance import check_appliances
from recipe_guard.validators.base import Validator
from recipe_guard.validators.completeness import check_completeness
from recipe_guard.validators.ingredient_allergy import check_draft_allergies
from recipe_guard.validators.metric_units import check_metric_units
from recipe_guard.validators.preferences import check_preferences

VALIDATORS: Mapping[ValidatorKind, Validator] = MappingProxyType({
    ValidatorKind.ALLERGEN_WARNING: check_allergen_warnings,
    ValidatorKind.INGREDIENT_ALLERGY: check_draft_allergies,
    ValidatorKind.APPLIANCE: check_appliances,
    ValidatorKind.METRIC_UNITS: check_metric_units,
    ValidatorKind.COMPLETENESS: check_completeness,
    ValidatorKind.PREFERENCES: check_preferences,
})
