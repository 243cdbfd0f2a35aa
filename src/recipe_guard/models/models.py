"""Data models for the extraction-and-repair pipeline.

Defines Pydantic models for the recipe draft, user profile, intents,
violations and pipeline results. Every domain model is frozen: validators and
the orchestrator treat them as immutable value snapshots, and each repair or
extraction produces a new instance.
"""

from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recipe_guard.models.vocabulary import DEFAULT_APPLIANCES, DEFAULT_RULE_TABLES
from recipe_guard.utils.normalizer import normalize_key, normalize_sequence, normalize_text


class IntentLabel(str, Enum):
    """What the user's current message asks the system to do."""

    FIRST_MESSAGE_LINK = "first_message_link"
    FIRST_MESSAGE_FREE_TEXT = "first_message_free_text"
    FIRST_MESSAGE_COMPLETE_RECIPE = "first_message_complete_recipe"
    FIRST_MESSAGE_QUERY = "first_message_query"
    QUESTION = "question"
    MODIFICATION = "modification"
    CLARIFICATION = "clarification"

    @property
    def is_first_message(self) -> bool:
        return self.value.startswith("first_message_")


FIRST_MESSAGE_INTENTS = frozenset(label for label in IntentLabel if label.is_first_message)
FOLLOW_UP_INTENTS = frozenset({IntentLabel.QUESTION, IntentLabel.MODIFICATION, IntentLabel.CLARIFICATION})


class ExtractionStrategy(str, Enum):
    """Extraction strategies in priority order."""

    JSON_LD = "json_ld"
    MICRODATA = "microdata"
    HEURISTIC = "heuristic"


class ValidatorKind(str, Enum):
    """Rule validators in the fixed order their violations are merged."""

    ALLERGEN_WARNING = "allergen_warning"
    INGREDIENT_ALLERGY = "ingredient_allergy"
    APPLIANCE = "appliance"
    METRIC_UNITS = "metric_units"
    COMPLETENESS = "completeness"
    PREFERENCES = "preferences"


class ViolationKind(str, Enum):
    MISSING_EMOJI = "missing_emoji"
    GENERIC_WARNING = "generic_warning"
    ALLERGEN_NOT_IN_INSTRUCTIONS = "allergen_not_in_instructions"
    UNEXPECTED_ALLERGEN = "unexpected_allergen"
    NO_INGREDIENTS = "no_ingredients"
    APPLIANCE_UNAVAILABLE = "appliance_unavailable"
    NON_METRIC_UNIT = "non_metric_unit"
    MISSING_FIELD = "missing_field"
    UNUSED_INGREDIENT = "unused_ingredient"
    PREFERENCE_CONFLICT = "preference_conflict"
    VALIDATOR_ERROR = "validator_error"


class RecipeDraft(BaseModel):
    """Candidate recipe produced by extraction, generation or repair.

    Absent fields default to empty; ingredient and instruction entries are
    reduced to trimmed plain strings with empty entries dropped.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    title: Annotated[str, Field(default="", description="Recipe name")]
    description: Annotated[str, Field(default="", description="One or two sentence summary of the dish")]
    ingredients: Annotated[
        tuple[str, ...], Field(default=(), description="Ingredient lines with metric quantities, in order")
    ]
    instructions: Annotated[
        tuple[str, ...], Field(default=(), description="Step-by-step instructions, one step per entry")
    ]

    @field_validator("title", "description", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return normalize_text(value)

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def coerce_lines(cls, value: Any) -> tuple[str, ...]:
        return tuple(normalize_sequence(value))

    @property
    def is_structurally_valid(self) -> bool:
        """Title present and at least one instruction step."""
        return bool(self.title) and bool(self.instructions)

    def to_prompt_text(self) -> str:
        """Render the draft as numbered plain text for prompts."""
        lines = [f"Title: {self.title}", f"Description: {self.description}", "", "Ingredients:"]
        lines.extend(f"- {ingredient}" for ingredient in self.ingredients)
        lines.append("")
        lines.append("Instructions:")
        lines.extend(f"{index}. {step}" for index, step in enumerate(self.instructions, start=1))
        return "\n".join(lines)


class UserProfile(BaseModel):
    """Read-only snapshot of a user's allergies, appliances and preferences.

    Accepts lists, comma-separated strings or ``{key: bool}`` flag mappings
    for allergies and appliances. Only ``True`` flags are active. Aliases such
    as "dairy" or "nuts" resolve to the closed vocabulary keys.
    """

    model_config = ConfigDict(frozen=True)

    allergies: Annotated[frozenset[str], Field(default_factory=frozenset)]
    appliances: Annotated[frozenset[str], Field(default_factory=frozenset)]
    preferences: Annotated[str, Field(default="")]

    @staticmethod
    def _active_keys(value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, dict):
            return [normalize_key(key) for key, flag in value.items() if flag is True]
        if isinstance(value, str):
            return [normalize_key(part) for part in value.split(",") if part.strip()]
        return [normalize_key(item) for item in value if normalize_text(item)]

    @field_validator("allergies", mode="before")
    @classmethod
    def parse_allergies(cls, value: Any) -> frozenset[str]:
        keys: set[str] = set()
        for key in cls._active_keys(value):
            resolved = DEFAULT_RULE_TABLES.canonical_allergies(key)
            if not resolved:
                raise ValueError(f"Unknown allergy: {key}")
            keys.update(resolved)
        return frozenset(keys)

    @field_validator("appliances", mode="before")
    @classmethod
    def parse_appliances(cls, value: Any) -> frozenset[str]:
        keys = set(cls._active_keys(value))
        unknown = keys - DEFAULT_RULE_TABLES.appliance_keys
        if unknown:
            raise ValueError(f"Unknown appliances: {', '.join(sorted(unknown))}")
        return frozenset(keys)

    @field_validator("preferences", mode="before")
    @classmethod
    def parse_preferences(cls, value: Any) -> str:
        return normalize_text(value)

    @classmethod
    def default(cls) -> "UserProfile":
        """Profile for a new user: no allergies, stove + oven + kettle."""
        return cls(allergies=frozenset(), appliances=DEFAULT_APPLIANCES, preferences="")

    def has_allergy(self, key: str) -> bool:
        return normalize_key(key) in self.allergies

    def has_appliance(self, key: str) -> bool:
        return normalize_key(key) in self.appliances


class Intent(BaseModel):
    """Classified intent of the current message."""

    model_config = ConfigDict(frozen=True)

    label: IntentLabel
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] = 0.8
    detected_url: str = ""
    reasoning: str = "Classification completed"


class ConversationContext(BaseModel):
    """Derived context of the conversation so far."""

    model_config = ConfigDict(frozen=True)

    is_first_message: bool = False
    previous_topics: tuple[str, ...] = ()
    recent_changes: tuple[str, ...] = ()
    tone: str = "friendly"
    greeting_needed: bool = False


class Violation(BaseModel):
    """Report that a candidate recipe fails one specific rule."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    message: str
    field: Optional[str] = None
    fix_instruction: str = ""
    validator: Optional[ValidatorKind] = None
    substitutes: tuple[str, ...] = ()


class ValidationResult(BaseModel):
    """Outcome of one validator pass. ``valid`` is derived from ``violations``."""

    model_config = ConfigDict(frozen=True)

    valid: bool = True
    violations: tuple[Violation, ...] = ()
    fix_instructions: str = ""

    @model_validator(mode="before")
    @classmethod
    def derive_valid(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {**data, "valid": not data.get("violations")}
        return data

    @property
    def has_violations(self) -> bool:
        return bool(self.violations)


class ExtractionResult(BaseModel):
    """Recipe skeleton pulled from a web page, tagged with the winning strategy."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str = ""
    ingredients: tuple[str, ...] = ()
    instructions: tuple[str, ...] = ()
    strategy: ExtractionStrategy
    source_url: Optional[str] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return normalize_text(value)

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def coerce_lines(cls, value: Any) -> tuple[str, ...]:
        return tuple(normalize_sequence(value))

    @property
    def is_usable(self) -> bool:
        """Title plus at least one ingredient."""
        return bool(self.title) and bool(self.ingredients)

    def to_draft(self) -> RecipeDraft:
        return RecipeDraft(
            title=self.title,
            description=self.description,
            ingredients=self.ingredients,
            instructions=self.instructions,
        )


class RepairOutcome(BaseModel):
    """Result of the validate/repair loop."""

    model_config = ConfigDict(frozen=True)

    draft: RecipeDraft
    violations: tuple[Violation, ...] = ()
    iterations: Annotated[int, Field(ge=0)] = 0

    @property
    def converged(self) -> bool:
        return not self.violations


class PipelineResult(BaseModel):
    """What the caller receives for one conversation turn."""

    model_config = ConfigDict(frozen=True)

    recipe: Optional[RecipeDraft] = None
    violations: tuple[Violation, ...] = ()
    message: str = ""
    intent: Intent
    context: ConversationContext = Field(default_factory=ConversationContext)
    repair_iterations: int = 0

    @property
    def is_compliant(self) -> bool:
        return self.recipe is not None and not self.violations


# Output schemas for the text-generation service


class IntentResponse(BaseModel):
    """Schema the classifier asks the service to fill."""

    intent: str = Field(description="One of the seven intent labels, exact match")
    confidence: float = Field(description="0.0 to 1.0")
    detected_url: str = Field(default="", description="URL when intent is first_message_link, else empty")
    reasoning: str = Field(description="One or two sentences explaining the choice")


class ContextResponse(BaseModel):
    """Schema the context analyzer asks the service to fill."""

    is_first_message: bool
    previous_topics: List[str]
    recent_changes: List[str]
    conversation_tone: str
    greeting_needed: bool


class AnswerResponse(BaseModel):
    """Schema for general questions about cooking or the current recipe."""

    answer: str = Field(description="Markdown-formatted answer for the user")


class RecipeSchema(BaseModel):
    """Schema for generation, structuring, modification and repair calls."""

    title: str = Field(description="Recipe name")
    description: str = Field(description="One or two sentence summary of the dish")
    ingredients: List[str] = Field(description="Ingredient lines with metric quantities, in order")
    instructions: List[str] = Field(description="Step-by-step instructions, one step per entry")
