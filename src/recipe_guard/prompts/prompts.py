"""System instructions and prompt builders for every generation call.

Writer instructions are assembled from a shared rules section plus a
task-specific section (generate, structure, modify, repair). Classifier and
context-analyzer instructions are fixed texts; their prompts are built from
the conversation inputs.
"""

from typing import Iterable

from recipe_guard.models.models import RecipeDraft, UserProfile, Violation
from recipe_guard.models.vocabulary import WARNING_MARKER
from recipe_guard.utils.normalizer import format_key_name


def format_profile(profile: UserProfile) -> str:
    """Render a profile as the bullet list the writer prompts embed."""
    allergies = ", ".join(format_key_name(a) for a in sorted(profile.allergies)) or "none"
    appliances = ", ".join(format_key_name(a) for a in sorted(profile.appliances)) or "none"
    preferences = profile.preferences or "none"
    return (
        f"- Allergies: {allergies}\n"
        f"- Available appliances: {appliances}\n"
        f"- Dietary preferences: {preferences}"
    )


def _get_rules_section(profile: UserProfile) -> str:
    """Rules every recipe must satisfy. The validators check each one after generation."""
    return f"""
## User Profile

{format_profile(profile)}

## Recipe Rules (MANDATORY - every recipe is checked programmatically)

1. **Allergens**: Never include an ingredient containing one of the user's allergens unless the user
   explicitly asked for it. When the user DID ask for it, the step that uses it (or one of the two steps
   before it) must contain a warning that starts with {WARNING_MARKER} and names the allergen, e.g.
   "{WARNING_MARKER} Warning: this step uses peanuts (nuts), which you are allergic to."
   A generic warning ("{WARNING_MARKER} Contains allergens") is NOT enough.
2. **Appliances**: Only use the available appliances listed above. A stove implies pans and pots.
3. **Metric units**: Grams, kilograms, millilitres, litres, centimetres and °C only. Teaspoons and
   tablespoons are fine. Never cups, ounces, pounds, pints, quarts, inches, sticks of butter or °F.
4. **Completeness**: Title, a one or two sentence description, the full ingredient list and
   step-by-step instructions. Every ingredient must be used in at least one step.
5. **Preferences**: Respect the dietary preferences and dislikes above.

## Output

Return ONLY a JSON object with:
- title: recipe name
- description: one or two sentences
- ingredients: list of ingredient lines with metric quantities
- instructions: list of steps, one step per entry, no numbering
"""


_TASK_SECTIONS = {
    "generate": """
You are a recipe writer. Create one complete, practical home-cooking recipe for the user's request.
Keep the dish the user asked for; adapt it to the profile instead of refusing.
""",
    "structure": """
You are a recipe editor. Turn the provided recipe text (pasted by the user or extracted from a web page)
into the JSON structure below. Keep the original dish, quantities and order of steps, converting units
to metric and adapting anything that breaks a rule. Do not invent a different recipe.
""",
    "modify": """
You are a recipe editor. Apply the user's requested change to the current recipe and return the full
updated recipe. Change only what the request needs; keep everything else as it is.
""",
    "repair": """
You are a recipe editor fixing rule violations found by automatic checks. Apply EVERY fix instruction
and return the full corrected recipe. Change only what the violations require.
""",
}


def get_writer_instructions(task: str, profile: UserProfile) -> str:
    """System instructions for a writer task ("generate", "structure", "modify" or "repair")."""
    if task not in _TASK_SECTIONS:
        raise ValueError(f"Unknown writer task: {task}")
    return f"{_TASK_SECTIONS[task].strip()}\n{_get_rules_section(profile)}"


def build_modification_prompt(draft: RecipeDraft, request: str) -> str:
    return f"Current recipe:\n{draft.to_prompt_text()}\n\nRequested change:\n{request}"


def build_repair_prompt(draft: RecipeDraft, violations: Iterable[Violation]) -> str:
    lines = []
    for index, violation in enumerate(violations, start=1):
        lines.append(f"{index}. [{violation.kind.value}] {violation.message}")
        if violation.fix_instruction:
            lines.append(f"   Fix: {violation.fix_instruction}")
        if violation.substitutes:
            lines.append(f"   Substitutes: {', '.join(violation.substitutes)}")
    return f"Current recipe:\n{draft.to_prompt_text()}\n\nViolations to fix:\n" + "\n".join(lines)


def get_answer_instructions(profile: UserProfile) -> str:
    return f"""
You are a friendly cooking assistant. Answer the user's question about cooking or about their current
recipe. Be concise and practical, use metric units, and keep the user's profile in mind:

{format_profile(profile)}

If the user asks what you can do: you turn recipe links, pasted recipes or dish ideas into recipes that
are checked against their allergies, appliances and preferences, and you can change the recipe on request.

Return ONLY a JSON object with an "answer" field containing Markdown text.
""".strip()


def build_answer_prompt(question: str, draft: RecipeDraft | None, history: str = "") -> str:
    parts = []
    if history:
        parts.append(f"Conversation history:\n{history}")
    if draft is not None:
        parts.append(f"Current recipe:\n{draft.to_prompt_text()}")
    parts.append(f"Question:\n{question}")
    return "\n\n".join(parts)


CLASSIFICATION_INSTRUCTIONS = """
You are an intent classifier for a recipe application. Classify the user's message into exactly one category:

1. **first_message_link**: FIRST message (no history, no recipe) containing a URL (http://, https://, www.)
   to a recipe the user wants imported.
2. **first_message_free_text**: FIRST message describing what the user wants to cook
   ("I want chicken fajitas", "Make me a pasta dish"). Not a link, not a complete recipe, not a question.
3. **first_message_complete_recipe**: FIRST message with a pasted full recipe: several lines with an
   ingredient list and steps.
4. **first_message_query**: FIRST message asking a general question ("What can you do?").
5. **question**: A recipe exists and the user asks about it without requesting changes
   ("How long does this take?", "What can I substitute?").
6. **modification**: A recipe exists and the user wants it changed ("add salt", "make it vegetarian").
   Action verbs: add, remove, change, reduce, increase, make, use, replace, swap.
7. **clarification**: The user needs more information, or answers a question, before anything can proceed.

**Rules:**
- No conversation history AND no recipe → must be a first_message_* category
- A recipe exists → must be question, modification or clarification
- URL in the message → first_message_link
- Very long message with ingredients and steps → first_message_complete_recipe

**Output Requirements:**
- intent: one of the 7 categories (exact match)
- confidence: 0.0 to 1.0, honest about uncertainty
- detected_url: the URL when intent is first_message_link, otherwise ""
- reasoning: one or two sentences
""".strip()


def build_classification_prompt(message: str, history: str, recipe_state: str) -> str:
    parts = []
    if history:
        parts.append(f"Conversation history:\n{history}")
    else:
        parts.append("This is the FIRST message in the conversation (no previous messages)")

    if recipe_state:
        parts.append(f"Current recipe state:\n{recipe_state}")
    else:
        parts.append("No recipe exists yet")

    parts.append(f"User message to classify:\n{message}")
    return "\n\n".join(parts)


CONTEXT_INSTRUCTIONS = """
You are a conversation context analyzer for a recipe application. Extract structured context metadata:

1. **is_first_message**: true ONLY when there are no previous messages.
2. **previous_topics**: key topics discussed so far ("recipe creation", "allergy concerns",
   "appliance compatibility"). Empty list when none.
3. **recent_changes**: recipe modifications made so far ("added salt", "removed dairy", "made vegetarian").
   Empty list when none.
4. **conversation_tone**: one of "friendly", "formal", "casual", "technical", "mixed". Default "friendly".
5. **greeting_needed**: true ONLY for first messages, so ongoing conversations are not greeted again.
""".strip()


def build_context_prompt(history: str) -> str:
    return f"""Analyze the following conversation history and provide context metadata:

Conversation History:
{history}

Determine:
1. Is this the first message?
2. What topics were discussed?
3. What recent changes were made to the recipe?
4. What is the conversation tone?
5. Is a greeting needed?"""
