"""Canonical forms for free-form strings.

Every comparison the pipeline makes (allergy keys, ingredient names, URLs,
extracted text) goes through these helpers so that "Tree Nuts", "tree-nuts"
and "tree_nuts" compare equal and "example.com/recipe" becomes a fetchable URL.
"""

import html
import re
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from recipe_guard.utils.errors import InvalidInputError

URL_PATTERN = re.compile(r"(https?://[^\s]+|www\.[^\s]+)", re.IGNORECASE)

_FRACTIONS = "½⅓⅔¼¾⅕⅖⅗⅘⅙⅚⅛⅜⅝⅞"
_QUANTITY = re.compile(rf"^(?:about|approx\.?|~)?\s*(?:[\d{_FRACTIONS}]+(?:[.,/]\d+)?(?:\s*[-–]\s*[\d{_FRACTIONS}]+(?:[.,/]\d+)?)?|a|an|one|two|three|half)\b\s*", re.IGNORECASE)
_UNIT = re.compile(
    r"^(?:kg|g|grams?|mg|ml|millilitres?|milliliters?|cl|dl|l|litres?|liters?|tbsp|tablespoons?|tsp|teaspoons?"
    r"|cups?|oz|ounces?|lbs?|pounds?|pinch(?:es)?|handfuls?|cloves?|cans?|tins?|jars?|packs?|packets?"
    r"|bunch(?:es)?|slices?|sprigs?|sticks?|pieces?|dash(?:es)?|large|medium|small)\b\.?\s*",
    re.IGNORECASE,
)
_ATTACHED_UNIT = re.compile(r"^([\d.,/]+)(kg|g|ml|cl|dl|l|oz|lb)\b\s*", re.IGNORECASE)

# Core-name words too generic to identify an ingredient on their own
GENERIC_INGREDIENT_WORDS = frozenset({
    "fresh", "dried", "ground", "chopped", "sliced", "diced", "minced", "large", "small", "medium",
    "plain", "whole", "extra", "virgin", "light", "dark", "free", "range", "optional", "taste", "to",
})


def normalize_text(value: Any) -> str:
    """Plain, trimmed, whitespace-collapsed string. None becomes ""."""
    if value is None:
        return ""
    text = html.unescape(str(value))
    return " ".join(text.split())


def normalize_sequence(value: Any) -> list[str]:
    """Reduce a string or iterable of values to a list of non-empty plain strings.

    A single string is wrapped as a one-element list; None becomes [].
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    normalized = [normalize_text(item) for item in items if item is not None]
    return [item for item in normalized if item]


def normalize_key(value: Any) -> str:
    """Canonical vocabulary key: "Tree Nuts" / "tree-nuts" -> "tree_nuts"."""
    text = normalize_text(value).lower()
    text = re.sub(r"[\s\-]+", "_", text)
    text = re.sub(r"[^\w]", "", text)
    return text.strip("_")


def format_key_name(key: str) -> str:
    """Human-readable name for a key: "tree_nuts" -> "Tree Nuts"."""
    return " ".join(part.capitalize() for part in str(key).replace("_", " ").split())


def readable_key(key: str) -> str:
    """Lowercase readable form used for text matching: "tree_nuts" -> "tree nuts"."""
    return str(key).replace("_", " ").strip().lower()


def normalize_url(url: Optional[str]) -> str:
    """Return a fetchable URL, adding https:// when no scheme is present.

    Raises:
        InvalidInputError: If the URL is blank or has no usable host.
    """
    candidate = normalize_text(url)
    if not candidate:
        raise InvalidInputError("URL cannot be blank")

    if not re.match(r"^https?://", candidate, re.IGNORECASE):
        candidate = f"https://{candidate}"

    parsed = urlparse(candidate)
    if not parsed.netloc or "." not in parsed.netloc:
        raise InvalidInputError(f"Malformed URL: {url}")
    return candidate


def extract_first_url(message: Optional[str]) -> str:
    """First http(s):// or www. URL in the message by position, verbatim; "" if none."""
    if not message:
        return ""
    match = URL_PATTERN.search(message)
    return match.group(0) if match else ""


def singular(word: str) -> str:
    """Naive singular form, good enough for ingredient head nouns."""
    word = word.lower()
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith(("oes", "ches", "shes", "sses")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss") and len(word) > 3:
        return word[:-1]
    return word


def ingredient_core_name(ingredient: str) -> str:
    """Strip quantity, unit and preparation notes from an ingredient line.

    "200g plain flour, sifted" -> "plain flour"
    "2 cloves garlic (minced)" -> "garlic"
    """
    text = normalize_text(ingredient).lower()
    text = re.sub(r"\([^)]*\)", " ", text)
    text = text.split(",")[0].strip()

    previous = None
    while text and text != previous:
        previous = text
        text = _ATTACHED_UNIT.sub("", text)
        text = _QUANTITY.sub("", text)
        text = _UNIT.sub("", text)
        text = re.sub(r"^of\s+", "", text)
    return " ".join(text.split())


def head_noun(ingredient: str) -> str:
    """Last word of the ingredient core name ("plain flour" -> "flour")."""
    core = ingredient_core_name(ingredient)
    words = re.findall(r"[a-zà-ÿ\-]+", core)
    return words[-1] if words else ""


def significant_words(core_name: str) -> set[str]:
    """Singular words of a core name that identify the ingredient."""
    words = {singular(word) for word in re.findall(r"[a-zà-ÿ]+", core_name.lower())}
    return {word for word in words if len(word) > 2 and word not in GENERIC_INGREDIENT_WORDS}


def find_requested_ingredients(message: Optional[str], ingredients: Iterable[str]) -> list[str]:
    """Ingredients the user explicitly named in their message.

    An ingredient counts as requested when its core name, or any significant
    word of it (singular/plural-insensitive), appears in the message: "peanut
    noodles" requests "peanut butter" as well as "rice noodles". Returns core
    names in recipe order, deduplicated.
    """
    if not message:
        return []
    message_lower = message.lower()
    message_words = {singular(word) for word in re.findall(r"[a-zà-ÿ]+", message_lower)}

    requested: list[str] = []
    for ingredient in ingredients:
        core = ingredient_core_name(ingredient)
        if not core:
            continue
        if core in message_lower or significant_words(core) & message_words:
            if core not in requested:
                requested.append(core)
    return requested
