"""Structured recipe extraction from web pages.

Three strategies are tried in a fixed order, first usable result wins:

1. json_ld: schema.org Recipe objects in ``<script type="application/ld+json">``
2. microdata: ``itemscope`` elements whose ``itemtype`` ends in Recipe
3. heuristic: first ``<h1>`` plus ingredient/instruction labelled containers

A result is usable when it has a title and at least one ingredient.

RecipeLinkExtractor wraps the chain with URL normalization, fetching and
charset decoding.
"""

import json
import re
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from bs4 import BeautifulSoup, Tag

from recipe_guard.models.models import ExtractionResult, ExtractionStrategy
from recipe_guard.tools.fetcher import Fetcher, PageFetcher
from recipe_guard.utils.errors import ExtractionError
from recipe_guard.utils.logger import logger
from recipe_guard.utils.normalizer import normalize_text, normalize_url

_INGREDIENT_LABEL = re.compile(r"ingredient", re.IGNORECASE)
_INSTRUCTION_LABEL = re.compile(r"instruction|direction|method|steps", re.IGNORECASE)
_DESCRIPTION_LABEL = re.compile(r"description|summary|intro", re.IGNORECASE)
_META_CHARSET = re.compile(rb"<meta[^>]+charset=[\"']?([\w\-]+)", re.IGNORECASE)

Strategy = Callable[[BeautifulSoup], Optional[dict]]


# ============================================================================
# Structured value helpers
# ============================================================================


def _entry_text(entry: Any) -> str:
    """Text of a string entry, or of the first of text / name / @value on an object."""
    if isinstance(entry, dict):
        for key in ("text", "name", "@value"):
            if entry.get(key):
                return normalize_text(entry[key])
        return ""
    return normalize_text(entry)


def extract_ingredients_from_structured(data: Any) -> list[str]:
    """Ingredient lines from a string, a list of strings or a list of objects."""
    if data is None:
        return []
    if not isinstance(data, list):
        data = [data]
    return [text for text in (_entry_text(entry) for entry in data) if text]


def extract_instructions_from_structured(data: Any) -> list[str]:
    """Instruction steps, flattening HowToSection objects through itemListElement."""
    if data is None:
        return []
    if not isinstance(data, list):
        data = [data]

    steps: list[str] = []
    for entry in data:
        if isinstance(entry, dict) and "itemListElement" in entry:
            steps.extend(extract_instructions_from_structured(entry["itemListElement"]))
            continue
        text = _entry_text(entry)
        if text:
            steps.append(text)
    return steps


def _is_recipe_type(value: Any) -> bool:
    types = value if isinstance(value, list) else [value]
    return any(str(t).rstrip("/").rsplit("/", 1)[-1].lower() == "recipe" for t in types if t)


def _find_recipe_object(data: Any) -> Optional[dict]:
    """First Recipe object in a JSON-LD document (object, array or @graph)."""
    candidates: list[Any] = []
    if isinstance(data, list):
        candidates.extend(data)
    elif isinstance(data, dict):
        candidates.append(data)
        if isinstance(data.get("@graph"), list):
            candidates.extend(data["@graph"])

    for candidate in candidates:
        if isinstance(candidate, dict) and _is_recipe_type(candidate.get("@type")):
            return candidate
    return None


# ============================================================================
# Strategies
# ============================================================================


def extract_from_json_ld(soup: BeautifulSoup) -> Optional[dict]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw_json = script.string or script.get_text()
        if not raw_json or not raw_json.strip():
            continue
        try:
            data = json.loads(raw_json)
        except json.JSONDecodeError:
            logger.debug("Skipping invalid JSON-LD block")
            continue

        recipe = _find_recipe_object(data)
        if recipe is None:
            continue

        ingredients = recipe.get("recipeIngredient")
        if ingredients is None:
            ingredients = recipe.get("ingredients")
        return {
            "title": _entry_text(recipe.get("name")),
            "description": _entry_text(recipe.get("description")),
            "ingredients": extract_ingredients_from_structured(ingredients),
            "instructions": extract_instructions_from_structured(recipe.get("recipeInstructions")),
        }
    return None


def _itemprop_text(element: Tag) -> str:
    if element.get("content"):
        return normalize_text(element["content"])
    return normalize_text(element.get_text(" ", strip=True))


def extract_from_microdata(soup: BeautifulSoup) -> Optional[dict]:
    scope = soup.find(
        lambda tag: tag.has_attr("itemscope") and re.search(r"recipe/?$", tag.get("itemtype", ""), re.IGNORECASE)
    )
    if scope is None:
        return None

    title = scope.find(attrs={"itemprop": "name"})
    description = scope.find(attrs={"itemprop": "description"})

    ingredients = [
        _itemprop_text(element)
        for element in scope.find_all(attrs={"itemprop": re.compile(r"^(recipeIngredient|ingredients)$")})
    ]

    instructions: list[str] = []
    for element in scope.find_all(attrs={"itemprop": "recipeInstructions"}):
        items = element.find_all("li")
        if items:
            instructions.extend(normalize_text(item.get_text(" ", strip=True)) for item in items)
        else:
            instructions.append(_itemprop_text(element))

    return {
        "title": _itemprop_text(title) if title else "",
        "description": _itemprop_text(description) if description else "",
        "ingredients": ingredients,
        "instructions": instructions,
    }


def _labelled(pattern: re.Pattern) -> Callable[[Tag], bool]:
    def _matches(tag: Tag) -> bool:
        classes = " ".join(tag.get("class") or [])
        return bool(pattern.search(classes) or pattern.search(tag.get("id") or ""))

    return _matches


def _container_items(soup: BeautifulSoup, pattern: re.Pattern) -> list[str]:
    """Line items under the first labelled container that has any (li, else p)."""
    containers = soup.find_all(_labelled(pattern))
    for container in containers:
        items = container.find_all("li") or container.find_all("p")
        if items:
            return [item.get_text(" ", strip=True) for item in items]
    # Labels placed on the line items themselves
    return [c.get_text(" ", strip=True) for c in containers if c.name in ("li", "p", "span")]


def extract_from_common_patterns(soup: BeautifulSoup) -> Optional[dict]:
    heading = soup.find("h1")
    description = soup.find(_labelled(_DESCRIPTION_LABEL))
    return {
        "title": heading.get_text(" ", strip=True) if heading else "",
        "description": description.get_text(" ", strip=True) if description else "",
        "ingredients": _container_items(soup, _INGREDIENT_LABEL),
        "instructions": _container_items(soup, _INSTRUCTION_LABEL),
    }


STRATEGIES: Mapping[ExtractionStrategy, Strategy] = MappingProxyType({
    ExtractionStrategy.JSON_LD: extract_from_json_ld,
    ExtractionStrategy.MICRODATA: extract_from_microdata,
    ExtractionStrategy.HEURISTIC: extract_from_common_patterns,
})


def normalize_recipe_data(data: Mapping[str, Any]) -> dict:
    """Fill absent fields with empty defaults and reduce values to plain strings."""
    return {
        "title": normalize_text(data.get("title")),
        "description": normalize_text(data.get("description")),
        "ingredients": extract_ingredients_from_structured(data.get("ingredients")),
        "instructions": extract_instructions_from_structured(data.get("instructions")),
    }


class StructuredExtractor:
    """Runs the strategy chain over raw HTML."""

    def __init__(self, strategies: Mapping[ExtractionStrategy, Strategy] = STRATEGIES) -> None:
        self.strategies = strategies

    def extract(self, raw_html: str, source_url: Optional[str] = None) -> ExtractionResult:
        """Return the first usable extraction.

        Raises:
            ExtractionError: When no strategy yields a title and an ingredient.
        """
        soup = BeautifulSoup(raw_html or "", "html.parser")

        for strategy, extract in self.strategies.items():
            data = extract(soup)
            if not data:
                continue
            result = ExtractionResult(strategy=strategy, source_url=source_url, **normalize_recipe_data(data))
            if result.is_usable:
                logger.info(f"Recipe extracted with {strategy.value}: {result.title}")
                return result
            logger.debug(f"Strategy {strategy.value} found no usable recipe")

        raise ExtractionError("Could not find recipe data on the page", url=source_url)


def decode_page(body: bytes, charset: Optional[str] = None) -> str:
    """Decode with the declared (or meta-sniffed) charset, falling back to UTF-8."""
    if not charset:
        match = _META_CHARSET.search(body[:4096])
        if match:
            charset = match.group(1).decode("ascii", errors="ignore")
    if charset:
        try:
            return body.decode(charset)
        except (LookupError, UnicodeDecodeError):
            logger.debug(f"Charset {charset} failed, decoding as UTF-8")
    return body.decode("utf-8", errors="replace")


class RecipeLinkExtractor:
    """URL in, ExtractionResult out."""

    def __init__(self, fetcher: Optional[Fetcher] = None, extractor: Optional[StructuredExtractor] = None) -> None:
        self.fetcher = fetcher or PageFetcher()
        self.extractor = extractor or StructuredExtractor()

    async def extract(self, url: Optional[str]) -> ExtractionResult:
        """Fetch ``url`` and extract its recipe.

        Raises:
            InvalidInputError: Blank URL.
            FetchError: Network failure.
            ExtractionError: No strategy matched.
        """
        normalized = normalize_url(url)
        logger.info(f"Extracting recipe from {normalized}")
        page = await self.fetcher.fetch_page(normalized)
        return self.extractor.extract(decode_page(page.body, page.charset), source_url=normalized)
