"""Closed vocabularies and rule tables shared by the validators.

Everything here is built once at import time into immutable containers
(tuples, frozensets, MappingProxyType). Components receive a ``RuleTables``
instance by reference instead of reaching for module globals, so tests can
pass a trimmed table set.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

# Standard allergy list asked for when preparing food
ALLERGY_KEYS: tuple[str, ...] = (
    "peanut",
    "tree_nuts",
    "sesame",
    "shellfish",
    "milk",
    "egg",
    "fish",
    "wheat",
    "soy",
    "kiwi",
)

# Standard appliance list. A stove implies a pan, so pans are not listed.
APPLIANCE_KEYS: tuple[str, ...] = (
    "stove",
    "oven",
    "microwave",
    "blender",
    "stick_blender",
    "mixer",
    "kettle",
    "toaster",
    "air_fryer",
    "pressure_cooker",
)

DEFAULT_APPLIANCES: frozenset[str] = frozenset({"stove", "oven", "kettle"})

# Everyday names users type instead of the closed keys
ALLERGY_ALIASES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "peanuts": ("peanut",),
    "nuts": ("peanut", "tree_nuts"),
    "nut": ("peanut", "tree_nuts"),
    "tree_nut": ("tree_nuts",),
    "dairy": ("milk",),
    "lactose": ("milk",),
    "eggs": ("egg",),
    "gluten": ("wheat",),
    "soya": ("soy",),
    "seafood": ("shellfish", "fish"),
    "crustaceans": ("shellfish",),
    "kiwifruit": ("kiwi",),
    "sesame_seeds": ("sesame",),
})

# Ingredient names and variations that reveal each allergen
ALLERGEN_SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "peanut": ("peanut", "peanuts", "peanutbutter", "peanut-butter", "peanut_butter"),
    "tree_nuts": (
        "almond", "almonds", "walnut", "walnuts", "cashew", "cashews", "hazelnut", "hazelnuts",
        "pistachio", "pistachios", "macadamia", "macadamias", "brazil nut", "brazil-nut",
        "pecan", "pecans",
    ),
    "sesame": ("sesame", "tahini", "sesame-seed", "sesame_seed", "sesame-oil", "sesame_oil"),
    "shellfish": (
        "shrimp", "prawn", "crab", "lobster", "crayfish", "crawfish", "mussel", "mussels",
        "clam", "clams", "oyster", "oysters", "scallop", "scallops",
    ),
    "milk": ("milk", "dairy", "butter", "cream", "cheese", "yogurt", "yoghurt", "whey", "casein", "lactose"),
    "egg": ("egg", "eggs", "egg-white", "egg_white", "egg-yolk", "egg_yolk", "mayonnaise", "mayo"),
    "fish": (
        "fish", "salmon", "tuna", "cod", "sardine", "sardines", "anchovy", "anchovies",
        "mackerel", "herring",
    ),
    "wheat": ("wheat", "flour", "bread", "pasta", "noodles", "couscous", "bulgur", "semolina", "spelt"),
    "soy": (
        "soy", "soya", "soybean", "soybeans", "tofu", "tempeh", "miso", "soy-sauce", "soy_sauce",
        "tamari", "edamame",
    ),
    "kiwi": ("kiwi", "kiwifruit"),
})

ALLERGEN_SUBSTITUTES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "peanut": (
        "sunflower seed butter",
        "almond butter (if not allergic to tree nuts)",
        "soy butter (if not allergic to soy)",
    ),
    "tree_nuts": ("seeds (sunflower, pumpkin)", "oats (if not allergic to wheat)"),
    "sesame": ("poppy seeds", "sunflower seeds"),
    "shellfish": ("chicken", "tofu", "mushrooms"),
    "milk": (
        "almond milk (if not allergic to tree nuts)",
        "oat milk",
        "coconut milk",
        "soy milk (if not allergic to soy)",
    ),
    "egg": (
        "flax egg (1 tbsp ground flaxseed + 3 tbsp water)",
        "chia egg (1 tbsp chia seeds + 3 tbsp water)",
        "applesauce",
        "banana",
    ),
    "fish": ("chicken", "tofu", "mushrooms"),
    "wheat": (
        "gluten-free flour blend",
        "almond flour (if not allergic to tree nuts)",
        "rice flour",
        "oat flour (if not allergic to wheat)",
    ),
    "soy": ("coconut aminos", "tamari (if gluten-free)", "chickpeas", "lentils"),
    "kiwi": ("strawberries", "mango", "pineapple"),
})

# Ordered most specific first: a matched phrase is blanked out before the
# next appliance is checked, so "stick blender" never also demands a blender.
APPLIANCE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("stick_blender", ("stick blender", "immersion blender", "hand blender")),
    ("air_fryer", ("air fryer", "air-fryer", "air fry", "air-fry")),
    ("pressure_cooker", ("pressure cooker", "pressure-cook", "pressure cook", "instant pot")),
    ("microwave", ("microwave",)),
    ("toaster", ("toaster",)),
    ("oven", ("oven", "bake", "baking", "broil")),
    ("blender", ("blender", "blend", "liquidise", "liquidize")),
    ("mixer", ("stand mixer", "hand mixer", "electric mixer", "mixer")),
    ("kettle", ("kettle",)),
    ("stove", (
        "stove", "stovetop", "hob", "burner", "skillet", "frying pan", "saucepan",
        "wok", "sauté", "saute", "simmer",
    )),
)

# Verbs that only imply an appliance when no more specific variant is named
# in the same step: "blend with a stick blender", "bake in the air fryer".
APPLIANCE_VERBS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "blender": ("blend", "liquidise", "liquidize"),
    "oven": ("bake", "baking", "broil"),
})

APPLIANCE_VARIANTS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "blender": ("stick_blender",),
    "oven": ("air_fryer",),
})

# Ingredient and equipment phrases removed before appliance matching
APPLIANCE_EXEMPT_PHRASES: tuple[str, ...] = (
    "baking powder", "baking soda", "baking paper", "baking parchment",
)

# Imperial unit regex alternatives mapped to a metric conversion hint
IMPERIAL_UNITS: Mapping[str, str] = MappingProxyType({
    r"cups?": "1 cup ≈ 240 ml",
    r"fl\.?\s?oz": "1 fl oz ≈ 30 ml",
    r"oz|ounces?": "1 oz ≈ 28 g",
    r"lbs?|pounds?": "1 lb ≈ 454 g",
    r"pints?": "1 pint ≈ 473 ml",
    r"quarts?": "1 quart ≈ 946 ml",
    r"gallons?": "1 gallon ≈ 3.8 l",
    r"inch(?:es)?": "1 inch ≈ 2.5 cm",
    r"sticks? of butter": "1 stick of butter ≈ 113 g",
})

# Terms forbidden by each diet, matched on word boundaries
DIET_RESTRICTIONS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "vegetarian": (
        "chicken", "beef", "pork", "lamb", "mutton", "veal", "bacon", "ham", "turkey", "duck",
        "sausage", "chorizo", "pancetta", "prosciutto", "salami", "steak", "mince", "gelatin",
        "anchovy", "anchovies", "fish", "salmon", "tuna", "cod", "shrimp", "prawn", "prawns",
        "crab", "lobster",
    ),
    "pescatarian": (
        "chicken", "beef", "pork", "lamb", "mutton", "veal", "bacon", "ham", "turkey", "duck",
        "sausage", "chorizo", "pancetta", "prosciutto", "salami", "steak", "mince", "gelatin",
    ),
    "vegan": (
        "chicken", "beef", "pork", "lamb", "veal", "bacon", "ham", "turkey", "duck", "sausage",
        "steak", "mince", "gelatin", "fish", "salmon", "tuna", "cod", "shrimp", "prawn", "prawns",
        "anchovy", "anchovies", "crab", "lobster", "milk", "butter", "cream", "cheese", "yogurt",
        "yoghurt", "egg", "eggs", "honey", "ghee", "mayonnaise",
    ),
    "gluten-free": (
        "wheat", "flour", "bread", "breadcrumbs", "pasta", "noodles", "couscous", "bulgur",
        "semolina", "spelt", "barley", "rye",
    ),
    "dairy-free": ("milk", "butter", "cream", "cheese", "yogurt", "yoghurt", "ghee", "whey"),
    "nut-free": (
        "peanut", "peanuts", "almond", "almonds", "walnut", "walnuts", "cashew", "cashews",
        "hazelnut", "hazelnuts", "pistachio", "pistachios", "pecan", "pecans",
    ),
})

# Phrases whose last word names a forbidden term without containing the real thing.
# Only the last word is exempted: "peanut butter" is not dairy but is still peanut.
DIET_EXEMPT_PHRASES: tuple[str, ...] = (
    "almond milk", "oat milk", "soy milk", "rice milk", "coconut milk", "coconut cream",
    "cashew cream", "peanut butter", "almond butter", "cocoa butter", "shea butter",
    "gluten-free flour", "gluten-free pasta", "gluten-free bread", "rice flour",
    "almond flour", "coconut flour", "chickpea flour", "rice noodles", "egg-free",
)

# Qualifiers that exempt the following word for the listed diets ("vegan butter")
DIET_EXEMPT_QUALIFIERS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "vegan": ("vegetarian", "pescatarian", "vegan", "dairy-free"),
    "plant-based": ("vegetarian", "pescatarian", "vegan", "dairy-free"),
    "plant based": ("vegetarian", "pescatarian", "vegan", "dairy-free"),
    "meat-free": ("vegetarian", "pescatarian"),
    "dairy-free": ("dairy-free",),
    "gluten-free": ("gluten-free",),
    "nut-free": ("nut-free",),
})

DIET_ALIASES: Mapping[str, str] = MappingProxyType({
    "vegetarian": "vegetarian",
    "veggie": "vegetarian",
    "vegan": "vegan",
    "plant-based": "vegan",
    "plant based": "vegan",
    "pescatarian": "pescatarian",
    "pescetarian": "pescatarian",
    "gluten-free": "gluten-free",
    "gluten free": "gluten-free",
    "coeliac": "gluten-free",
    "celiac": "gluten-free",
    "dairy-free": "dairy-free",
    "dairy free": "dairy-free",
    "lactose-free": "dairy-free",
    "lactose free": "dairy-free",
    "nut-free": "nut-free",
    "nut free": "nut-free",
})

WARNING_MARKER = "⚠️"


@dataclass(frozen=True)
class RuleTables:
    """Immutable bundle of every table a validator may consult."""

    allergy_keys: frozenset[str]
    appliance_keys: frozenset[str]
    allergy_aliases: Mapping[str, tuple[str, ...]]
    allergen_synonyms: Mapping[str, tuple[str, ...]]
    allergen_substitutes: Mapping[str, tuple[str, ...]]
    appliance_keywords: tuple[tuple[str, tuple[str, ...]], ...]
    appliance_verbs: Mapping[str, tuple[str, ...]]
    appliance_variants: Mapping[str, tuple[str, ...]]
    appliance_exempt_phrases: tuple[str, ...]
    imperial_units: Mapping[str, str]
    diet_restrictions: Mapping[str, tuple[str, ...]]
    diet_aliases: Mapping[str, str]
    diet_exempt_phrases: tuple[str, ...]
    diet_exempt_qualifiers: Mapping[str, tuple[str, ...]]
    warning_marker: str = WARNING_MARKER

    def canonical_allergies(self, allergy: str) -> tuple[str, ...]:
        """Resolve a normalized allergy name to closed vocabulary keys (empty if unknown)."""
        if allergy in self.allergy_keys:
            return (allergy,)
        return self.allergy_aliases.get(allergy, ())

    def synonyms_for(self, allergy: str) -> tuple[str, ...]:
        """All ingredient terms revealing ``allergy`` (a key or an alias)."""
        terms: list[str] = []
        for key in self.canonical_allergies(allergy):
            terms.extend(self.allergen_synonyms.get(key, ()))
        return tuple(dict.fromkeys(terms))


def load_rule_tables() -> RuleTables:
    """Build the default table bundle from the module constants."""
    return RuleTables(
        allergy_keys=frozenset(ALLERGY_KEYS),
        appliance_keys=frozenset(APPLIANCE_KEYS),
        allergy_aliases=ALLERGY_ALIASES,
        allergen_synonyms=ALLERGEN_SYNONYMS,
        allergen_substitutes=ALLERGEN_SUBSTITUTES,
        appliance_keywords=APPLIANCE_KEYWORDS,
        appliance_verbs=APPLIANCE_VERBS,
        appliance_variants=APPLIANCE_VARIANTS,
        appliance_exempt_phrases=APPLIANCE_EXEMPT_PHRASES,
        imperial_units=IMPERIAL_UNITS,
        diet_restrictions=DIET_RESTRICTIONS,
        diet_aliases=DIET_ALIASES,
        diet_exempt_phrases=DIET_EXEMPT_PHRASES,
        diet_exempt_qualifiers=DIET_EXEMPT_QUALIFIERS,
    )


DEFAULT_RULE_TABLES = load_rule_tables()
