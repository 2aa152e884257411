"""
Keyword rule tables for name-based category/brand detection.

Most catalog rows have no usable category/brand columns, so the storefront
derives them from the product name. Each table is an ordered list of rules;
the first rule with a keyword contained in the lower-cased name wins, and
names matching nothing fall back to the table default.

Tables are plain data. The search route uses a ClassifierConfig (category +
brand tables) that can be replaced from a JSON file; the brand catalog page
table (ROOR_GLASS_RULES) is independent of the search tables.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict

from core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class KeywordRule(BaseModel):
    """One detection rule: `value` applies when any keyword is in the name."""
    model_config = ConfigDict(frozen=True)

    value: str
    label: str
    keywords: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


class RuleTable(BaseModel):
    """An ordered, versioned keyword rule list (first match wins)."""
    model_config = ConfigDict(frozen=True)

    name: str
    version: int = 1
    rules: Tuple[KeywordRule, ...]
    default: str = "other"
    default_label: str = "Other"
    all_label: str = "All"

    def classify(self, text: Optional[str]) -> str:
        lowered = (text or "").lower()
        for rule in self.rules:
            if rule.matches(lowered):
                return rule.value
        return self.default

    def display_name(self, value: str) -> str:
        if value == self.default:
            return self.default_label
        for rule in self.rules:
            if rule.value == value:
                return rule.label
        return value

    def options(self) -> List[Dict[str, str]]:
        """Filter dropdown options: 'all', every rule, then the default."""
        options = [{"value": "all", "label": self.all_label}]
        options.extend({"value": rule.value, "label": rule.label} for rule in self.rules)
        options.append({"value": self.default, "label": self.default_label})
        return options


class ClassifierConfig(BaseModel):
    """Rule tables used by the search route's category/brand filters."""
    model_config = ConfigDict(frozen=True)

    category: RuleTable
    brand: RuleTable


def _product_name(product: Any) -> str:
    if isinstance(product, dict):
        return product.get("name") or ""
    return getattr(product, "name", None) or ""


def filter_by_rule(products: Iterable[T], table: RuleTable, value: Optional[str]) -> List[T]:
    """Keep products whose name classifies to `value` ('all'/None keeps all)."""
    products = list(products)
    if not value or value == "all":
        return products
    return [p for p in products if table.classify(_product_name(p)) == value]


# =============================================================================
# Default tables
# =============================================================================

def _rule(value: str, label: str, *keywords: str) -> KeywordRule:
    return KeywordRule(value=value, label=label, keywords=keywords)


SEARCH_CATEGORY_RULES = RuleTable(
    name="search-category",
    version=1,
    all_label="All Categories",
    rules=[
        _rule("disposables", "Disposables", "dispo", "disposable", "puff"),
        _rule("batteries", "Batteries", "battery", "charger", "mod"),
        _rule("pipes-bongs", "Pipes & Bongs", "pipe", "bong", "rig"),
        _rule("rolling-papers", "Rolling Papers", "joint", "cone", "paper", "wrap"),
        _rule("cannabis", "Cannabis", "thca", "cbg", "cbd", "preroll"),
        _rule("e-liquids", "E-Liquids", "e-liquid", "juice", "vape juice"),
        _rule("tools", "Tools", "knife", "tool"),
        _rule("accessories", "Accessories", "holder", "display", "case"),
        _rule("edibles", "Edibles", "tab", "gummy", "edible"),
    ],
)

SEARCH_BRAND_RULES = RuleTable(
    name="search-brand",
    version=1,
    all_label="All Brands",
    rules=[
        _rule("crave", "Crave", "crave"),
        _rule("geek-bar", "Geek Bar", "geek bar", "geekbar"),
        _rule("elf-bar", "Elf Bar", "elf bar", "elfbar"),
        _rule("puffco", "Puffco", "puffco"),
        _rule("roor", "ROOR", "roor"),
        _rule("blazy-susan", "Blazy Susan", "blazy"),
        _rule("float", "Float", "float"),
        _rule("nu-e-liquid", "NU E-Liquid", "nu e-liquid"),
        _rule("lost-mary", "Lost Mary", "lost mary"),
        _rule("hyde", "Hyde", "hyde"),
        _rule("fume", "Fume", "fume"),
        _rule("air-bar", "Air Bar", "air bar"),
        _rule("breeze", "Breeze", "breeze"),
        _rule("vuse", "Vuse", "vuse"),
    ],
)

# Brand catalog page (ROOR glass). Short keywords like "st" and "dc" are
# substring matches, so their order after "beaker"/"bk" matters.
ROOR_GLASS_RULES = RuleTable(
    name="roor-glass",
    version=1,
    default="accessories",
    default_label="Accessories",
    all_label="All Products",
    rules=[
        _rule("beakers", "Beakers", "beaker", "bk"),
        _rule("straight-tubes", "Straight Tubes", "straight", "st", "zeaker"),
        _rule("ash-catchers", "Ash Catchers", "ash", "dc"),
    ],
)

DEFAULT_CLASSIFIERS = ClassifierConfig(
    category=SEARCH_CATEGORY_RULES,
    brand=SEARCH_BRAND_RULES,
)


def load_classifier_config(path: Optional[Union[str, Path]] = None) -> ClassifierConfig:
    """
    Load the search route's rule tables.

    Args:
        path: JSON file shaped like ClassifierConfig
              ({"category": {...RuleTable}, "brand": {...RuleTable}}).
              None returns the built-in defaults.

    Raises:
        FileNotFoundError / pydantic.ValidationError for a bad file.
    """
    if path is None:
        return DEFAULT_CLASSIFIERS

    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    config = ClassifierConfig.model_validate(data)
    logger.info(
        "Loaded classifier rule tables",
        path=str(path),
        category_version=config.category.version,
        brand_version=config.brand.version,
    )
    return config
