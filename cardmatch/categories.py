"""
Canonical spending categories.
Single source of truth for the vocabulary shared by every input source.
"""

from enum import Enum


class CanonicalCategory(str, Enum):
    FOOD_DINING = "food_dining"
    SHOPPING_ONLINE = "shopping_online"
    TRAVEL = "travel"
    GROCERIES = "groceries"
    FUEL = "fuel"
    BILLS_UTILITIES = "bills_utilities"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    EDUCATION = "education"
    INVESTMENTS = "investments"
    FOREX = "forex"
    OTHER = "other"


CANONICAL_CATEGORIES = tuple(CanonicalCategory)

_DISPLAY_NAMES = {
    CanonicalCategory.FOOD_DINING: "Food & Dining",
    CanonicalCategory.SHOPPING_ONLINE: "Online Shopping",
    CanonicalCategory.TRAVEL: "Travel",
    CanonicalCategory.GROCERIES: "Groceries",
    CanonicalCategory.FUEL: "Fuel & Transport",
    CanonicalCategory.BILLS_UTILITIES: "Bills & Utilities",
    CanonicalCategory.ENTERTAINMENT: "Entertainment",
    CanonicalCategory.HEALTH: "Healthcare",
    CanonicalCategory.EDUCATION: "Education",
    CanonicalCategory.INVESTMENTS: "Investments",
    CanonicalCategory.FOREX: "International",
    CanonicalCategory.OTHER: "Other",
}


def is_canonical_category(value: str) -> bool:
    """Return True if `value` is exactly one of the canonical category keys."""
    return value in CanonicalCategory._value2member_map_


def display_name(category: CanonicalCategory) -> str:
    return _DISPLAY_NAMES.get(CanonicalCategory(category), str(category))


def empty_category_map() -> dict[CanonicalCategory, float]:
    """Every canonical category initialised to 0.0."""
    return {category: 0.0 for category in CANONICAL_CATEGORIES}
