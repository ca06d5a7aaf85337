"""
Category normalizer.

Maps category labels coming from UI controls, transaction feeds and free text
onto the fixed set of canonical categories.

Resolution order:
1. Exact, case-insensitive match against ALIAS_RULES (whitespace trimmed)
2. Substring match: an alias matches when the input contains it or it contains
   the input. The longest matching alias wins; equal lengths go to the rule
   listed first in ALIAS_RULES.
3. Nothing matched: "other", plus an `unmapped` event for the event sink
"""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from cardmatch.categories import CanonicalCategory, empty_category_map

logger = logging.getLogger(__name__)

C = CanonicalCategory

# Ordered, prioritized alias rules. Position only matters for substring ties.
ALIAS_RULES: tuple[tuple[str, CanonicalCategory], ...] = (
    # Display names and compound transaction labels
    ("Food & Dining", C.FOOD_DINING),
    ("Food and Dining", C.FOOD_DINING),
    ("Shopping & E-commerce", C.SHOPPING_ONLINE),
    ("Shopping and E-commerce", C.SHOPPING_ONLINE),
    ("Travel & Transport", C.TRAVEL),
    ("Travel and Transport", C.TRAVEL),
    ("Travel & Entertainment", C.TRAVEL),
    ("Transportation", C.TRAVEL),
    ("Fuel & Transport", C.FUEL),
    ("Fuel and Transport", C.FUEL),
    ("Bills & Utilities", C.BILLS_UTILITIES),
    ("Bills and Utilities", C.BILLS_UTILITIES),
    ("Utilities & Bills", C.BILLS_UTILITIES),
    ("Entertainment & Subscriptions", C.ENTERTAINMENT),
    ("Health & Wellness", C.HEALTH),
    ("Investments & Savings", C.INVESTMENTS),
    ("Financial Services", C.INVESTMENTS),
    # Spending hint chips
    ("Online Shopping", C.SHOPPING_ONLINE),
    ("Food Delivery", C.FOOD_DINING),
    ("Dining Out", C.FOOD_DINING),
    ("Groceries", C.GROCERIES),
    ("Travel", C.TRAVEL),
    ("Entertainment", C.ENTERTAINMENT),
    ("Fuel", C.FUEL),
    ("Bills", C.BILLS_UTILITIES),
    ("Health", C.HEALTH),
    ("Education", C.EDUCATION),
    # Spending sliders
    ("online", C.SHOPPING_ONLINE),
    ("dining", C.FOOD_DINING),
    ("cabsFuel", C.FUEL),
    ("billsUtilities", C.BILLS_UTILITIES),
    ("rent", C.OTHER),
    ("forex", C.FOREX),
    ("upiCC", C.OTHER),
    # Transaction category fields
    ("Food", C.FOOD_DINING),
    ("Grocery", C.GROCERIES),
    ("Transport", C.TRAVEL),
    ("Cabs", C.FUEL),
    ("Utilities", C.BILLS_UTILITIES),
    ("Healthcare", C.HEALTH),
    ("Medical", C.HEALTH),
    ("Investment", C.INVESTMENTS),
    ("Investments", C.INVESTMENTS),
    ("Foreign", C.FOREX),
    ("International", C.FOREX),
    ("Shopping", C.SHOPPING_ONLINE),
    ("UPI", C.OTHER),
    ("Other", C.OTHER),
    # Canonical keys resolve to themselves
    ("food_dining", C.FOOD_DINING),
    ("shopping_online", C.SHOPPING_ONLINE),
    ("bills_utilities", C.BILLS_UTILITIES),
    ("investments", C.INVESTMENTS),
    # Common variations and merchant-brand hints
    ("food_delivery", C.FOOD_DINING),
    ("dining_out", C.FOOD_DINING),
    ("restaurant", C.FOOD_DINING),
    ("swiggy", C.FOOD_DINING),
    ("zomato", C.FOOD_DINING),
    ("uber eats", C.FOOD_DINING),
    ("bigbasket", C.GROCERIES),
    ("dmart", C.GROCERIES),
    ("blinkit", C.GROCERIES),
    ("zepto", C.GROCERIES),
    ("instamart", C.GROCERIES),
    ("jiomart", C.GROCERIES),
    ("uber", C.FUEL),
    ("ola", C.FUEL),
    ("rapido", C.FUEL),
    ("petrol", C.FUEL),
    ("gas", C.FUEL),
    ("electricity", C.BILLS_UTILITIES),
    ("water", C.BILLS_UTILITIES),
    ("phone", C.BILLS_UTILITIES),
    ("internet", C.BILLS_UTILITIES),
    ("broadband", C.BILLS_UTILITIES),
    ("streaming", C.ENTERTAINMENT),
    ("netflix", C.ENTERTAINMENT),
    ("amazon_prime", C.ENTERTAINMENT),
    ("amazon prime", C.ENTERTAINMENT),
    ("hotstar", C.ENTERTAINMENT),
    ("spotify", C.ENTERTAINMENT),
    ("bookmyshow", C.ENTERTAINMENT),
    ("movies", C.ENTERTAINMENT),
    ("makemytrip", C.TRAVEL),
    ("goibibo", C.TRAVEL),
    ("irctc", C.TRAVEL),
    ("flight", C.TRAVEL),
    ("airline", C.TRAVEL),
    ("hotel", C.TRAVEL),
    ("pharmacy", C.HEALTH),
    ("hospital", C.HEALTH),
    ("pharmeasy", C.HEALTH),
    ("tuition", C.EDUCATION),
    ("coursera", C.EDUCATION),
    ("udemy", C.EDUCATION),
    ("mutual fund", C.INVESTMENTS),
    ("amazon", C.SHOPPING_ONLINE),
    ("flipkart", C.SHOPPING_ONLINE),
    ("myntra", C.SHOPPING_ONLINE),
)


@dataclass(frozen=True)
class NormalizerEvent:
    """Observability event emitted by the normalizer.

    kind is "partial_match" or "unmapped".
    """
    kind: str
    raw_input: str
    category: CanonicalCategory
    alias: Optional[str] = None


EventSink = Callable[[NormalizerEvent], None]


def _log_event(event: NormalizerEvent) -> None:
    if event.kind == "unmapped":
        logger.warning("Unmapped category %r -> %s", event.raw_input, event.category.value)
    else:
        logger.debug(
            "Partial category match %r via %r -> %s",
            event.raw_input,
            event.alias,
            event.category.value,
        )


class CategoryNormalizer:
    """
    Resolves free-form category labels to CanonicalCategory.

    Usage:
        events = []
        normalizer = CategoryNormalizer(event_sink=events.append)
        normalizer.normalize("Dining Out")  # CanonicalCategory.FOOD_DINING
    """

    def __init__(
        self,
        rules: tuple[tuple[str, CanonicalCategory], ...] = ALIAS_RULES,
        event_sink: Optional[EventSink] = None,
    ):
        self.rules = tuple((alias.lower(), category) for alias, category in rules)
        self.event_sink = event_sink or _log_event

        # First rule wins for duplicate aliases
        self._exact: dict[str, CanonicalCategory] = {}
        for alias, category in self.rules:
            self._exact.setdefault(alias, category)

    def normalize(self, value: Optional[str]) -> CanonicalCategory:
        if value is None:
            return C.OTHER
        needle = str(value).strip().lower()
        if not needle:
            return C.OTHER

        exact = self._exact.get(needle)
        if exact is not None:
            return exact

        best: Optional[tuple[str, CanonicalCategory]] = None
        for alias, category in self.rules:
            if alias in needle or needle in alias:
                if best is None or len(alias) > len(best[0]):
                    best = (alias, category)

        if best is not None:
            self.event_sink(NormalizerEvent("partial_match", str(value), best[1], best[0]))
            return best[1]

        self.event_sink(NormalizerEvent("unmapped", str(value), C.OTHER))
        return C.OTHER

    def shares_from_percentages(self, labeled: Mapping[str, float]) -> dict[CanonicalCategory, float]:
        """
        Convert a label -> percentage (or fraction) mapping to canonical shares.

        Values > 1 are read as percentages, values <= 1 as fractions. The result
        is rescaled to sum to 1.0 only if the raw sum lies within [0.9, 1.1].
        Non-positive values are ignored.
        """
        shares = empty_category_map()
        for label, value in labeled.items():
            if value is None or value <= 0:
                continue
            fraction = value / 100 if value > 1 else float(value)
            shares[self.normalize(label)] += fraction

        total = sum(shares.values())
        if 0.9 <= total <= 1.1:
            shares = {category: share / total for category, share in shares.items()}
        return shares


default_normalizer = CategoryNormalizer()


def normalize(value: Optional[str]) -> CanonicalCategory:
    return default_normalizer.normalize(value)


def shares_from_percentages(labeled: Mapping[str, float]) -> dict[CanonicalCategory, float]:
    return default_normalizer.shares_from_percentages(labeled)
