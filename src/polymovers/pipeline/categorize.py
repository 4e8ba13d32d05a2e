"""Category assignment: tag first, keyword heuristics second."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from polymovers.models.market import MarketRecord

OTHER = "other"
ALL = "all"

# Iteration order is priority order: the first category with a matching keyword wins.
DEFAULT_CATEGORY_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "politics": ("politics", "election", "government", "policy", "candidate"),
        "sports": (
            "sports", "nfl", "nba", "mlb", "nhl", "soccer", "football", "basketball", "baseball", "hockey",
        ),
        "crypto": ("crypto", "bitcoin", "ethereum", "blockchain", "defi", "nft"),
        "entertainment": ("entertainment", "movie", "music", "celebrity", "award", "tv", "streaming"),
        "technology": ("technology", "tech", "ai", "artificial intelligence", "software", "startup"),
        "finance": ("finance", "stock", "market", "economy", "gdp", "inflation", "federal reserve"),
        "weather": ("weather", "climate", "hurricane", "temperature", "rain", "snow"),
    }
)

# Values the presentation layer offers as filters. Tag-derived categories outside this set
# only match the "all" filter.
CATEGORIES = (ALL, *DEFAULT_CATEGORY_KEYWORDS.keys(), OTHER)


def freeze_keyword_table(table: Mapping[str, Iterable[str]]) -> Mapping[str, tuple[str, ...]]:
    """Read-only copy of a category -> keywords table, keywords lower-cased, order kept."""
    return MappingProxyType(
        {
            str(category).lower(): tuple(str(k).lower() for k in keywords)
            for category, keywords in table.items()
            if str(category).lower() != OTHER
        }
    )


class Categorizer:
    """Assigns a category label to a market. Pure; the keyword table is fixed at construction."""

    def __init__(self, keyword_table: Mapping[str, Iterable[str]] | None = None) -> None:
        if keyword_table is None:
            self._keywords = DEFAULT_CATEGORY_KEYWORDS
        else:
            self._keywords = freeze_keyword_table(keyword_table)

    @property
    def keyword_table(self) -> Mapping[str, tuple[str, ...]]:
        return self._keywords

    @property
    def categories(self) -> tuple[str, ...]:
        return (ALL, *self._keywords.keys(), OTHER)

    def category_from_tags(self, tags: Iterable[str]) -> str | None:
        """First tag that is neither 'all' nor 'other', lower-cased."""
        for tag in tags:
            t = tag.strip().lower()
            if t and t not in (ALL, OTHER):
                return t
        return None

    def category_from_keywords(self, market: MarketRecord) -> str:
        text = " ".join([market.question, market.description, *market.tags]).lower()
        for category, keywords in self._keywords.items():
            if any(keyword in text for keyword in keywords):
                return category
        return OTHER

    def categorize(self, market: MarketRecord) -> str:
        return self.category_from_tags(market.tags) or self.category_from_keywords(market)


def matches_category(category: str, selected: str | None) -> bool:
    """Presentation filter: 'all' (or nothing selected) passes every market."""
    if not selected or selected.lower() == ALL:
        return True
    return category == selected.lower()
