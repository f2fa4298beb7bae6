"""
Static keyword tables.

KEYWORD_MAPPINGS drives tiers 2 and 3 of the cascading search: a query that
mentions "gold" expands to commodity synonyms and maps to the commodities
category. DIMENSION_PATTERNS is the regex classifier used whenever the
ranking LLM is unavailable or returns garbage.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

DEFAULT_SUGGESTIONS = ["bitcoin", "election", "inflation"]


@dataclass(frozen=True)
class KeywordMapping:
    keywords: List[str]
    synonyms: List[str]
    category: Optional[str] = None
    node_id: Optional[str] = None  # taxonomy tag id, when known
    _patterns: List[re.Pattern] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self):
        patterns = [re.compile(rf"\b{re.escape(k.lower())}\b") for k in self.keywords]
        object.__setattr__(self, "_patterns", patterns)

    def matches(self, query: str) -> bool:
        q = query.lower().strip()
        if not q:
            return False
        if any(p.search(q) for p in self._patterns):
            return True
        # Partial input ("infla") still maps; very short fragments do not
        return len(q) >= 3 and any(q in k.lower() for k in self.keywords)


KEYWORD_MAPPINGS: List[KeywordMapping] = [
    KeywordMapping(
        keywords=["gold", "gold price"],
        synonyms=["commodity", "metal", "XAU", "precious metal", "silver"],
        category="commodities",
    ),
    KeywordMapping(
        keywords=["oil", "crude oil", "petroleum"],
        synonyms=["energy", "crude", "gasoline", "fuel", "OPEC"],
        category="commodities",
    ),
    KeywordMapping(
        keywords=["inflation", "price level"],
        synonyms=["CPI", "consumer price", "macro", "macroeconomic", "recession"],
        category="macro",
    ),
    KeywordMapping(
        keywords=["fed", "federal reserve", "interest rate", "rate hike", "rate cut"],
        synonyms=["central bank", "monetary policy", "rate hike", "rate cut", "FOMC"],
        category="macro",
    ),
    KeywordMapping(
        keywords=["bitcoin", "btc", "crypto"],
        synonyms=["cryptocurrency", "digital currency", "blockchain", "ethereum", "ETH"],
        category="crypto",
    ),
    KeywordMapping(
        keywords=["stock", "stocks", "stock market", "equity"],
        synonyms=["S&P 500", "SPX", "NASDAQ", "market", "equities"],
        category="stocks",
    ),
    KeywordMapping(
        keywords=["election", "president", "presidential"],
        synonyms=["politics", "political", "vote", "candidate", "campaign"],
        category="politics",
    ),
    KeywordMapping(
        keywords=["war", "conflict", "invasion"],
        synonyms=["military", "geopolitical", "geopolitics", "tension", "ceasefire"],
        category="geopolitics",
    ),
    KeywordMapping(
        keywords=["weather", "climate"],
        synonyms=["temperature", "hurricane", "storm", "natural disaster"],
        category="weather",
    ),
    KeywordMapping(
        keywords=["tech", "technology", "ai"],
        synonyms=["artificial intelligence", "machine learning", "software", "hardware", "OpenAI"],
        category="technology",
    ),
]


def find_keyword_mapping(query: str) -> Optional[KeywordMapping]:
    """First mapping whose keywords match the query, in table order."""
    for mapping in KEYWORD_MAPPINGS:
        if mapping.matches(query):
            return mapping
    return None


def synonyms_for(query: str) -> List[str]:
    mapping = find_keyword_mapping(query)
    return list(mapping.synonyms) if mapping else []


def suggested_queries(query: str, limit: int = 3) -> List[str]:
    mapping = find_keyword_mapping(query)
    if mapping:
        return list(mapping.synonyms[:limit])
    return list(DEFAULT_SUGGESTIONS)


# ── Dimension classification ──

# Checked in this order; the first hit wins. "Live Crypto" (short-horizon
# price markets) must be tested before the generic crypto bucket.
DIMENSION_PATTERNS: Dict[str, re.Pattern] = {
    "Live Crypto": re.compile(
        r"\b(bitcoin|btc|ethereum|eth|solana|sol|xrp)\b.*\b(up or down|above|below|price on|hit \$|reach \$)",
        re.IGNORECASE,
    ),
    "middle east": re.compile(
        r"\b(israel|iran|gaza|hamas|hezbollah|houthis?|yemen|syria|lebanon|iraq|saudi|netanyahu|tehran)\b",
        re.IGNORECASE,
    ),
    "ai": re.compile(
        r"\b(ai|agi|openai|chatgpt|gpt-?\d*|anthropic|claude|gemini|llm|grok|deepseek|artificial intelligence)\b",
        re.IGNORECASE,
    ),
    "crypto": re.compile(
        r"\b(bitcoin|btc|ethereum|eth|crypto\w*|solana|xrp|doge\w*|stablecoin|blockchain|coinbase|binance|memecoin|token)\b",
        re.IGNORECASE,
    ),
    "politics": re.compile(
        r"\b(elections?|president\w*|senate|congress|trump|biden|democrats?|republicans?|governor|parliament|"
        r"prime minister|nominee|mayor|cabinet|impeach\w*|primary|supreme court|tariffs?)\b",
        re.IGNORECASE,
    ),
    "sports": re.compile(
        r"\b(nba|nfl|mlb|nhl|fifa|world cup|super bowl|premier league|champions league|ufc|tennis|wimbledon|"
        r"f1|grand prix|olympics?|stanley cup|playoffs?|finals?|vs\.?)\b",
        re.IGNORECASE,
    ),
    "pop culture": re.compile(
        r"\b(oscars?|grammys?|emmys?|movie|album|box office|taylor swift|celebrity|netflix|spotify|billboard|"
        r"youtube|tiktok|eurovision|song)\b",
        re.IGNORECASE,
    ),
    "tech": re.compile(
        r"\b(apple|google|microsoft|nvidia|tesla|spacex|meta|amazon|iphone|semiconductor|chips?|starship|"
        r"launch|ipo|elon musk)\b",
        re.IGNORECASE,
    ),
}


def classify_title(title: str, categories: Optional[Sequence[str]] = None) -> Optional[str]:
    """Regex classification into one of `categories` (default: all known)."""
    allowed = set(categories) if categories is not None else None
    for name, pattern in DIMENSION_PATTERNS.items():
        if allowed is not None and name not in allowed:
            continue
        if pattern.search(title or ""):
            return name
    return None
