"""
Ranking provider: asks an LLM which candidates are relevant to a query.

Three operations, all over untrusted text responses:
  - rank_top_indices: indices into a list of candidate strings
  - pick_with_reasoning: ids from a pool, each with a one-line reason
  - classify_titles: assign titles to a fixed set of categories

Every response goes through response_parsing; a RankerParseError, an exhausted
provider chain, or any provider error falls back to a deterministic
heuristic (token-overlap ranking, keyword-regex classification). Nothing
here raises into the search layer.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from ..config import Settings, get_settings
from ..errors import RankerParseError
from ..search.keywords import classify_title
from .provider_manager import NoProviderAvailable, ProviderManager
from .response_parsing import Pick, parse_assignments, parse_index_list, parse_picks

logger = logging.getLogger(__name__)

RANKER_SYSTEM_PROMPT = (
    "You are a prediction-market analyst. You match user queries to market "
    "titles and categories. Follow the requested output format exactly and "
    "never add commentary."
)

_STOPWORDS = {
    "a", "an", "the", "of", "in", "on", "at", "to", "for", "by", "and", "or",
    "is", "be", "will", "what", "who", "how", "with", "vs", "before", "after",
}


def tokenize(text: str) -> List[str]:
    return [t for t in re.findall(r"[a-z0-9$]+", (text or "").lower()) if t not in _STOPWORDS and len(t) > 1]


def lexical_rank(query: str, candidates: Sequence[str], top_n: int) -> List[int]:
    """Token-overlap score, ties keep candidate order. Zero-overlap candidates are dropped."""
    query_tokens = set(tokenize(query))
    if not query_tokens:
        return []
    scored = []
    for idx, text in enumerate(candidates):
        overlap = len(query_tokens & set(tokenize(text)))
        if overlap:
            scored.append((overlap, idx))
    # sorted() is stable, so equal scores stay in input order
    scored = sorted(scored, key=lambda s: s[0], reverse=True)
    return [idx for _, idx in scored[:top_n]]


class LLMRanker:
    """
    Usage:
        ranker = LLMRanker()
        idx = await ranker.rank_top_indices("fed rate cut", [t.label for t in tags], 15)

    Pass `model` to pin a specific pydantic-ai model (FunctionModel in tests).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provider_manager: Optional[ProviderManager] = None,
        model: Optional[Model] = None,
    ):
        self.settings = settings or get_settings()
        self.provider_manager = provider_manager or ProviderManager(settings=self.settings)
        self._model = model
        self.last_fallback_reason: Optional[str] = None

    def is_configured(self) -> bool:
        return self._model is not None or self.provider_manager.has_configured_provider()

    async def _complete(self, prompt: str) -> Optional[str]:
        """Raw completion text, or None when no provider produced one."""
        if not self.is_configured():
            self.last_fallback_reason = "no provider configured"
            return None
        try:
            model = self._model or self.provider_manager.get_model()
            agent = Agent(model, output_type=str, system_prompt=RANKER_SYSTEM_PROMPT, retries=0)
            result = await agent.run(
                prompt,
                model_settings=ModelSettings(temperature=0.0, timeout=self.settings.llm_timeout),
            )
            return result.output
        except NoProviderAvailable as e:
            self.last_fallback_reason = str(e)
            logger.warning(f"Ranker: {e}")
        except Exception as e:
            # pydantic-ai surfaces provider errors under many types (HTTP, fallback groups, timeouts)
            self.last_fallback_reason = f"{type(e).__name__}: {e}"
            logger.warning(f"Ranker: provider call failed: {type(e).__name__}: {str(e)[:200]}")
        return None

    def _cap(self, operation: str, candidates: Sequence) -> list:
        limit = self.settings.ranker_max_candidates
        if len(candidates) > limit:
            logger.warning(
                f"Ranker.{operation}: {len(candidates)} candidates, only the first {limit} are shown to the model "
                f"(RANKER_MAX_CANDIDATES)"
            )
        return list(candidates[:limit])

    def _note_parse_failure(self, operation: str, error: RankerParseError) -> None:
        self.last_fallback_reason = str(error)
        logger.warning(f"Ranker.{operation}: unusable response ({error}), using fallback")
        logger.debug(f"Ranker.{operation} raw response: {error.raw}")

    async def rank_top_indices(self, query: str, candidates: Sequence[str], top_n: int) -> List[int]:
        """Indices of the most query-relevant candidates, best first."""
        if not candidates or top_n <= 0:
            return []
        shown = self._cap("rank_top_indices", candidates)
        listing = "\n".join(f"{i}: {text}" for i, text in enumerate(shown))
        prompt = (
            f"User query: {query}\n\n"
            f"Candidates (format index: text):\n{listing}\n\n"
            f"Return the indices of the {top_n} candidates most relevant to the query, "
            f"considering synonyms and related concepts, most relevant first. "
            f"Reply with comma-separated integers between 0 and {len(shown) - 1} only, e.g. 0,3,5"
        )
        text = await self._complete(prompt)
        if text is not None:
            try:
                return parse_index_list(text, len(shown), top_n).unwrap()
            except RankerParseError as e:
                self._note_parse_failure("rank_top_indices", e)
        return lexical_rank(query, shown, top_n)

    async def pick_with_reasoning(
        self,
        query: str,
        pool: Sequence[Tuple[str, str]],
        count: int,
        hint: str = "",
    ) -> List[Pick]:
        """Choose up to `count` (id, title) entries from `pool`, each with a short reason."""
        if not pool or count <= 0:
            return []
        shown = self._cap("pick_with_reasoning", pool)
        listing = "\n".join(f"{item_id}: {title}" for item_id, title in shown)
        prompt = (
            f"User query: {query}\n"
            + (f"Category: {hint}\n" if hint else "")
            + f"\nEvents (format id: title):\n{listing}\n\n"
            f"Pick up to {count} events a trader researching the query should watch, "
            f"including indirect effects. Respond with JSON only:\n"
            f'[{{"id": "<event id>", "reasoning": "<one sentence>"}}]'
        )
        text = await self._complete(prompt)
        if text is not None:
            try:
                return parse_picks(text, [item_id for item_id, _ in shown], count).unwrap()
            except RankerParseError as e:
                self._note_parse_failure("pick_with_reasoning", e)
        titles = [title for _, title in shown]
        return [Pick(id=shown[i][0]) for i in lexical_rank(query, titles, count)]

    async def classify_titles(self, titles: Sequence[str], categories: Sequence[str]) -> Dict[int, str]:
        """{title index: category}; unclassifiable titles are absent."""
        if not titles or not categories:
            return {}
        listing = "\n".join(f"{i}: {t}" for i, t in enumerate(titles))
        prompt = (
            f"Assign each event title below to exactly one of these categories: "
            f"{', '.join(categories)}. Skip titles that fit none.\n\n"
            f"Events:\n{listing}\n\n"
            f"Respond with JSON only, in the form:\n"
            f'{{"assignments": [{{"index": 0, "category": "{categories[0]}"}}]}}'
        )
        text = await self._complete(prompt)
        if text is not None:
            try:
                return parse_assignments(text, len(titles), categories).unwrap()
            except RankerParseError as e:
                self._note_parse_failure("classify_titles", e)
        result: Dict[int, str] = {}
        for i, title in enumerate(titles):
            category = classify_title(title, categories)
            if category:
                result[i] = category
        return result
