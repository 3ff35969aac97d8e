"""
Keyword fallback scorer.

Used when no embedding backend is available. Scores passages by how many
query words they contain; deterministic and independent of provider state.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from plan_qa.config import RETRIEVAL
from plan_qa.retrieval.chunks import Passage, ScoredPassage

_NON_WORD = re.compile(r"\W+")


def keyword_tokens(query: str, min_length: int | None = None) -> list[str]:
    """
    Lowercase query words long enough to be meaningful.

    Repeated words are kept; each occurrence counts towards a passage's score.
    """
    floor = max(1, RETRIEVAL.MIN_KEYWORD_LENGTH if min_length is None else min_length)
    return [word for word in _NON_WORD.split(query.lower()) if len(word) >= floor]


def keyword_rank(
    query: str,
    passages: Sequence[Passage],
    min_length: int | None = None,
) -> list[ScoredPassage]:
    """
    Rank passages by keyword overlap with the query.

    A passage scores one point per query word found as a substring of its
    lowercased text. Ties keep the input order.

    Args:
        query: Free-text question.
        passages: Candidate passages in corpus order.
        min_length: Minimum word length; defaults to config (4, i.e. longer than 3).

    Returns:
        All passages, highest score first.
    """
    keywords = keyword_tokens(query, min_length)
    scored = []
    for passage in passages:
        text = passage.text.lower()
        score = sum(1 for word in keywords if word in text)
        scored.append(ScoredPassage(passage=passage, score=float(score)))

    # list.sort is stable, so equal scores stay in corpus order
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored
