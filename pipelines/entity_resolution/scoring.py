"""
Scoring Logic for Collaborator Name Resolution.

Responsibilities:
- Compute a deterministic similarity score in [0, 1] between a
  spreadsheet name and a directory name.
- Emit a score breakdown for explanation.

Non-Responsibilities:
- No directory access.
- No candidate selection.
- No threshold decisions.

Invariant:
Given identical inputs, this module must always return
the same score and explanation. The weights are fixed: changing them
moves the 0.72 acceptance boundary used by the resolver.
"""

from typing import Dict, Optional

from .features import containment_score, levenshtein_similarity, token_jaccard

JACCARD_WEIGHT = 0.5
LEVENSHTEIN_WEIGHT = 0.3
CONTAINMENT_WEIGHT = 0.2


def similarity(a: Optional[str], b: Optional[str]) -> float:
    return (
        JACCARD_WEIGHT * token_jaccard(a, b)
        + LEVENSHTEIN_WEIGHT * levenshtein_similarity(a, b)
        + CONTAINMENT_WEIGHT * containment_score(a, b)
    )


def score_breakdown(a: Optional[str], b: Optional[str]) -> Dict[str, float]:
    jaccard = token_jaccard(a, b)
    lev = levenshtein_similarity(a, b)
    contained = containment_score(a, b)
    return {
        "jaccard": round(jaccard, 4),
        "levenshtein": round(lev, 4),
        "containment": round(contained, 4),
        "score": round(
            JACCARD_WEIGHT * jaccard + LEVENSHTEIN_WEIGHT * lev + CONTAINMENT_WEIGHT * contained, 4
        ),
    }
