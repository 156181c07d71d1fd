"""
Feature Extraction for Collaborator Name Resolution.

Responsibilities:
- Compute the individual similarity signals between two names:
  token Jaccard, Levenshtein similarity, substring containment.
- Every signal works on the normalized form of its inputs.

Non-Responsibilities:
- No weighting logic.
- No threshold logic.
- No directory access.

Invariant:
Every feature is symmetric and lies in [0, 1].
"""

from typing import Optional

from recaptacion.normalize import normalize_name, tokenize


def token_jaccard(a: Optional[str], b: Optional[str]) -> float:
    ta = set(tokenize(a))
    tb = set(tokenize(b))
    if not ta and not tb:
        return 1.0
    union = len(ta | tb)
    if not union:
        return 0.0
    return len(ta & tb) / union


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance between two already-normalized strings.

    Insert, delete and substitute each cost 1. Keeps a single rolling
    row sized to the shorter string.
    """
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    row = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        prev_diag = row[0]
        row[0] = i
        for j, cb in enumerate(b, start=1):
            above = row[j]
            row[j] = min(
                above + 1,
                row[j - 1] + 1,
                prev_diag + (0 if ca == cb else 1),
            )
            prev_diag = above
    return row[-1]


def levenshtein_similarity(a: Optional[str], b: Optional[str]) -> float:
    na = normalize_name(a)
    nb = normalize_name(b)
    max_len = max(len(na), len(nb)) or 1
    return 1 - levenshtein_distance(na, nb) / max_len


def containment_score(a: Optional[str], b: Optional[str]) -> float:
    na = normalize_name(a)
    nb = normalize_name(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    if na in nb or nb in na:
        ratio = min(len(na), len(nb)) / max(len(na), len(nb))
        return 0.6 + 0.4 * ratio
    return 0.0
