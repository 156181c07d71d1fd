"""
Candidate Selection Logic.

Responsibilities:
- Select a bounded set of directory users plausibly named like the
  spreadsheet's collaborator.
- Try a targeted substring lookup first (first and last token), and
  widen to the cached snapshot only when that finds nobody.
- Detect an exact normalized match among the targeted candidates.

Non-Responsibilities:
- No scoring.
- No threshold decisions.

Invariant:
Directory errors are never caught here; they reach the caller.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from recaptacion.logger import get_logger
from recaptacion.normalize import normalize_name, tokenize
from storage.repositories.users import CandidateUser, UserDirectory

from .snapshot_cache import SnapshotCache

logger = get_logger()

SUBSTRING_LIMIT = 25


@dataclass(frozen=True)
class CandidatePool:
    candidates: Tuple[CandidateUser, ...]
    exact: Optional[CandidateUser] = None
    from_snapshot: bool = False


def search_terms(raw_name: str) -> list:
    tokens = tokenize(raw_name)
    if not tokens:
        return [normalize_name(raw_name)]
    if len(tokens) == 1:
        return [tokens[0]]
    return [tokens[0], tokens[-1]]


def select_candidates(
    raw_name: str,
    directory: UserDirectory,
    cache: SnapshotCache,
    scope: Optional[int] = None,
) -> CandidatePool:
    wanted = normalize_name(raw_name)
    terms = search_terms(raw_name)

    logger.record_directory_query()
    candidates = tuple(directory.find_by_substring(terms, scope=scope, limit=SUBSTRING_LIMIT))

    for c in candidates:
        if normalize_name(c.nombre) == wanted:
            return CandidatePool(candidates=(c,), exact=c)

    if not candidates:
        logger.debug("No substring candidates, widening to snapshot", terms=terms, scope=scope)
        return CandidatePool(candidates=tuple(cache.get(scope, directory)), from_snapshot=True)

    return CandidatePool(candidates=candidates)
