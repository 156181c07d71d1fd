"""
Collaborator Resolution Orchestrator.

Responsibilities:
- Coordinate candidate selection.
- Invoke scoring logic.
- Apply the confidence threshold.
- Return an explainable resolution result.

Non-Responsibilities:
- No feature computation.
- No mutation of persistent state (the snapshot cache aside).
- No per-row error containment; directory errors propagate.

Invariant:
This module must be deterministic given the same directory contents.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from recaptacion.logger import get_logger
from recaptacion.normalize import normalize_name
from storage.repositories.users import CandidateUser, UserDirectory

from .candidate_selector import select_candidates
from .scoring import similarity
from .snapshot_cache import SnapshotCache

logger = get_logger()

MATCH_THRESHOLD = 0.72


@dataclass(frozen=True)
class Resolution:
    usuario_id: Optional[int]
    method: str  # empty | exact | fuzzy | fallback
    score: Optional[float] = None
    candidate: Optional[CandidateUser] = None


class CollaboratorResolver:
    """
    Maps a free-text collaborator name to a staff user id.

    Exact normalized matches win outright. Otherwise the best fuzzy
    candidate is accepted at a score of 0.72 or more; below that the
    caller's fallback id is returned.
    """

    def __init__(
        self,
        directory: UserDirectory,
        cache: SnapshotCache,
        scorer: Callable[[str, str], float] = similarity,
        threshold: float = MATCH_THRESHOLD,
    ):
        self.directory = directory
        self.cache = cache
        self.scorer = scorer
        self.threshold = threshold

    def resolve(
        self,
        raw_name: Optional[str],
        fallback_id: Optional[int] = None,
        scope: Optional[int] = None,
    ) -> Optional[int]:
        return self.resolve_details(raw_name, fallback_id, scope).usuario_id

    def resolve_details(
        self,
        raw_name: Optional[str],
        fallback_id: Optional[int] = None,
        scope: Optional[int] = None,
    ) -> Resolution:
        if not raw_name or not normalize_name(raw_name):
            logger.record_resolution("empty")
            return Resolution(usuario_id=fallback_id, method="empty")

        pool = select_candidates(raw_name, self.directory, self.cache, scope)
        if pool.exact is not None:
            logger.record_resolution("exact")
            logger.debug("Collaborator matched exactly", raw_name=raw_name, usuario_id=pool.exact.id)
            return Resolution(usuario_id=pool.exact.id, method="exact", score=1.0, candidate=pool.exact)

        best: Optional[CandidateUser] = None
        best_score = 0.0
        for c in pool.candidates:
            s = self.scorer(raw_name, c.nombre)
            if s > best_score:
                best_score = s
                best = c
            elif s == best_score and best is not None:
                # tie: longer display name wins
                if len(c.nombre or "") > len(best.nombre or ""):
                    best = c

        if best is not None and best_score >= self.threshold:
            logger.record_resolution("fuzzy")
            logger.debug(
                "Collaborator matched by similarity",
                raw_name=raw_name,
                usuario_id=best.id,
                nombre=best.nombre,
                score=round(best_score, 4),
            )
            return Resolution(usuario_id=best.id, method="fuzzy", score=best_score, candidate=best)

        logger.record_resolution("fallback")
        logger.debug(
            "No confident collaborator match, using fallback",
            raw_name=raw_name,
            best=best.nombre if best else None,
            score=round(best_score, 4),
            fallback_id=fallback_id,
        )
        return Resolution(usuario_id=fallback_id, method="fallback", score=best_score, candidate=best)
