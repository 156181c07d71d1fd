"""
User Directory.

Responsibilities:
- Read-only lookups of staff users by name substring or by branch.
- Translate ORM rows into CandidateUser values.

Non-Responsibilities:
- No name normalization or scoring.
- No caching.
- No writes.

Invariant:
Repositories must not encode domain decisions.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from recaptacion.database import FOLD_NAME_SQL, User


class DirectoryError(Exception):
    """Raised when the user directory cannot be queried."""
    pass


@dataclass(frozen=True)
class CandidateUser:
    id: int
    nombre: str
    rol: Optional[str] = None
    local_id: Optional[int] = None


class UserDirectory(Protocol):
    def find_by_substring(
        self, tokens: Sequence[str], scope: Optional[int] = None, limit: int = 25
    ) -> List[CandidateUser]:
        ...

    def list_all(self, scope: Optional[int] = None, limit: int = 1000) -> List[CandidateUser]:
        ...


def _to_candidate(row: User) -> CandidateUser:
    return CandidateUser(id=row.id, nombre=row.nombre or "", rol=row.rol, local_id=row.local_id)


class SqlUserDirectory:
    """UserDirectory backed by the `users` table."""

    def __init__(self, session):
        self.session = session

    @property
    def source_key(self) -> str:
        """Database URL; directories over the same database share snapshots."""
        return str(self.session.get_bind().url)

    def _scoped(self, query, scope: Optional[int]):
        # local_id 0 / None: every branch
        if scope:
            query = query.filter(User.local_id == scope)
        return query

    def find_by_substring(
        self, tokens: Sequence[str], scope: Optional[int] = None, limit: int = 25
    ) -> List[CandidateUser]:
        """
        Substring match on the folded nombre, OR'd across tokens.

        Tokens are expected in normalize_name form. The column is folded
        the same way in SQL (fold_name, registered per connection), so
        case and accents never decide whether a user is found.
        """
        if not tokens:
            return []
        folded = getattr(func, FOLD_NAME_SQL)(User.nombre)
        query = self._scoped(
            self.session.query(User).filter(or_(*[folded.like(f"%{t}%") for t in tokens])),
            scope,
        )
        try:
            return [_to_candidate(u) for u in query.order_by(User.id.asc()).limit(limit).all()]
        except SQLAlchemyError as e:
            raise DirectoryError(f"User lookup failed: {e}") from e

    def list_all(self, scope: Optional[int] = None, limit: int = 1000) -> List[CandidateUser]:
        query = self._scoped(self.session.query(User), scope)
        try:
            rows = query.order_by(User.id.asc()).limit(limit).all()
        except SQLAlchemyError as e:
            raise DirectoryError(f"User listing failed: {e}") from e
        return [_to_candidate(u) for u in rows]
