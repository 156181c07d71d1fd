"""
Pytest configuration and shared fixtures.
"""

import os

os.environ.setdefault("RECAPTACION_LOG_TO_FILE", "0")

import pytest
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

import openpyxl

from recaptacion.database import User, init_database, get_session
from recaptacion.normalize import normalize_name
from pipelines.entity_resolution.snapshot_cache import SnapshotCache, reset_snapshot_cache
from pipelines.entity_resolution.resolver import CollaboratorResolver
from storage.repositories.users import CandidateUser, DirectoryError


class FakeUserDirectory:
    """
    In-memory UserDirectory that records every call.

    Substring matching folds case and accents, like the utf8mb4
    collations the production database uses.
    """

    def __init__(self, users: Sequence[CandidateUser], fail: bool = False):
        self.users = list(users)
        self.fail = fail
        self.substring_calls: List[tuple] = []
        self.list_all_calls: List[tuple] = []

    def find_by_substring(self, tokens, scope=None, limit=25):
        self.substring_calls.append((list(tokens), scope, limit))
        if self.fail:
            raise DirectoryError("directory unavailable")
        found = [
            u for u in self.users
            if (not scope or u.local_id == scope)
            and any(t in normalize_name(u.nombre) for t in tokens)
        ]
        return found[:limit]

    def list_all(self, scope=None, limit=1000):
        self.list_all_calls.append((scope, limit))
        if self.fail:
            raise DirectoryError("directory unavailable")
        found = [u for u in sorted(self.users, key=lambda u: u.id) if not scope or u.local_id == scope]
        return found[:limit]


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_snapshot_cache():
    """Every test starts without a process-wide snapshot."""
    reset_snapshot_cache()
    yield
    reset_snapshot_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def staff() -> List[CandidateUser]:
    """Sales collaborators across two branches."""
    return [
        CandidateUser(id=1, nombre="Juan Pérez", rol="vendedor", local_id=1),
        CandidateUser(id=2, nombre="Juana Perez", rol="vendedor", local_id=1),
        CandidateUser(id=3, nombre="María López", rol="vendedor", local_id=2),
        CandidateUser(id=4, nombre="Carlos Gómez", rol="coordinador", local_id=2),
    ]


@pytest.fixture
def directory(staff) -> FakeUserDirectory:
    return FakeUserDirectory(staff)


@pytest.fixture
def make_resolver(clock) -> Callable[..., CollaboratorResolver]:
    """Build a resolver over a directory double with its own cache."""
    def _make(directory, **kwargs) -> CollaboratorResolver:
        cache = SnapshotCache(directory, clock=clock)
        return CollaboratorResolver(directory, cache, **kwargs)
    return _make


@pytest.fixture
def db_path(tmp_path) -> Path:
    path = tmp_path / "recaptacion.db"
    init_database(path)
    return path


@pytest.fixture
def db_session(db_path):
    """Create a temporary database and return a session."""
    session = get_session(db_path)
    yield session
    session.close()


@pytest.fixture
def seeded_session(db_session):
    """Session over a database holding a few staff users."""
    db_session.add_all([
        User(id=1, nombre="Juan Pérez", rol="vendedor", local_id=1),
        User(id=2, nombre="Juana Perez", rol="vendedor", local_id=1),
        User(id=5, nombre="María López", rol="vendedor", local_id=2),
        User(id=6, nombre="Carlos Gómez", rol="coordinador", local_id=2),
    ])
    db_session.commit()
    return db_session


@pytest.fixture
def make_workbook(tmp_path) -> Callable[..., Path]:
    """Write an .xlsx with a header row and data rows, return its path."""
    def _make(headers: List[str], rows: List[List[Any]], name: str = "planilla.xlsx") -> Path:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(headers)
        for r in rows:
            ws.append(r)
        path = tmp_path / name
        wb.save(path)
        return path
    return _make
