"""
Tests for the time-boxed snapshot of directory users.
"""

import threading

import pytest

from pipelines.entity_resolution.snapshot_cache import (
    SnapshotCache,
    get_snapshot_cache,
    reset_snapshot_cache,
)
from pipelines.entity_resolution.resolver import CollaboratorResolver
from storage.repositories.users import DirectoryError

from conftest import FakeUserDirectory


class TestSnapshotCache:
    """Test staleness and scope-keyed invalidation."""

    def test_first_get_fetches_ordered_snapshot(self, directory, clock):
        """The first read lists the directory once, capped at 1000."""
        cache = SnapshotCache(directory, clock=clock)

        users = cache.get()

        assert [u.id for u in users] == [1, 2, 3, 4]
        assert directory.list_all_calls == [(None, 1000)]

    def test_reads_within_window_share_one_fetch(self, directory, clock):
        """Reads inside 60 seconds do not hit the directory again."""
        cache = SnapshotCache(directory, clock=clock)

        first = cache.get()
        clock.advance(59)
        second = cache.get()

        assert first is second
        assert len(directory.list_all_calls) == 1

    def test_stale_snapshot_is_refetched(self, directory, clock):
        """A read 61 seconds later refreshes the snapshot."""
        cache = SnapshotCache(directory, clock=clock)

        cache.get()
        clock.advance(61)
        cache.get()

        assert len(directory.list_all_calls) == 2
        assert cache.snapshot.captured_at == clock.now

    def test_exactly_sixty_seconds_is_stale(self, directory, clock):
        cache = SnapshotCache(directory, clock=clock)

        cache.get()
        clock.advance(60)
        cache.get()

        assert len(directory.list_all_calls) == 2

    def test_scope_change_refetches(self, directory, clock):
        """A snapshot taken for one branch is not reused for another."""
        cache = SnapshotCache(directory, clock=clock)

        branch_one = cache.get(1)
        branch_two = cache.get(2)
        branch_two_again = cache.get(2)

        assert [u.id for u in branch_one] == [1, 2]
        assert [u.id for u in branch_two] == [3, 4]
        assert branch_two_again is branch_two
        assert directory.list_all_calls == [(1, 1000), (2, 1000)]

    def test_empty_snapshot_is_never_reused(self, clock):
        """An empty listing is fetched again on every read."""
        empty = FakeUserDirectory([])
        cache = SnapshotCache(empty, clock=clock)

        cache.get()
        cache.get()

        assert len(empty.list_all_calls) == 2

    def test_refresh_replaces_whole_triple(self, directory, clock):
        """Users, timestamp and scope change together; old tuple untouched."""
        cache = SnapshotCache(directory, clock=clock)
        old = cache.get(1)
        old_snapshot = cache.snapshot

        clock.advance(120)
        cache.get(2)

        assert old_snapshot.scope == 1
        assert [u.id for u in old] == [1, 2]
        assert cache.snapshot is not old_snapshot
        assert cache.snapshot.scope == 2
        assert cache.snapshot.captured_at == clock.now

    def test_directory_error_propagates_and_keeps_old_snapshot(self, directory, clock):
        cache = SnapshotCache(directory, clock=clock)
        cache.get()
        previous = cache.snapshot

        directory.fail = True
        clock.advance(61)
        with pytest.raises(DirectoryError):
            cache.get()

        assert cache.snapshot is previous

    def test_invalidate(self, directory, clock):
        cache = SnapshotCache(directory, clock=clock)
        cache.get()

        cache.invalidate()
        cache.get()

        assert len(directory.list_all_calls) == 2

    def test_concurrent_readers_get_consistent_lists(self, directory):
        """Parallel readers always see a full, ordered snapshot."""
        cache = SnapshotCache(directory, staleness=0.0)
        seen = []

        def read():
            for _ in range(50):
                seen.append(tuple(u.id for u in cache.get()))

        threads = [threading.Thread(target=read) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(seen) == 200
        assert all(ids == (1, 2, 3, 4) for ids in seen)


    def test_snapshot_is_keyed_by_directory_source(self, directory, staff, clock):
        """A listing from one directory is never served for another."""
        cache = SnapshotCache(clock=clock)
        other = FakeUserDirectory(staff[:1])

        from_first = cache.get(None, directory)
        from_other = cache.get(None, other)

        assert [u.id for u in from_first] == [1, 2, 3, 4]
        assert [u.id for u in from_other] == [1]
        assert len(directory.list_all_calls) == 1
        assert len(other.list_all_calls) == 1

    def test_shared_source_key_shares_snapshot(self, staff, clock):
        """Two directories over the same data reuse one listing."""
        first = FakeUserDirectory(staff)
        second = FakeUserDirectory(staff)
        first.source_key = second.source_key = "sqlite:///data/recaptacion.db"
        cache = SnapshotCache(clock=clock)

        cache.get(None, first)
        cache.get(None, second)

        assert len(first.list_all_calls) == 1
        assert second.list_all_calls == []

    def test_directory_required(self, clock):
        with pytest.raises(ValueError):
            SnapshotCache(clock=clock).get()


class TestGlobalCache:
    """Test the process-wide cache accessor."""

    def test_same_instance_without_directory(self):
        first = get_snapshot_cache()

        assert get_snapshot_cache() is first
        assert first.default_directory is None

    def test_resolvers_refresh_through_their_own_directory(self, staff):
        """A resolver built earlier keeps using its own session after others appear."""
        a = FakeUserDirectory(staff)
        b = FakeUserDirectory([])
        resolver_a = CollaboratorResolver(a, get_snapshot_cache())
        CollaboratorResolver(b, get_snapshot_cache())

        resolver_a.resolve("Xiomara Quiroga", 1)

        assert len(a.list_all_calls) == 1
        assert b.list_all_calls == []

    def test_reset(self):
        first = get_snapshot_cache()
        reset_snapshot_cache()
        assert get_snapshot_cache() is not first
