"""Tests for the session registry (term_party/sessions.py)."""

import pytest

from term_party.names import DirectoryNameRegistry
from term_party.sessions import SessionRegistry
from term_party.types import GhostSession, LiveSession, ghost_id, parse_ghost_id


@pytest.fixture
def changes():
    return []


@pytest.fixture
def registry(changes):
    return SessionRegistry(DirectoryNameRegistry(), on_change=lambda: changes.append(1))


def _live(session_id, path="/tmp/a"):
    return LiveSession(id=session_id, working_directory=path)


class TestLiveSessions:
    def test_add_appends_to_order(self, registry):
        registry.add(_live(1))
        registry.add(_live(2, "/tmp/b"))
        assert registry.ordered_ids() == [1, 2]
        assert 1 in registry
        assert len(registry) == 2

    def test_duplicate_id_rejected(self, registry):
        registry.add(_live(1))
        with pytest.raises(ValueError):
            registry.add(_live(1))

    def test_remove(self, registry):
        registry.add(_live(1))
        registry.add(_live(2))
        removed = registry.remove(1)
        assert removed.id == 1
        assert registry.ordered_ids() == [2]

    def test_remove_unknown_is_noop(self, registry, changes):
        assert registry.remove(99) is None
        assert changes == []

    def test_mutations_notify(self, registry, changes):
        registry.add(_live(1))
        registry.reorder([1])
        registry.remove(1)
        assert len(changes) == 3

    def test_missing_from_order_appended(self, registry):
        registry.add(_live(1))
        registry.add(_live(2))
        registry._order.remove(1)
        assert registry.ordered_ids() == [2, 1]


class TestReorder:
    def test_reorder(self, registry):
        for i in (1, 2, 3):
            registry.add(_live(i))
        assert registry.reorder([3, 1, 2]) == [3, 1, 2]
        assert [s.id for s in registry.live_sessions()] == [3, 1, 2]

    def test_dead_ids_dropped(self, registry):
        registry.add(_live(2))
        assert registry.reorder([1, 2]) == [2]
        assert registry.ordered_ids() == [2]

    def test_dead_ids_not_resurrected(self, registry):
        registry.add(_live(1))
        registry.add(_live(2))
        registry.remove(1)
        registry.reorder([1, 2])
        assert 1 not in registry.ordered_ids()
        assert 1 not in registry

    def test_duplicates_and_junk_ignored(self, registry):
        registry.add(_live(1))
        registry.add(_live(2))
        assert registry.reorder([2, 2, "ghost-0", None, "1"]) == [2, 1]

    def test_bools_and_floats_do_not_alias_ids(self, registry):
        registry.add(_live(1))
        registry.add(_live(2))
        assert registry.reorder([True, 1.9, 2.0, "2"]) == [2, 1]
        assert registry.reorder(["1", 2]) == [1, 2]

    def test_omitted_live_ids_kept_at_end(self, registry):
        for i in (1, 2, 3):
            registry.add(_live(i))
        assert registry.reorder([3]) == [3, 1, 2]


class TestGhosts:
    def test_remove_ghost(self, registry):
        registry.add_ghost("/tmp/a")
        registry.add_ghost("/tmp/b")
        removed = registry.remove_ghost(0)
        assert removed == GhostSession("/tmp/a")
        assert registry.ghosts() == [GhostSession("/tmp/b")]

    def test_remove_ghost_out_of_range(self, registry, changes):
        assert registry.remove_ghost(0) is None
        assert registry.remove_ghost(-1) is None
        assert changes == []

    def test_insert_ghost(self, registry):
        registry.add_ghost("/tmp/a")
        registry.add_ghost("/tmp/c")
        registry.insert_ghost(1, GhostSession("/tmp/b"))
        assert [g.working_directory for g in registry.ghosts()] == ["/tmp/a", "/tmp/b", "/tmp/c"]

    def test_ghost_is_not_live(self, registry):
        ghost = registry.add_ghost("/tmp/a")
        assert ghost.is_ghost
        assert len(registry) == 0
        assert registry.ordered_ids() == []


class TestListAll:
    def test_live_then_ghosts(self, registry):
        registry.add(_live(1, "/tmp/a"))
        registry.add_ghost("/tmp/g")
        registry.add(_live(2, "/tmp/b"))
        entries = registry.list_all()
        assert [e["id"] for e in entries] == [1, 2, "ghost-0"]
        assert [e["isGhost"] for e in entries] == [False, False, True]
        assert entries[0]["title"] == "a"
        assert entries[2]["workingDirectory"] == "/tmp/g"
        assert entries[0]["lastOutputTime"] is None

    def test_entries_are_tagged(self, registry):
        registry.add(_live(1, "/tmp/a"))
        registry.add_ghost("/tmp/g")
        live, ghost = registry.entries()
        assert isinstance(live, LiveSession)
        assert ghost == GhostSession("/tmp/g")

    def test_titles_follow_renames(self, registry):
        registry.add(_live(1, "/tmp/a"))
        registry.add_ghost("/tmp/a")
        registry.names.rename("/tmp/a", "Alpha")
        assert [e["title"] for e in registry.list_all()] == ["Alpha", "Alpha"]

    def test_persisted_records(self, registry):
        registry.add(_live(1, "/tmp/a"))
        registry.add(_live(2, "/tmp/b"))
        registry.add_ghost("/tmp/g")
        registry.reorder([2, 1])
        assert registry.persisted_records() == [
            {"workingDirectory": "/tmp/b"},
            {"workingDirectory": "/tmp/a"},
            {"workingDirectory": "/tmp/g"},
        ]


class TestGhostIds:
    def test_roundtrip(self):
        assert parse_ghost_id(ghost_id(3)) == 3

    def test_not_a_ghost(self):
        assert parse_ghost_id("7") is None
        assert parse_ghost_id("ghost-x") is None
        assert parse_ghost_id(7) is None
