"""Tests for persisted state (term_party/persistence.py)."""

import asyncio
import json

from term_party.persistence import (
    FAVORITES_FILE,
    NAMES_FILE,
    SESSIONS_FILE,
    PersistenceStore,
    SavedState,
)
from term_party.types import GhostSession


def _state():
    return SavedState(
        sessions=[{"workingDirectory": "/tmp/a"}, {"workingDirectory": "/tmp/b"}],
        favorites=[{"workingDirectory": "/tmp/a"}],
        names={"/tmp/a": "Alpha"},
    )


class TestLoad:
    def test_missing_state_is_empty(self, state_dir):
        state = PersistenceStore(state_dir).load()
        assert state == SavedState()

    def test_write_then_load(self, state_dir):
        store = PersistenceStore(state_dir)
        assert store.write_now(_state()) is True
        assert store.load() == _state()

    def test_malformed_record_is_empty(self, state_dir):
        store = PersistenceStore(state_dir)
        store.write_now(_state())
        (state_dir / SESSIONS_FILE).write_text("{not json")
        state = store.load()
        assert state.sessions == []
        # Other records unaffected
        assert state.names == {"/tmp/a": "Alpha"}

    def test_wrong_shapes_are_filtered(self, state_dir):
        state_dir.mkdir()
        (state_dir / SESSIONS_FILE).write_text(json.dumps([{"workingDirectory": "/x"}, {"cwd": "/y"}, 3, {"workingDirectory": ""}]))
        (state_dir / FAVORITES_FILE).write_text(json.dumps({"workingDirectory": "/x"}))
        (state_dir / NAMES_FILE).write_text(json.dumps({"/x": "X", "/y": 5}))
        state = PersistenceStore(state_dir).load()
        assert state.sessions == [{"workingDirectory": "/x"}]
        assert state.favorites == []
        assert state.names == {"/x": "X"}

    def test_ghosts_deduplicated(self):
        state = SavedState(
            sessions=[
                {"workingDirectory": "/tmp/a"},
                {"workingDirectory": "/tmp/b"},
                {"workingDirectory": "/tmp/a/"},
            ]
        )
        assert state.ghosts() == [GhostSession("/tmp/a"), GhostSession("/tmp/b")]


class TestWrite:
    def test_write_failure_is_swallowed(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = PersistenceStore(blocker / "state")
        assert store.write_now(_state()) is False

    def test_schedule_without_snapshot_does_nothing(self, state_dir):
        store = PersistenceStore(state_dir)
        store.schedule()
        assert not state_dir.exists()

    def test_schedule_outside_loop_writes_immediately(self, state_dir):
        store = PersistenceStore(state_dir)
        store.bind(_state)
        store.schedule()
        assert store.load() == _state()

    async def test_schedule_coalesces_writes(self, state_dir):
        store = PersistenceStore(state_dir, debounce=0.05)
        current = {"state": SavedState()}
        store.bind(lambda: current["state"])
        for i in range(10):
            current["state"] = SavedState(sessions=[{"workingDirectory": f"/tmp/{i}"}])
            store.schedule()
        await store.flush()
        assert store.write_count == 1
        assert store.load().sessions == [{"workingDirectory": "/tmp/9"}]

    async def test_flush_without_pending_is_noop(self, state_dir):
        store = PersistenceStore(state_dir)
        store.bind(_state)
        await store.flush()
        assert store.write_count == 0

    async def test_debounced_write_lands(self, state_dir):
        store = PersistenceStore(state_dir, debounce=0.01)
        store.bind(_state)
        store.schedule()
        for _ in range(100):
            if store.write_count:
                break
            await asyncio.sleep(0.01)
        assert store.load() == _state()
