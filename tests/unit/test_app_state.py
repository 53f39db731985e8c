"""
Unit Tests for the Application State Controller
"""

import io

import pytest

from conftest import make_attempt, make_row, make_snapshot
from nclex_coach.app_state import AppStateController
from nclex_coach.import_merge import ImportReport
from nclex_coach.models import StateSnapshot


class TestAppStateController:
    """Test suite for AppStateController."""

    def test_hydrate_empty(self, store):
        controller = AppStateController(store)
        assert controller.hydrate() == StateSnapshot.empty()
        assert controller.hydrated

    def test_hydrate_corrupt_never_raises(self, store):
        store.data_dir.mkdir(parents=True)
        store.path.write_text("garbage", encoding="utf-8")
        assert AppStateController(store).hydrate() == StateSnapshot.empty()

    def test_mutate_before_hydrate_raises(self, store):
        store.save(make_snapshot(2, 0))
        controller = AppStateController(store)

        with pytest.raises(RuntimeError):
            controller.mutate(StateSnapshot.empty())
        assert len(store.load().questions) == 2

    def test_mutate_writes_through(self, controller, store):
        snapshot = make_snapshot(2, 3)
        controller.mutate(snapshot)

        assert controller.snapshot == snapshot
        assert AppStateController(store).hydrate() == snapshot

    def test_add_attempt_prepends(self, controller):
        first = make_attempt("q1", False, 1)
        second = make_attempt("q1", True, 2)
        controller.add_attempt(first)
        controller.add_attempt(second)
        assert controller.snapshot.attempts == [second, first]

    def test_import_rows(self, controller, store):
        report = controller.import_rows([make_row(), make_row(), make_row(stem="")])

        assert report == ImportReport(inserted=1, duplicates=1, skipped=1, total=1)
        assert len(store.load().questions) == 1

    def test_import_keeps_attempts(self, controller):
        controller.add_attempt(make_attempt("q1", True, 1))
        controller.import_rows([make_row()])
        assert len(controller.snapshot.attempts) == 1

    def test_import_csv(self, controller):
        csv_text = (
            "category,stem,optionA,optionB,optionC,optionD,correctIndex\n"
            "Cardiac,Expected finding?,Brady,Tachy,Fever,Rash,1\n"
        )
        report = controller.import_csv(io.StringIO(csv_text))
        assert report.inserted == 1
        assert controller.snapshot.questions[0].correct_indices == (1,)

    def test_reset(self, controller, store):
        controller.mutate(make_snapshot(3, 2))
        controller.reset()

        assert controller.snapshot.is_empty()
        assert store.load().is_empty()

    def test_listeners_notified_after_write(self, controller, store):
        seen = []
        controller.add_listener(lambda snap: seen.append(len(store.load().questions)))
        controller.mutate(make_snapshot(2, 0))
        assert seen == [2]

    def test_failing_listener_does_not_block_others(self, controller):
        seen = []

        def broken(snapshot):
            raise ValueError("boom")

        controller.add_listener(broken)
        controller.add_listener(seen.append)
        controller.mutate(make_snapshot(1, 0))
        assert len(seen) == 1

    def test_remove_listener(self, controller):
        seen = []
        controller.add_listener(seen.append)
        controller.remove_listener(seen.append)
        controller.mutate(make_snapshot(1, 0))
        assert seen == []

    def test_local_write_failure_keeps_memory_state(self, controller, monkeypatch):
        def failing_save(snapshot):
            raise OSError("disk full")

        monkeypatch.setattr(controller.store, "save", failing_save)
        snapshot = make_snapshot(1, 0)
        controller.mutate(snapshot)
        assert controller.snapshot == snapshot
