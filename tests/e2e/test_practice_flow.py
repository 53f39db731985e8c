"""
End-to-End Tests for the practice workflow

Drives the wired application: import -> practice -> persistence -> sync.
"""

import asyncio
import random
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import FakeRemoteStore, make_row, make_snapshot
from nclex_coach.app import CoachApp, create_app
from nclex_coach.app_state import AppStateController
from nclex_coach.config import Settings
from nclex_coach.identity import Identity
from nclex_coach.import_merge import ImportReport
from nclex_coach.local_store import LocalStore
from nclex_coach.practice_session import PracticeMode, SessionSetup, SessionStage
from nclex_coach.reconciler import ReconcileState, RemoteReconciler


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", sync_enabled=False, sync_debounce_seconds=0.05)


def answer_current(session, index):
    session.toggle_selection(index)
    session.submit()
    session.advance()


class TestPracticeFlow:
    """Test suite for the offline practice workflow."""

    def test_import_practice_retry_scenario(self, settings):
        app = create_app(settings, configure_logging=False)
        assert not app.sync_available

        valid = make_row(category="Cardiac", stem="Expected finding after digoxin?", correctIndices="0")
        duplicate = make_row(category="cardiac", stem="  expected finding after DIGOXIN?  ", correctIndices="2")
        missing_stem = make_row(stem="")

        report = app.controller.import_rows([valid, duplicate, missing_stem])
        assert report == ImportReport(inserted=1, duplicates=1, skipped=1, total=1)

        session = app.new_practice_session(rng=random.Random(3))
        stage = session.start(SessionSetup(mode=PracticeMode.ALL, count=10), app.snapshot.questions, app.snapshot.attempts)
        assert stage is SessionStage.RUNNING
        assert len(session.run.pool) == 1

        missed_question = session.current_question
        answer_current(session, 3)

        assert session.stage is SessionStage.COMPLETED
        assert session.score() == (0, 1)
        assert len(app.snapshot.attempts) == 1

        session.retry_missed()
        assert session.stage is SessionStage.RUNNING
        assert session.run.pool == [missed_question]

    def test_missed_mode_follows_latest_attempt(self, settings):
        app = create_app(settings, configure_logging=False)
        app.controller.import_rows([make_row(stem="Q one?", correctIndices="0"), make_row(stem="Q two?", correctIndices="0")])
        clock = iter(range(1_000, 2_000, 10))
        session = app.new_practice_session(rng=random.Random(1), clock=lambda: next(clock))
        missed_setup = SessionSetup(mode=PracticeMode.MISSED)

        # Miss "Q one?"
        session.start(SessionSetup(keyword="one"), app.snapshot.questions, app.snapshot.attempts)
        answer_current(session, 1)

        session.start(missed_setup, app.snapshot.questions, app.snapshot.attempts)
        assert [q.stem for q in session.run.pool] == ["Q one?"]
        answer_current(session, 0)

        session.start(missed_setup, app.snapshot.questions, app.snapshot.attempts)
        assert session.stage is SessionStage.COMPLETED
        assert session.score() == (0, 0)

    def test_state_survives_restart(self, settings):
        app = create_app(settings, configure_logging=False)
        app.controller.import_rows([make_row()])
        session = app.new_practice_session()
        session.start(SessionSetup(), app.snapshot.questions, app.snapshot.attempts)
        answer_current(session, 1)

        reopened = create_app(settings, configure_logging=False)
        assert reopened.snapshot == app.snapshot
        assert reopened.snapshot.attempts[0].is_correct is True


class TestSyncedFlow:
    """Test suite for the signed-in workflow with a fake remote."""

    @pytest.mark.asyncio
    async def test_login_then_practice_replicates(self, settings):
        remote = FakeRemoteStore({"user-1": make_snapshot(5, 3).to_dict()})
        app = create_app(settings, remote=remote, configure_logging=False)
        app.controller.mutate(make_snapshot(2, 1, prefix="local"))

        await app.set_identity(Identity(id="user-1", email="nurse@example.com"))
        assert len(app.snapshot.questions) == 5
        assert len(app.snapshot.attempts) == 3

        session = app.new_practice_session(rng=random.Random(5))
        session.start(SessionSetup(count=3), app.snapshot.questions, app.snapshot.attempts)
        for _ in range(3):
            answer_current(session, 0)
        await asyncio.sleep(0.3)

        assert remote.pulls == ["user-1"]
        assert len(remote.pushes) == 1
        _, pushed = remote.pushes[0]
        assert len(pushed["attempts"]) == 6

        await app.set_identity(None)
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_restore_identity_from_client_session(self, settings):
        controller = AppStateController(LocalStore(settings.data_dir))
        controller.hydrate()
        remote = FakeRemoteStore()
        client = MagicMock()
        client.auth.get_session.return_value = SimpleNamespace(user=SimpleNamespace(id="user-9", email=None))
        app = CoachApp(settings, controller, RemoteReconciler(controller, remote, 0.05), client)

        await app.restore_identity()

        assert app.reconciler.state is ReconcileState.RECONCILED
        assert remote.pulls == ["user-9"]
        await app.shutdown()
