"""NCLEX Coach state engine: practice sessions, local persistence and cloud sync."""

from nclex_coach.app import CoachApp, create_app
from nclex_coach.app_state import AppStateController
from nclex_coach.identity import Identity
from nclex_coach.import_merge import ImportReport, merge_questions, read_csv_rows
from nclex_coach.local_store import LocalStore
from nclex_coach.models import Attempt, Question, QuestionKind, StateSnapshot
from nclex_coach.practice_session import (
    PracticeMode,
    PracticeSession,
    SessionSetup,
    SessionStage,
    build_pool,
)
from nclex_coach.reconciler import ReconcileState, RemoteReconciler

__all__ = [
    "AppStateController",
    "Attempt",
    "CoachApp",
    "Identity",
    "ImportReport",
    "LocalStore",
    "PracticeMode",
    "PracticeSession",
    "Question",
    "QuestionKind",
    "ReconcileState",
    "RemoteReconciler",
    "SessionSetup",
    "SessionStage",
    "StateSnapshot",
    "build_pool",
    "create_app",
    "merge_questions",
    "read_csv_rows",
]
