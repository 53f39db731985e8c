"""
Shared fixtures and builders for the state engine tests.
"""

import asyncio
import os
import sys
from typing import Dict, List, Optional

import pytest

# Add package source to path
project_root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
sys.path.insert(0, os.path.join(project_root, "nclex_coach", "src"))

from nclex_coach.app_state import AppStateController
from nclex_coach.errors import RemotePullError, RemotePushError
from nclex_coach.local_store import LocalStore
from nclex_coach.models import Attempt, Question, QuestionKind, StateSnapshot


def make_question(
    qid: str,
    category: str = "Pharmacology",
    stem: Optional[str] = None,
    kind: QuestionKind = QuestionKind.SINGLE,
    correct: Optional[List[int]] = None,
    options: Optional[List[str]] = None,
) -> Question:
    return Question(
        id=qid,
        category=category,
        stem=stem or f"Question {qid}?",
        options=tuple(options or ["A", "B", "C", "D"]),
        kind=kind,
        correct_indices=tuple(correct if correct is not None else [0]),
        rationale=f"Because {qid}.",
    )


def make_attempt(question_id: str, is_correct: bool, attempted_at: int, category: str = "Pharmacology") -> Attempt:
    return Attempt(
        id=f"att-{question_id}-{attempted_at}",
        question_id=question_id,
        category=category,
        selected=(0,) if is_correct else (1,),
        is_correct=is_correct,
        attempted_at=attempted_at,
    )


def make_row(category="Cardiac", stem="Which finding is expected?", options=None, **extra) -> Dict[str, str]:
    options = options or ["Bradycardia", "Tachycardia", "Fever", "Rash"]
    row = {
        "category": category,
        "stem": stem,
        "optionA": options[0],
        "optionB": options[1],
        "optionC": options[2],
        "optionD": options[3],
        "kind": "single",
        "correctIndices": "1",
        "rationale": "",
    }
    row.update(extra)
    return row


def make_snapshot(n_questions: int, n_attempts: int, prefix: str = "q") -> StateSnapshot:
    questions = [make_question(f"{prefix}{i}") for i in range(n_questions)]
    attempts = [
        make_attempt(questions[i % n_questions].id, i % 2 == 0, 1_000 + i)
        for i in range(n_attempts)
    ]
    return StateSnapshot(questions=questions, attempts=list(reversed(attempts)))


class FakeRemoteStore:
    """In-memory stand-in for the Supabase state table."""

    def __init__(self, documents: Optional[Dict[str, dict]] = None):
        self.documents = dict(documents or {})
        self.pulls: List[str] = []
        self.pushes: List[tuple] = []
        self.fail_pull = False
        self.fail_push = False
        self.pull_gate: Optional[asyncio.Event] = None
        self.push_gate: Optional[asyncio.Event] = None

    async def pull_state(self, user_id: str):
        self.pulls.append(user_id)
        if self.pull_gate is not None:
            await self.pull_gate.wait()
        if self.fail_pull:
            raise RemotePullError(user_id, ConnectionError("offline"))
        return self.documents.get(user_id)

    async def push_state(self, user_id: str, state: dict):
        if self.push_gate is not None:
            await self.push_gate.wait()
        if self.fail_push:
            raise RemotePushError(user_id, ConnectionError("offline"))
        self.pushes.append((user_id, state))
        self.documents[user_id] = state


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "data")


@pytest.fixture
def controller(store):
    ctrl = AppStateController(store)
    ctrl.hydrate()
    return ctrl


@pytest.fixture
def remote():
    return FakeRemoteStore()
