"""
State Data Model

Defines the Question, Attempt and StateSnapshot records that make up the
persisted state, plus their document (dict) representation.

The document keys match the format written by the web client
(camelCase), so snapshots round-trip between both.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class QuestionKind(Enum):
    """Answer modes."""
    SINGLE = "single"  # Radio semantics
    MULTI = "sata"  # Select all that apply, checkbox semantics

    @classmethod
    def parse(cls, value: Optional[str]) -> "QuestionKind":
        """Anything other than "single" is the multi-select kind."""
        text = str(value or "single").strip().lower()
        return cls.SINGLE if text in ("", "single") else cls.MULTI


def parse_index_set(value: Any) -> List[int]:
    """
    Parse correct answer indices.

    Accepts a list of ints or the comma-separated string form ("0,2").
    Non-numeric parts are ignored.

    Returns:
        Sorted, deduplicated list of indices
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        parts = list(value)
    else:
        parts = str(value).split(",")

    indices = set()
    for part in parts:
        try:
            indices.add(int(str(part).strip()))
        except ValueError:
            continue
    return sorted(indices)


@dataclass(frozen=True)
class Question:
    """A bank question. Immutable once imported."""
    id: str
    category: str
    stem: str
    options: Tuple[str, ...]
    kind: QuestionKind = QuestionKind.SINGLE
    correct_indices: Tuple[int, ...] = ()
    rationale: str = ""

    @property
    def is_multi(self) -> bool:
        return self.kind is QuestionKind.MULTI

    def is_correct_selection(self, selection) -> bool:
        """Exact set equality, order independent."""
        chosen = set(selection)
        correct = set(self.correct_indices)
        return len(chosen) == len(correct) and chosen <= correct

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "stem": self.stem,
            "options": list(self.options),
            "kind": self.kind.value,
            "correctIndices": list(self.correct_indices),
            "rationale": self.rationale,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """
        Build a Question from its document form.

        Raises:
            KeyError/TypeError/ValueError: If a required field is missing or malformed
        """
        options = data["options"]
        if not isinstance(options, list) or len(options) < 2:
            raise ValueError("options must be a list with at least two entries")
        return cls(
            id=str(data["id"]),
            category=str(data["category"]),
            stem=str(data["stem"]),
            options=tuple(str(o) for o in options),
            kind=QuestionKind.parse(data.get("kind")),
            correct_indices=tuple(parse_index_set(data.get("correctIndices"))),
            rationale=str(data.get("rationale") or ""),
        )


@dataclass(frozen=True)
class Attempt:
    """One submitted answer. Append-only."""
    id: str
    question_id: str  # Weak reference, may dangle after a bank reset
    category: str
    selected: Tuple[int, ...]
    is_correct: bool
    attempted_at: int  # Epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "questionId": self.question_id,
            "category": self.category,
            "selected": list(self.selected),
            "isCorrect": self.is_correct,
            "attemptedAt": self.attempted_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attempt":
        return cls(
            id=str(data["id"]),
            question_id=str(data["questionId"]),
            category=str(data.get("category") or ""),
            selected=tuple(sorted(set(int(i) for i in data.get("selected") or []))),
            is_correct=bool(data["isCorrect"]),
            attempted_at=int(data.get("attemptedAt") or 0),
        )


@dataclass(frozen=True)
class StateSnapshot:
    """The full {questions, attempts} pair. Attempts are stored newest-first."""
    questions: List[Question] = field(default_factory=list)
    attempts: List[Attempt] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "StateSnapshot":
        return cls(questions=[], attempts=[])

    def is_empty(self) -> bool:
        return not self.questions and not self.attempts

    def with_questions(self, questions: List[Question]) -> "StateSnapshot":
        return StateSnapshot(questions=list(questions), attempts=list(self.attempts))

    def with_attempt(self, attempt: Attempt) -> "StateSnapshot":
        return StateSnapshot(questions=list(self.questions), attempts=[attempt, *self.attempts])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questions": [q.to_dict() for q in self.questions],
            "attempts": [a.to_dict() for a in self.attempts],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StateSnapshot":
        """
        Build a snapshot from its document form, tolerantly.

        A non-list ``questions``/``attempts`` becomes empty; individual
        malformed records are dropped with a warning.
        """
        if not isinstance(data, dict):
            return cls.empty()

        questions = _parse_records(data.get("questions"), Question.from_dict, "question")
        attempts = _parse_records(data.get("attempts"), Attempt.from_dict, "attempt")
        return cls(questions=questions, attempts=attempts)


def is_well_formed(document: Any) -> bool:
    """True iff both ``questions`` and ``attempts`` are present as lists."""
    return (
        isinstance(document, dict)
        and isinstance(document.get("questions"), list)
        and isinstance(document.get("attempts"), list)
    )


def _parse_records(raw: Any, parse, label: str) -> list:
    if not isinstance(raw, list):
        return []

    records = []
    dropped = 0
    for item in raw:
        try:
            records.append(parse(item))
        except (KeyError, TypeError, ValueError):
            dropped += 1
    if dropped:
        logger.warning(f"⚠️ [StateSnapshot] Dropped {dropped} malformed {label} record(s)")
    return records
