"""
Practice Session State Machine

Turns the question bank plus setup criteria into a scored, replayable
quiz run. The engine is the only producer of new Attempt records; it
hands them to an ``on_attempt`` callback and never mutates the bank.

Stages:
    SETUP -> RUNNING -> SUBMITTED -> (RUNNING | COMPLETED)
    COMPLETED -> SETUP (new_setup) | RUNNING (restart / retry missed)
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from nclex_coach.models import Attempt, Question
from nclex_coach.stats import ALL_CATEGORIES, missed_question_ids

logger = logging.getLogger(__name__)


class SessionStage(Enum):
    """Practice session stages."""
    SETUP = "setup"
    RUNNING = "running"
    SUBMITTED = "submitted"
    COMPLETED = "completed"


class PracticeMode(Enum):
    ALL = "all"
    MISSED = "missed"  # Latest attempt was incorrect


@dataclass(frozen=True)
class SessionSetup:
    """Filter criteria for a new run. Not persisted."""
    mode: PracticeMode = PracticeMode.ALL
    category: str = ALL_CATEGORIES
    keyword: str = ""
    sata_only: bool = False
    count: int = 10


@dataclass
class SessionRun:
    """Scoring state of one run over a fixed pool."""
    pool: List[Question] = field(default_factory=list)
    cursor: int = 0
    selection: Set[int] = field(default_factory=set)
    submitted: bool = False
    was_correct: bool = False
    session_correct: int = 0
    session_total: int = 0
    missed_ids: Set[str] = field(default_factory=set)

    def reset_scoring(self):
        """Back to the first question with a clean score."""
        self.cursor = 0
        self.selection = set()
        self.submitted = False
        self.was_correct = False
        self.session_correct = 0
        self.session_total = len(self.pool)
        self.missed_ids = set()


def build_pool(bank: List[Question], attempts, setup: SessionSetup) -> List[Question]:
    """
    Filter the bank down to the questions eligible for a session.

    Args:
        bank: Full question bank
        attempts: Attempt history (any order)
        setup: Filter criteria

    Returns:
        Eligible questions, in bank order
    """
    pool = list(bank)

    if setup.category and setup.category != ALL_CATEGORIES:
        pool = [q for q in pool if q.category == setup.category]

    keyword = (setup.keyword or "").strip().lower()
    if keyword:
        pool = [q for q in pool if keyword in q.stem.lower()]

    if setup.sata_only:
        pool = [q for q in pool if q.is_multi]

    if setup.mode is PracticeMode.MISSED:
        missed = missed_question_ids(attempts)
        pool = [q for q in pool if q.id in missed]

    return pool


def _now_ms() -> int:
    return int(time.time() * 1000)


class PracticeSession:
    """
    Drives one practice run at a time.

    Every operation that does not apply to the current stage is a no-op.
    """

    def __init__(
        self,
        on_attempt: Optional[Callable[[Attempt], None]] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], int]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize PracticeSession.

        Args:
            on_attempt: Receives each new Attempt (typically the controller's add_attempt)
            rng: Random source for shuffling
            clock: Millisecond timestamp source
            id_factory: Attempt id generator
        """
        self.on_attempt = on_attempt
        self.rng = rng or random.Random()
        self.clock = clock or _now_ms
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))

        self.stage = SessionStage.SETUP
        self.setup: Optional[SessionSetup] = None
        self.run: Optional[SessionRun] = None
        self._last_attempt_at = 0

    @property
    def current_question(self) -> Optional[Question]:
        if self.run is None or self.stage not in (SessionStage.RUNNING, SessionStage.SUBMITTED):
            return None
        return self.run.pool[self.run.cursor]

    def progress(self) -> Tuple[int, int]:
        """(1-based position, pool size)."""
        if self.run is None:
            return (0, 0)
        return (min(self.run.cursor + 1, len(self.run.pool)), len(self.run.pool))

    def score(self) -> Tuple[int, int]:
        """(session_correct, session_total)."""
        if self.run is None:
            return (0, 0)
        return (self.run.session_correct, self.run.session_total)

    def start(self, setup: SessionSetup, bank: List[Question], attempts) -> SessionStage:
        """
        Start a run: filter, shuffle, truncate to the requested count.

        An empty pool starts the run already COMPLETED with a zero total.
        """
        pool = build_pool(bank, attempts, setup)
        self.rng.shuffle(pool)
        self.setup = setup
        self._last_attempt_at = 0

        if not pool:
            self.run = SessionRun(pool=[], session_total=0)
            self.stage = SessionStage.COMPLETED
            logger.info("📝 [PracticeSession] Nothing to practice for this setup")
            return self.stage

        take = max(1, min(setup.count, len(pool)))
        self.run = SessionRun(pool=pool[:take])
        self.run.reset_scoring()
        self.stage = SessionStage.RUNNING
        logger.info(f"📝 [PracticeSession] Started {take} of {len(pool)} eligible questions ({setup.mode.value})")
        return self.stage

    def toggle_selection(self, index: int):
        if self.stage is not SessionStage.RUNNING:
            return
        question = self.current_question
        if not 0 <= index < len(question.options):
            return

        if question.is_multi:
            self.run.selection ^= {index}
        else:
            self.run.selection = {index}

    def clear_selection(self):
        if self.stage is SessionStage.RUNNING:
            self.run.selection = set()

    def submit(self) -> Optional[Attempt]:
        """
        Score the current selection and record an Attempt.

        Returns:
            The new Attempt, or None if nothing was submitted
        """
        if self.stage is not SessionStage.RUNNING or not self.run.selection:
            return None

        question = self.current_question
        is_correct = question.is_correct_selection(self.run.selection)

        # Attempt timestamps never go backwards within a session
        attempted_at = max(self.clock(), self._last_attempt_at)
        self._last_attempt_at = attempted_at

        attempt = Attempt(
            id=self.id_factory(),
            question_id=question.id,
            category=question.category,
            selected=tuple(sorted(self.run.selection)),
            is_correct=is_correct,
            attempted_at=attempted_at,
        )

        self.run.submitted = True
        self.run.was_correct = is_correct
        if is_correct:
            self.run.session_correct += 1
        else:
            self.run.missed_ids.add(question.id)
        self.stage = SessionStage.SUBMITTED

        if self.on_attempt is not None:
            self.on_attempt(attempt)
        return attempt

    def advance(self):
        if self.stage is not SessionStage.SUBMITTED:
            return

        if self.run.cursor + 1 >= len(self.run.pool):
            self.stage = SessionStage.COMPLETED
            logger.info(
                f"✅ [PracticeSession] Completed: {self.run.session_correct}/{self.run.session_total}, "
                f"{len(self.run.missed_ids)} missed"
            )
            return

        self.run.cursor += 1
        self.run.selection = set()
        self.run.submitted = False
        self.run.was_correct = False
        self.stage = SessionStage.RUNNING

    def restart_same_session(self):
        """Replay the same pool with a clean score."""
        if self.stage is not SessionStage.COMPLETED or not self.run.pool:
            return
        self.run.reset_scoring()
        self.stage = SessionStage.RUNNING

    def retry_missed(self):
        """Replay only the questions missed in this run."""
        if self.stage is not SessionStage.COMPLETED or not self.run.missed_ids:
            return
        self.run.pool = [q for q in self.run.pool if q.id in self.run.missed_ids]
        self.run.reset_scoring()
        self.stage = SessionStage.RUNNING
        logger.info(f"🔁 [PracticeSession] Retrying {len(self.run.pool)} missed question(s)")

    def new_setup(self):
        self.run = None
        self.setup = None
        self.stage = SessionStage.SETUP
