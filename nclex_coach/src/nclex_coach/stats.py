"""
Derived Statistics

Pure views over the current snapshot, recomputed on demand.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List

from nclex_coach.models import Attempt, Question

ALL_CATEGORIES = "ALL"
UNCATEGORIZED = "Uncategorized"


def latest_attempt_by_question(attempts: Iterable[Attempt]) -> Dict[str, Attempt]:
    """
    Latest attempt per question id.

    Sorts by ``attempted_at`` descending instead of trusting container
    order. The sort is stable, so ties keep newest-first storage order.
    """
    ordered = sorted(attempts, key=lambda a: a.attempted_at, reverse=True)
    latest: Dict[str, Attempt] = {}
    for attempt in ordered:
        if attempt.question_id not in latest:
            latest[attempt.question_id] = attempt
    return latest


def missed_question_ids(attempts: Iterable[Attempt]) -> set:
    """Ids of questions whose latest attempt was incorrect."""
    return {qid for qid, attempt in latest_attempt_by_question(attempts).items() if not attempt.is_correct}


def categories(questions: Iterable[Question]) -> List[str]:
    """Category choices for session setup, "ALL" first."""
    names = sorted({q.category for q in questions if q.category})
    return [ALL_CATEGORIES, *names]


def _percent(part: int, whole: int) -> int:
    # Half-up like Math.round
    return int(part * 100 / whole + 0.5) if whole else 0


@dataclass(frozen=True)
class StatsOverview:
    total_attempts: int
    unique_attempted: int
    unique_mastered: int
    overall_accuracy: int  # Percent, all attempts
    mastery_percent: int  # Percent, latest attempt per question


@dataclass(frozen=True)
class CategoryAccuracy:
    category: str
    correct: int
    total: int
    accuracy: int


def overview(attempts: List[Attempt]) -> StatsOverview:
    latest = latest_attempt_by_question(attempts)
    mastered = sum(1 for a in latest.values() if a.is_correct)
    correct = sum(1 for a in attempts if a.is_correct)
    return StatsOverview(
        total_attempts=len(attempts),
        unique_attempted=len(latest),
        unique_mastered=mastered,
        overall_accuracy=_percent(correct, len(attempts)),
        mastery_percent=_percent(mastered, len(latest)),
    )


def weak_areas(attempts: Iterable[Attempt]) -> List[CategoryAccuracy]:
    """Accuracy per category over all attempts, weakest first."""
    totals: Dict[str, List[int]] = {}
    for attempt in attempts:
        bucket = totals.setdefault(attempt.category or UNCATEGORIZED, [0, 0])
        bucket[1] += 1
        if attempt.is_correct:
            bucket[0] += 1

    rows = [
        CategoryAccuracy(category=name, correct=correct, total=total, accuracy=_percent(correct, total))
        for name, (correct, total) in totals.items()
    ]
    rows.sort(key=lambda row: row.accuracy)
    return rows
