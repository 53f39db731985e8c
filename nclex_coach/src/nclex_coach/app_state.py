"""
Application State Controller

Owns the authoritative in-memory StateSnapshot. Every mutation is written
through to the local store before listeners (presentation layers, the
remote reconciler) are told about it.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List

from nclex_coach.import_merge import ImportReport, merge_questions, read_csv_rows
from nclex_coach.local_store import LocalStore
from nclex_coach.models import Attempt, StateSnapshot

logger = logging.getLogger(__name__)

Listener = Callable[[StateSnapshot], None]


class AppStateController:
    """Single owner of the {questions, attempts} snapshot."""

    def __init__(self, store: LocalStore):
        """
        Initialize AppStateController.

        Args:
            store: Durable local store used for write-through
        """
        self.store = store
        self._snapshot = StateSnapshot.empty()
        self._hydrated = False
        self._listeners: List[Listener] = []

    @property
    def snapshot(self) -> StateSnapshot:
        return self._snapshot

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    def add_listener(self, listener: Listener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def hydrate(self) -> StateSnapshot:
        """Load the persisted snapshot. Never raises."""
        self._snapshot = self.store.load()
        self._hydrated = True
        return self._snapshot

    def mutate(self, next_snapshot: StateSnapshot):
        """
        Replace the snapshot and persist it.

        The local write completes before this returns.

        Raises:
            RuntimeError: If called before hydrate()
        """
        if not self._hydrated:
            raise RuntimeError("hydrate() must run before the state can be mutated")

        self._snapshot = next_snapshot
        try:
            self.store.save(next_snapshot)
        except OSError as e:
            logger.error(f"❌ [AppState] Local write failed, keeping in-memory state: {e}")

        for listener in list(self._listeners):
            try:
                listener(next_snapshot)
            except Exception as e:
                logger.error(f"❌ [AppState] Listener {listener!r} failed: {e}", exc_info=True)

    def add_attempt(self, attempt: Attempt):
        """Record a new attempt (history is kept newest-first)."""
        self.mutate(self._snapshot.with_attempt(attempt))

    def import_rows(self, rows: Iterable[Dict[str, Any]]) -> ImportReport:
        bank, report = merge_questions(self._snapshot.questions, rows)
        self.mutate(self._snapshot.with_questions(bank))
        return report

    def import_csv(self, source) -> ImportReport:
        """
        Import questions from a CSV file path or file-like object.

        Raises:
            ImportFileError: If the file cannot be read
        """
        return self.import_rows(read_csv_rows(source))

    def reset(self):
        """Drop every question and attempt. Confirmation is the caller's job."""
        logger.warning(
            f"⚠️ [AppState] Resetting {len(self._snapshot.questions)} questions and "
            f"{len(self._snapshot.attempts)} attempts"
        )
        self.mutate(StateSnapshot.empty())
