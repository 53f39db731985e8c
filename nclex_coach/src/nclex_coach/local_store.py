"""
Durable Local Store

Persists the whole StateSnapshot as a single JSON document named by a
fixed application key. Pure load/save, no merge logic.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from nclex_coach.config import APP_STORAGE_KEY
from nclex_coach.errors import MalformedPersistedDataError
from nclex_coach.models import StateSnapshot

logger = logging.getLogger(__name__)


class LocalStore:
    """
    File-backed key-value store for the state snapshot.

    Reads never raise through ``load()``: an absent or corrupt document
    yields an empty snapshot.
    """

    def __init__(self, data_dir: Path, key: str = APP_STORAGE_KEY):
        """
        Initialize LocalStore.

        Args:
            data_dir: Directory holding the document (created on first save)
            key: Application key, used as the document file name
        """
        self.data_dir = Path(data_dir)
        self.key = key

    @property
    def path(self) -> Path:
        return self.data_dir / f"{self.key}.json"

    def read(self) -> Optional[StateSnapshot]:
        """
        Read the persisted snapshot.

        Returns:
            StateSnapshot, or None if no document exists

        Raises:
            MalformedPersistedDataError: If the document cannot be parsed
        """
        if not self.path.exists():
            return None

        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedPersistedDataError(f"{self.path}: {e}") from e

        if not isinstance(data, dict):
            raise MalformedPersistedDataError(f"{self.path}: expected an object, got {type(data).__name__}")

        return StateSnapshot.from_dict(data)

    def load(self) -> StateSnapshot:
        """Read the persisted snapshot, falling back to an empty one."""
        try:
            snapshot = self.read()
        except MalformedPersistedDataError as e:
            logger.warning(f"⚠️ [LocalStore] Ignoring corrupt snapshot: {e}")
            return StateSnapshot.empty()

        if snapshot is None:
            logger.info(f"📁 [LocalStore] No snapshot at {self.path}, starting empty")
            return StateSnapshot.empty()

        logger.info(
            f"✅ [LocalStore] Loaded {len(snapshot.questions)} questions, "
            f"{len(snapshot.attempts)} attempts"
        )
        return snapshot

    def save(self, snapshot: StateSnapshot) -> None:
        """
        Write the snapshot, replacing the previous document atomically.

        Raises:
            OSError: If the document cannot be written
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False)

        fd, tmp_path = tempfile.mkstemp(dir=str(self.data_dir), prefix=f".{self.key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
