"""
Remote Reconciler

Keeps a best-effort replica of the local StateSnapshot in the remote
store, without ever blocking local interaction.

Per signed-in identity:
    UNRECONCILED -> RECONCILING -> RECONCILED

On login the remote document is pulled once. If it exists it replaces
local state ("cloud wins"); otherwise the local snapshot seeds the remote.
Only once RECONCILED does a local mutation schedule a debounced push.
Failures are logged and swallowed; local state stays authoritative.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Set

from nclex_coach.app_state import AppStateController
from nclex_coach.identity import Identity
from nclex_coach.models import StateSnapshot, is_well_formed

logger = logging.getLogger(__name__)


class ReconcileState(Enum):
    UNRECONCILED = "unreconciled"
    RECONCILING = "reconciling"
    RECONCILED = "reconciled"


class RemoteReconciler:
    """
    Login pull-or-seed plus debounced replication of local mutations.

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        controller: AppStateController,
        remote,
        debounce_seconds: float = 1.0,
    ):
        """
        Initialize RemoteReconciler.

        Args:
            controller: Owner of the local snapshot (already hydrated)
            remote: Store exposing async pull_state(user_id) / push_state(user_id, state)
            debounce_seconds: Quiet period before a push
        """
        self.controller = controller
        self.remote = remote
        self.debounce_seconds = debounce_seconds

        self.identity: Optional[Identity] = None
        self.state = ReconcileState.UNRECONCILED
        self.pull_count = 0
        self.push_count = 0
        self.last_push_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

        # Bumped on every identity edge; stale async work checks it and bails
        self._generation = 0
        self._pending_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._closed = False

        controller.add_listener(self._on_local_mutation)

    @property
    def has_pending_push(self) -> bool:
        return self._pending_task is not None and not self._pending_task.done()

    async def on_identity_change(self, identity: Optional[Identity]):
        """
        React to sign-in / sign-out.

        Reconciliation runs once per login: repeated calls with the same
        identity are no-ops.
        """
        if self._closed:
            return

        if identity is None:
            if self.identity is None:
                return
            logger.info(f"👋 [Reconciler] Signed out ({self.identity.id[:20]}...), sync paused")
            self._generation += 1
            self.identity = None
            self.state = ReconcileState.UNRECONCILED
            self._cancel_pending()
            return

        if self.identity is not None and self.identity.id == identity.id:
            return

        self._cancel_pending()
        self._generation += 1
        self.identity = identity
        self.state = ReconcileState.UNRECONCILED
        await self._reconcile()

    async def reconcile_now(self) -> bool:
        """
        Retry reconciliation after a failed pull.

        Returns:
            True if the current identity is reconciled afterwards
        """
        if not self._closed and self.identity is not None and self.state is ReconcileState.UNRECONCILED:
            await self._reconcile()
        return self.state is ReconcileState.RECONCILED

    async def _reconcile(self):
        generation = self._generation
        user_id = self.identity.id
        self.state = ReconcileState.RECONCILING
        logger.info(f"🔄 [Reconciler] Reconciling user {user_id[:20]}...")

        try:
            document = await self.remote.pull_state(user_id)
            self.pull_count += 1
        except Exception as e:
            if generation != self._generation:
                return
            self.state = ReconcileState.UNRECONCILED
            self.last_error = str(e)
            logger.warning(f"⚠️ [Reconciler] Pull failed, staying local-only: {e}")
            return

        if generation != self._generation:
            logger.info("🔄 [Reconciler] Identity changed during pull, discarding result")
            return

        if document is not None and is_well_formed(document):
            remote_snapshot = StateSnapshot.from_dict(document)
            # Listeners see RECONCILING here, so this does not echo a push
            self.controller.mutate(remote_snapshot)
            self.state = ReconcileState.RECONCILED
            logger.info(
                f"☁️ [Reconciler] Cloud state applied: {len(remote_snapshot.questions)} questions, "
                f"{len(remote_snapshot.attempts)} attempts"
            )
            return

        if document is not None:
            logger.warning("⚠️ [Reconciler] Remote document is malformed, reseeding from local state")

        seed = self.controller.snapshot
        await self._push(user_id, seed)
        if generation != self._generation:
            return

        self.state = ReconcileState.RECONCILED
        logger.info(f"🌱 [Reconciler] Seeded remote with {len(seed.questions)} questions")

        # Mutations made while the seed was in flight were not pushed
        if self.controller.snapshot is not seed:
            self.schedule_push(self.controller.snapshot)

    def _on_local_mutation(self, snapshot: StateSnapshot):
        if self._closed or self.identity is None or self.state is not ReconcileState.RECONCILED:
            return
        self.schedule_push(snapshot)

    def schedule_push(self, snapshot: StateSnapshot):
        """
        Push ``snapshot`` after the quiet period.

        Replaces any push still waiting out its quiet period. A push that
        is already in flight is left alone.
        """
        if self._closed or self.identity is None or self.state is not ReconcileState.RECONCILED:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("⚠️ [Reconciler] No running event loop, push skipped")
            return

        self._cancel_pending()
        self._pending_task = loop.create_task(
            self._debounced_push(self.identity.id, self._generation, snapshot)
        )

    async def _debounced_push(self, user_id: str, generation: int, snapshot: StateSnapshot):
        await asyncio.sleep(self.debounce_seconds)

        task = asyncio.current_task()
        if self._pending_task is task:
            self._pending_task = None
        if generation != self._generation:
            return

        self._inflight.add(task)
        try:
            await self._push(user_id, snapshot)
        finally:
            self._inflight.discard(task)

    async def _push(self, user_id: str, snapshot: StateSnapshot) -> bool:
        try:
            await self.remote.push_state(user_id, snapshot.to_dict())
        except Exception as e:
            self.last_error = str(e)
            logger.warning(f"⚠️ [Reconciler] Push failed, will retry on next change: {e}")
            return False

        self.push_count += 1
        self.last_push_at = datetime.now()
        logger.debug(
            f"☁️ [Reconciler] Pushed {len(snapshot.questions)} questions, "
            f"{len(snapshot.attempts)} attempts"
        )
        return True

    def _cancel_pending(self):
        if self._pending_task is not None and not self._pending_task.done():
            self._pending_task.cancel()
        self._pending_task = None

    async def flush(self) -> bool:
        """
        Push the current state now instead of waiting for the quiet period.

        Returns:
            True if a push was made and succeeded
        """
        if not self.has_pending_push:
            return False
        self._cancel_pending()
        return await self._push(self.identity.id, self.controller.snapshot)

    async def close(self):
        """
        Stop listening, cancel the pending push and wait for in-flight ones.

        A login reconciliation still waiting on its pull is abandoned: it
        neither applies the remote document nor seeds the remote.
        """
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        if self.state is ReconcileState.RECONCILING:
            self.state = ReconcileState.UNRECONCILED
        self.controller.remove_listener(self._on_local_mutation)

        task = self._pending_task
        self._cancel_pending()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("🛑 [Reconciler] Stopped")

    def get_status(self) -> Dict[str, Any]:
        """Get sync status."""
        return {
            "state": self.state.value,
            "user_id": self.identity.id if self.identity else None,
            "pending_push": self.has_pending_push,
            "last_push_at": self.last_push_at.isoformat() if self.last_push_at else None,
            "last_error": self.last_error,
        }
