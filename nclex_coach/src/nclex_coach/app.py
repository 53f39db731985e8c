"""
Application bootstrap

Builds the object graph once per process (settings -> local store ->
controller -> optional Supabase-backed reconciler) and tears it down at
shutdown. Presentation layers talk to the returned CoachApp.
"""

import logging
from typing import Optional

from nclex_coach.app_state import AppStateController
from nclex_coach.config import Settings, load_settings
from nclex_coach.identity import Identity, current_identity
from nclex_coach.local_store import LocalStore
from nclex_coach.logger import get_logger, setup_logging
from nclex_coach.models import StateSnapshot
from nclex_coach.practice_session import PracticeSession
from nclex_coach.reconciler import RemoteReconciler
from nclex_coach.remote_store import SupabaseStateStore
from nclex_coach.supabase_client import create_supabase_client

logger = get_logger("nclex_coach.app")


class CoachApp:
    """Wired components for one process."""

    def __init__(
        self,
        settings: Settings,
        controller: AppStateController,
        reconciler: Optional[RemoteReconciler] = None,
        supabase_client=None,
    ):
        self.settings = settings
        self.controller = controller
        self.reconciler = reconciler
        self.supabase = supabase_client

    @property
    def sync_available(self) -> bool:
        return self.reconciler is not None

    @property
    def snapshot(self) -> StateSnapshot:
        return self.controller.snapshot

    def new_practice_session(self, **kwargs) -> PracticeSession:
        """Session engine whose attempts are recorded in the controller."""
        return PracticeSession(on_attempt=self.controller.add_attempt, **kwargs)

    async def set_identity(self, identity: Optional[Identity]):
        """Forward a sign-in / sign-out edge to the reconciler."""
        if self.reconciler is not None:
            await self.reconciler.on_identity_change(identity)

    async def restore_identity(self):
        """Pick up a session the Supabase client already holds, if any."""
        if self.supabase is not None:
            await self.set_identity(current_identity(self.supabase))

    async def shutdown(self):
        if self.reconciler is not None:
            await self.reconciler.close()
        logger.info("🛑 Shut down")


def create_app(
    settings: Optional[Settings] = None,
    remote=None,
    configure_logging: bool = True,
) -> CoachApp:
    """
    Construct and hydrate the application.

    Args:
        settings: Settings (loaded from the environment if omitted)
        remote: Remote state store override (defaults to Supabase when configured)
        configure_logging: Install the colored console handler

    Returns:
        CoachApp with hydrated state
    """
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(level=getattr(logging, settings.log_level, logging.INFO))

    store = LocalStore(settings.data_dir)
    controller = AppStateController(store)
    snapshot = controller.hydrate()

    supabase_client = None
    if remote is None:
        supabase_client = create_supabase_client(settings)
        if supabase_client is not None:
            remote = SupabaseStateStore(supabase_client)

    reconciler = None
    if remote is not None:
        reconciler = RemoteReconciler(controller, remote, debounce_seconds=settings.sync_debounce_seconds)

    logger.success("State engine ready", data={
        "data_file": str(store.path),
        "questions": len(snapshot.questions),
        "attempts": len(snapshot.attempts),
        "sync": "enabled" if reconciler else "disabled",
    })
    return CoachApp(settings, controller, reconciler, supabase_client)
