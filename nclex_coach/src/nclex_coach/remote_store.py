"""
Remote State Store

One ``state`` document per user in the Supabase ``app_state`` table:

    app_state(user_id uuid primary key, state jsonb, updated_at timestamptz)

Any object exposing the async ``pull_state``/``push_state`` pair below
can stand in for it (the reconciler only relies on those two).
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from postgrest.exceptions import APIError

from nclex_coach.errors import RemotePullError, RemotePushError

logger = logging.getLogger(__name__)

STATE_TABLE = "app_state"

# Older postgrest clients raise this from maybe_single() when no row matches
NO_ROWS_CODE = "204"


class SupabaseStateStore:
    """Reads and writes snapshot documents with the Supabase client."""

    def __init__(self, supabase_client, table: str = STATE_TABLE):
        """
        Initialize SupabaseStateStore.

        Args:
            supabase_client: Supabase client instance
            table: Table holding one row per user
        """
        self.supabase = supabase_client
        self.table = table

    def _select_state(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.supabase.table(self.table) \
                .select('state') \
                .eq('user_id', user_id) \
                .maybe_single() \
                .execute()
        except APIError as e:
            if str(e.code) == NO_ROWS_CODE:
                return None
            raise

        # Depending on the client version "no row" is either None or empty data
        if result is None or not result.data:
            return None
        return result.data.get('state')

    def _upsert_state(self, user_id: str, state: Dict[str, Any]) -> None:
        self.supabase.table(self.table) \
            .upsert({
                'user_id': user_id,
                'state': state,
                'updated_at': datetime.now(timezone.utc).isoformat(),
            }) \
            .execute()

    async def pull_state(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the user's state document.

        Returns:
            The stored document, or None if the user has no row

        Raises:
            RemotePullError: If the request fails
        """
        try:
            return await asyncio.to_thread(self._select_state, user_id)
        except Exception as e:
            raise RemotePullError(user_id, e) from e

    async def push_state(self, user_id: str, state: Dict[str, Any]) -> None:
        """
        Upsert the user's state document, stamping ``updated_at``.

        Raises:
            RemotePushError: If the request fails
        """
        try:
            await asyncio.to_thread(self._upsert_state, user_id, state)
        except Exception as e:
            raise RemotePushError(user_id, e) from e
        logger.debug(f"☁️ [RemoteStore] Pushed state for user {user_id[:20]}...")
