"""
Supabase client construction

The client is built once by the application bootstrap and passed to the
components that need it.
"""

import logging
from typing import Optional

from supabase import Client, create_client

from nclex_coach.config import Settings

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Optional[Client]:
    """
    Create a Supabase client from settings.

    Returns:
        Client, or None when sync is disabled or not configured
    """
    if not settings.sync_enabled:
        logger.info("☁️ [Supabase] Sync disabled by SYNC_ENABLED")
        return None

    if not settings.supabase_url or not settings.supabase_key:
        logger.info("☁️ [Supabase] SUPABASE_URL/SUPABASE_KEY not set, sync disabled")
        return None

    return create_client(settings.supabase_url, settings.supabase_key)
