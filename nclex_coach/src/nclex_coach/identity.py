"""
Identity resolution

The state engine only needs to know whether someone is signed in and
their stable user id.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None


def identity_from_user(user: Any) -> Optional[Identity]:
    """Convert a Supabase auth user (or None) into an Identity."""
    if user is None or not getattr(user, "id", None):
        return None
    return Identity(id=str(user.id), email=getattr(user, "email", None))


def resolve_identity(supabase_client, access_token: Optional[str]) -> Optional[Identity]:
    """
    Validate an access token with Supabase Auth.

    Args:
        supabase_client: Supabase client instance (None when sync is disabled)
        access_token: JWT from the sign-in flow

    Returns:
        Identity, or None if the token is missing, invalid or expired
    """
    if supabase_client is None or not access_token:
        return None

    token = access_token.replace("Bearer ", "", 1)
    try:
        user_response = supabase_client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"⚠️ [Identity] Token validation failed: {e}")
        return None

    if not user_response or not getattr(user_response, "user", None):
        return None
    return identity_from_user(user_response.user)


def current_identity(supabase_client) -> Optional[Identity]:
    """Identity of the client's current auth session, if any."""
    if supabase_client is None:
        return None
    try:
        session = supabase_client.auth.get_session()
    except Exception as e:
        logger.warning(f"⚠️ [Identity] Could not read auth session: {e}")
        return None
    return identity_from_user(getattr(session, "user", None)) if session else None
