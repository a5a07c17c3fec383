"""Database operations for kb_sessions."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from kb_builder.core.logging import get_logger
from kb_builder.db.supabase_client import get_supabase

logger = get_logger(__name__)


def create_session(
    user_id: UUID,
    language: str = "en-US",
    company_url: str | None = None,
    step: str = "welcome",
) -> dict[str, Any]:
    """
    Create a wizard session.

    Returns:
        Created session row
    """
    supabase = get_supabase()
    data: dict[str, Any] = {
        "user_id": str(user_id),
        "language": language,
        "step": step,
    }
    if company_url:
        data["company_url"] = company_url

    response = supabase.table("kb_sessions").insert(data).execute()
    if not response.data:
        raise ValueError("No data returned from session insert")

    session = response.data[0]
    logger.info(f"Created session {session['id']}", extra={"session_id": str(session["id"])})
    return session


def get_session(session_id: UUID) -> dict[str, Any] | None:
    supabase = get_supabase()
    response = (
        supabase.table("kb_sessions")
        .select("*")
        .eq("id", str(session_id))
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def update_session(session_id: UUID, updates: dict[str, Any]) -> dict[str, Any]:
    """
    Update session fields (step, company_url, language).

    Returns:
        Updated session row
    """
    supabase = get_supabase()
    payload = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
    response = supabase.table("kb_sessions").update(payload).eq("id", str(session_id)).execute()
    if not response.data:
        raise ValueError(f"Session {session_id} not updated")
    return response.data[0]
