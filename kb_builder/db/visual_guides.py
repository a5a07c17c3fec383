"""Database operations for kb_visual_guides.

One row per session, enforced by a unique constraint on ``session_id``;
writes go through a native upsert on that constraint.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from kb_builder.core.logging import get_logger
from kb_builder.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_visual_guide(session_id: UUID) -> dict[str, Any] | None:
    """Latest guide for a session (most recently updated row)."""
    supabase = get_supabase()
    response = (
        supabase.table("kb_visual_guides")
        .select("*")
        .eq("session_id", str(session_id))
        .order("updated_at", desc=True)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def upsert_visual_guide(
    session_id: UUID,
    rules_json: dict[str, Any],
    derived_palettes_json: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create or replace the session's visual guide.

    The rule object is written whole in a single statement. Concurrent
    writers resolve to the last one.

    Returns:
        Stored guide row
    """
    supabase = get_supabase()
    row: dict[str, Any] = {
        "session_id": str(session_id),
        "rules_json": rules_json,
        "derived_palettes_json": derived_palettes_json or {},
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }

    # Upsert by unique constraint (session_id)
    response = (
        supabase.table("kb_visual_guides")
        .upsert(row, on_conflict="session_id")
        .execute()
    )
    if not response.data:
        raise ValueError("No data returned from visual guide upsert")

    guide = response.data[0]
    logger.info(f"Upserted visual guide {guide.get('id')}", extra={"session_id": str(session_id)})
    return guide
