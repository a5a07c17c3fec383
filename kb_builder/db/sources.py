"""Database operations for kb_sources (append-only citations)."""

from typing import Any, Iterable
from uuid import UUID

from kb_builder.db.supabase_client import get_supabase


def insert_sources(session_id: UUID, citations: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Append citations for a session.

    Args:
        session_id: Session UUID
        citations: Dicts with url, snippet, provider

    Returns:
        Inserted rows (empty list when there is nothing to insert)
    """
    rows = [
        {
            "session_id": str(session_id),
            "url": c["url"],
            "snippet": c.get("snippet") or None,
            "provider": c.get("provider", "perplexity"),
        }
        for c in citations
    ]
    if not rows:
        return []

    supabase = get_supabase()
    response = supabase.table("kb_sources").insert(rows).execute()
    return response.data or []


def list_sources(session_id: UUID) -> list[dict[str, Any]]:
    supabase = get_supabase()
    response = (
        supabase.table("kb_sources")
        .select("*")
        .eq("session_id", str(session_id))
        .order("created_at", desc=False)
        .execute()
    )
    return response.data or []
