"""Database operations for kb_chat_messages (append-only per session)."""

from typing import Any
from uuid import UUID

from kb_builder.db.supabase_client import get_supabase


def insert_chat_message(
    session_id: UUID,
    role: str,
    content: str,
    context_step: str | None = None,
) -> dict[str, Any]:
    supabase = get_supabase()
    data: dict[str, Any] = {
        "session_id": str(session_id),
        "role": role,
        "content": content,
    }
    if context_step:
        data["context_step"] = context_step

    response = supabase.table("kb_chat_messages").insert(data).execute()
    if not response.data:
        raise ValueError("No data returned from chat message insert")
    return response.data[0]


def list_chat_messages(session_id: UUID, limit: int = 100) -> list[dict[str, Any]]:
    """Chat history, oldest first."""
    supabase = get_supabase()
    response = (
        supabase.table("kb_chat_messages")
        .select("*")
        .eq("session_id", str(session_id))
        .order("created_at", desc=False)
        .limit(limit)
        .execute()
    )
    return response.data or []


def clear_chat_messages(session_id: UUID) -> int:
    """Delete a session's chat history. Returns number of deleted rows."""
    supabase = get_supabase()
    response = (
        supabase.table("kb_chat_messages").delete().eq("session_id", str(session_id)).execute()
    )
    return len(response.data or [])
