"""Database operations for kb_documents.

Regeneration inserts a new row; the most recently created row per
(session_id, doc_type) is the current document.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from kb_builder.core.logging import get_logger
from kb_builder.db.supabase_client import get_supabase

logger = get_logger(__name__)


def insert_document(
    session_id: UUID,
    doc_type: str,
    content_md: str,
    title: str | None = None,
    content_json: dict[str, Any] | None = None,
    status: str = "draft",
) -> dict[str, Any]:
    """
    Insert a new document version.

    Args:
        session_id: Session UUID
        doc_type: Step / document category
        content_md: Markdown body
        title: Optional title
        content_json: Optional structured payload
        status: draft or approved

    Returns:
        Created document row
    """
    supabase = get_supabase()
    data: dict[str, Any] = {
        "session_id": str(session_id),
        "doc_type": doc_type,
        "content_md": content_md,
        "status": status,
    }
    if title is not None:
        data["title"] = title
    if content_json is not None:
        data["content_json"] = content_json

    response = supabase.table("kb_documents").insert(data).execute()
    if not response.data:
        raise ValueError("No data returned from document insert")
    return response.data[0]


def get_document(document_id: UUID) -> dict[str, Any] | None:
    supabase = get_supabase()
    response = (
        supabase.table("kb_documents").select("*").eq("id", str(document_id)).limit(1).execute()
    )
    return response.data[0] if response.data else None


def get_latest_document(session_id: UUID, doc_type: str) -> dict[str, Any] | None:
    """Current document for a step: most recent by created_at."""
    supabase = get_supabase()
    response = (
        supabase.table("kb_documents")
        .select("*")
        .eq("session_id", str(session_id))
        .eq("doc_type", doc_type)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def list_documents(session_id: UUID) -> list[dict[str, Any]]:
    """All document versions for a session, newest first."""
    supabase = get_supabase()
    response = (
        supabase.table("kb_documents")
        .select("*")
        .eq("session_id", str(session_id))
        .order("created_at", desc=True)
        .execute()
    )
    return response.data or []


def update_document(document_id: UUID, updates: dict[str, Any]) -> dict[str, Any]:
    supabase = get_supabase()
    payload = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
    response = (
        supabase.table("kb_documents").update(payload).eq("id", str(document_id)).execute()
    )
    if not response.data:
        raise ValueError(f"Document {document_id} not updated")
    return response.data[0]
