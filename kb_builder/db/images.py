"""Database operations for kb_images."""

from typing import Any, Sequence
from uuid import UUID

from kb_builder.core.logging import get_logger
from kb_builder.db.supabase_client import get_supabase

logger = get_logger(__name__)


def list_images(
    session_id: UUID,
    role: str | None = None,
    statuses: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    """
    List a session's images in upload order.

    Args:
        session_id: Session UUID
        role: Filter by role (user, generated)
        statuses: Filter by any of these statuses
    """
    supabase = get_supabase()
    query = supabase.table("kb_images").select("*").eq("session_id", str(session_id))
    if role:
        query = query.eq("role", role)
    if statuses:
        query = query.in_("status", list(statuses))
    response = query.order("created_at", desc=False).execute()
    return response.data or []


def get_image_by_sha256(session_id: UUID, sha256: str) -> dict[str, Any] | None:
    supabase = get_supabase()
    response = (
        supabase.table("kb_images")
        .select("*")
        .eq("session_id", str(session_id))
        .eq("sha256", sha256)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def insert_image(
    session_id: UUID,
    file_path: str,
    mime: str,
    size_bytes: int,
    sha256: str | None = None,
    role: str = "user",
    status: str = "uploading",
) -> dict[str, Any]:
    """Create an image record. Returns the created row."""
    supabase = get_supabase()
    data: dict[str, Any] = {
        "session_id": str(session_id),
        "file_path": file_path,
        "mime": mime,
        "size_bytes": size_bytes,
        "role": role,
        "status": status,
    }
    if sha256:
        data["sha256"] = sha256

    response = supabase.table("kb_images").insert(data).execute()
    if not response.data:
        raise ValueError("No data returned from image insert")
    return response.data[0]


def set_images_status(
    image_ids: Sequence[str],
    status: str,
    from_statuses: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    """
    Move a set of images to ``status`` in a single update statement.

    Args:
        image_ids: Images to update
        status: Target status
        from_statuses: When given, only rows currently in one of these
            statuses are updated; others keep their status

    Returns:
        Updated rows
    """
    if not image_ids:
        return []
    supabase = get_supabase()
    query = supabase.table("kb_images").update({"status": status}).in_("id", [str(i) for i in image_ids])
    if from_statuses:
        query = query.in_("status", list(from_statuses))
    response = query.execute()

    updated = response.data or []
    logger.info(
        f"Moved {len(updated)}/{len(image_ids)} images to '{status}'",
        extra={"image_count": len(updated)},
    )
    return updated
