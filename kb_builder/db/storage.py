"""Object storage for KB images (Supabase Storage)."""

from kb_builder.core.config import get_settings
from kb_builder.db.supabase_client import get_supabase


def upload_object(path: str, content: bytes, content_type: str) -> str:
    """
    Upload bytes to the KB bucket.

    Returns:
        Storage path of the object
    """
    bucket = get_settings().STORAGE_BUCKET
    get_supabase().storage.from_(bucket).upload(
        path=path,
        file=content,
        file_options={"content-type": content_type, "upsert": "false"},
    )
    return path


def public_url(path: str) -> str:
    bucket = get_settings().STORAGE_BUCKET
    return get_supabase().storage.from_(bucket).get_public_url(path)
