"""Persistence facade used by the pipeline controller.

Delegates to the table modules and turns any client failure into
PersistenceError so the pipeline sees one classified error kind.
"""

from typing import Any, Callable, Iterable, Sequence, TypeVar
from uuid import UUID

from kb_builder.core.errors import PersistenceError
from kb_builder.core.logging import get_logger
from kb_builder.db import chat_messages, documents, images, sessions, sources, storage, visual_guides

logger = get_logger(__name__)

R = TypeVar("R")


class KBStore:
    """Supabase-backed store for sessions and their artifacts."""

    def _run(self, operation: str, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        try:
            return fn(*args, **kwargs)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise PersistenceError(f"Failed to {operation}", {"operation": operation}) from e

    # Sessions

    def create_session(self, user_id: UUID, language: str, company_url: str | None = None) -> dict[str, Any]:
        return self._run("create session", sessions.create_session, user_id, language, company_url)

    def get_session(self, session_id: UUID) -> dict[str, Any] | None:
        return self._run("load session", sessions.get_session, session_id)

    def update_session(self, session_id: UUID, updates: dict[str, Any]) -> dict[str, Any]:
        return self._run("update session", sessions.update_session, session_id, updates)

    def update_session_step(self, session_id: UUID, step: str) -> dict[str, Any]:
        return self._run("update session step", sessions.update_session, session_id, {"step": step})

    # Documents

    def insert_document(self, session_id: UUID, doc_type: str, content_md: str, **fields: Any) -> dict[str, Any]:
        return self._run(
            "store document", documents.insert_document, session_id, doc_type, content_md, **fields
        )

    def get_document(self, document_id: UUID) -> dict[str, Any] | None:
        return self._run("load document", documents.get_document, document_id)

    def get_latest_document(self, session_id: UUID, doc_type: str) -> dict[str, Any] | None:
        return self._run("load document", documents.get_latest_document, session_id, doc_type)

    def list_documents(self, session_id: UUID) -> list[dict[str, Any]]:
        return self._run("list documents", documents.list_documents, session_id)

    def update_document(self, document_id: UUID, updates: dict[str, Any]) -> dict[str, Any]:
        return self._run("update document", documents.update_document, document_id, updates)

    # Sources

    def insert_sources(self, session_id: UUID, citations: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return self._run("store sources", sources.insert_sources, session_id, citations)

    def list_sources(self, session_id: UUID) -> list[dict[str, Any]]:
        return self._run("list sources", sources.list_sources, session_id)

    # Images

    def list_images(
        self,
        session_id: UUID,
        role: str | None = None,
        statuses: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        return self._run("list images", images.list_images, session_id, role=role, statuses=statuses)

    def get_image_by_sha256(self, session_id: UUID, sha256: str) -> dict[str, Any] | None:
        return self._run("look up image", images.get_image_by_sha256, session_id, sha256)

    def insert_image(self, session_id: UUID, **fields: Any) -> dict[str, Any]:
        return self._run("store image", images.insert_image, session_id, **fields)

    def set_images_status(
        self,
        image_ids: Sequence[str],
        status: str,
        from_statuses: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        return self._run(
            "update image status", images.set_images_status, image_ids, status, from_statuses=from_statuses
        )

    # Visual guide

    def get_visual_guide(self, session_id: UUID) -> dict[str, Any] | None:
        return self._run("load visual guide", visual_guides.get_visual_guide, session_id)

    def upsert_visual_guide(
        self,
        session_id: UUID,
        rules_json: dict[str, Any],
        derived_palettes_json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return self._run(
            "store visual guide",
            visual_guides.upsert_visual_guide,
            session_id,
            rules_json,
            derived_palettes_json,
        )

    # Chat

    def insert_chat_message(
        self, session_id: UUID, role: str, content: str, context_step: str | None = None
    ) -> dict[str, Any]:
        return self._run(
            "store chat message", chat_messages.insert_chat_message, session_id, role, content, context_step
        )

    def list_chat_messages(self, session_id: UUID, limit: int = 100) -> list[dict[str, Any]]:
        return self._run("load chat history", chat_messages.list_chat_messages, session_id, limit)

    def clear_chat_messages(self, session_id: UUID) -> int:
        return self._run("clear chat history", chat_messages.clear_chat_messages, session_id)

    # Object storage

    def upload_object(self, path: str, content: bytes, content_type: str) -> str:
        return self._run("upload image", storage.upload_object, path, content, content_type)

    def public_url(self, path: str) -> str:
        return self._run("resolve image URL", storage.public_url, path)
