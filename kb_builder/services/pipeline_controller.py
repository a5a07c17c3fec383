"""
Pipeline controller.

Drives the wizard: resolves each step's prior-step context from the
dependency table, runs the generation chain, persists the accepted artifact
and advances the session. Failures leave prior state untouched: nothing is
written until the chain has returned validated content.

Write order for a successful research step is sources, then the document,
then the session step. For the visual step it is the guide, then the image
statuses, then the session step.
"""

import hashlib
import mimetypes
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from uuid import UUID, uuid4

import httpx

from kb_builder.chains.analyze_brand_images import analyze_brand_images
from kb_builder.chains.chat_assistant import generate_chat_reply
from kb_builder.chains.generate_test_images import generate_test_images as run_image_generation
from kb_builder.chains.research_step import generate_step_content
from kb_builder.core.artifact_lifecycle import (
    GENERATED_DOCUMENT_STATUS,
    analysis_source_statuses,
    assert_image_transition,
    check_approval,
    select_analysis_batch,
)
from kb_builder.core.config import Settings, get_settings
from kb_builder.core.content_parser import extract_structured_json
from kb_builder.core.errors import InvalidInput, MissingContext, NotFound, PersistenceError
from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelGateway, get_model_gateway
from kb_builder.core.openai_vision_service import decode_data_url
from kb_builder.core.schemas_kb import (
    ChatEditResponse,
    ChatResponse,
    GeneratedImage,
    ImageGenerationResponse,
    RunStepResponse,
    VisionAnalyseResponse,
)
from kb_builder.core.step_graph import STEP_DEFINITIONS, STEP_ORDER, context_steps, step_after_success
from kb_builder.db.kb_store import KBStore

logger = get_logger(__name__)


async def fetch_image(url: str, timeout: float, max_bytes: int) -> tuple[bytes, str]:
    """
    Download an image.

    Returns:
        (content bytes, mime type)

    Raises:
        InvalidInput: Unreachable URL, non-image content or oversize payload
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise InvalidInput(f"Could not fetch image from {url}", {"reason": str(e)}) from e

    mime = (response.headers.get("content-type") or "").split(";")[0].strip().lower()
    if not mime.startswith("image/"):
        raise InvalidInput("URL does not point to an image", {"content_type": mime or None})

    content = response.content
    if len(content) > max_bytes:
        raise InvalidInput(
            "Image is too large",
            {"size_bytes": len(content), "max_bytes": max_bytes},
        )
    return content, mime


class PipelineController:
    """Runs wizard steps against a store and a model gateway."""

    def __init__(self, store: KBStore, gateway: ModelGateway, settings: Settings | None = None):
        self.store = store
        self.gateway = gateway
        self.settings = settings or get_settings()

    # === Sessions ===

    def create_session(self, user_id: UUID, language: str, company_url: str | None = None) -> dict[str, Any]:
        return self.store.create_session(user_id, language, company_url)

    def get_session(self, session_id: UUID) -> dict[str, Any]:
        session = self.store.get_session(session_id)
        if not session:
            raise NotFound(f"Session {session_id} not found")
        return session

    def current_documents(self, session_id: UUID) -> list[dict[str, Any]]:
        """Current (most recent) document per doc_type, in wizard order."""
        self.get_session(session_id)
        current: dict[str, dict[str, Any]] = {}
        for doc in self.store.list_documents(session_id):
            # Newest first: the first row seen per doc_type wins
            current.setdefault(doc["doc_type"], doc)
        return [current[s] for s in STEP_ORDER if s in current]

    def list_sources(self, session_id: UUID) -> list[dict[str, Any]]:
        self.get_session(session_id)
        return self.store.list_sources(session_id)

    def get_visual_guide(self, session_id: UUID) -> dict[str, Any]:
        self.get_session(session_id)
        guide = self.store.get_visual_guide(session_id)
        if not guide:
            raise NotFound(f"No visual guide for session {session_id}")
        return guide

    def _prior_outputs(self, session_id: UUID, step: str) -> dict[str, str]:
        outputs = {}
        for dep in context_steps(step):
            doc = self.store.get_latest_document(session_id, dep)
            if doc and (doc.get("content_md") or "").strip():
                outputs[dep] = doc["content_md"]
        return outputs

    def _advance(self, session_id: UUID, ran: str) -> str:
        # Re-read so a concurrent run of the same step advances the session once
        session = self.get_session(session_id)
        current = session.get("step") or "welcome"
        new_step = step_after_success(current, ran)
        if new_step != current:
            self.store.update_session_step(session_id, new_step)
            logger.info(
                f"Session advanced {current} -> {new_step}",
                extra={"session_id": str(session_id), "step": ran},
            )
        return new_step

    # === Generation ===

    async def run_step(
        self,
        session_id: UUID,
        step: str,
        company_url: str | None = None,
        allow_degraded_context: bool = False,
    ) -> RunStepResponse:
        """
        Generate one wizard step and persist the result.

        Raises:
            NotFound: Unknown session
            InvalidInput: Non-generative step or no company URL available
            MissingContext: Required prior output absent (unless degraded context allowed)
            ProviderExhausted, EmptyContent, SchemaViolation: Generation failed
            PersistenceError: Store write failed
        """
        session = self.get_session(session_id)
        definition = STEP_DEFINITIONS[step]

        if definition.generator is None:
            raise InvalidInput(f"Step '{step}' has nothing to generate")

        if definition.generator == "vision":
            analysis = await self.analyze_visuals(session_id, locale=session.get("language"))
            return RunStepResponse(
                session_id=session_id,
                step=step,
                session_step=self._advance(session_id, step),
                content_md=analysis.guide_md,
                visual_guide=analysis.visual_guide,
            )

        url = company_url or session.get("company_url")
        if not url:
            raise InvalidInput("No company URL on the request or the session")

        locale = session.get("language") or "en-US"
        prior = self._prior_outputs(session_id, step)
        if allow_degraded_context:
            missing = [dep for dep in context_steps(step) if dep not in prior]
            if missing:
                logger.warning(
                    f"Running {step} with degraded context, missing: {', '.join(missing)}",
                    extra={"session_id": str(session_id), "step": step},
                )

        content = await generate_step_content(
            self.gateway,
            step,
            locale,
            url,
            prior_outputs=prior,
            require_context=not allow_degraded_context,
            settings=self.settings,
        )

        self.store.insert_sources(session_id, [c.model_dump() for c in content.citations])
        document = self.store.insert_document(
            session_id,
            step,
            content.markdown_body,
            title=content.title,
            content_json=content.structured_json,
            status=GENERATED_DOCUMENT_STATUS,
        )
        if company_url and not session.get("company_url"):
            self.store.update_session(session_id, {"company_url": company_url})
        session_step = self._advance(session_id, step)

        logger.info(
            f"Stored {step} document {document['id']}",
            extra={"session_id": str(session_id), "step": step, "document_id": str(document["id"])},
        )
        return RunStepResponse(
            session_id=session_id,
            step=step,
            session_step=session_step,
            document_id=document["id"],
            content_md=content.markdown_body,
            content_json=content.structured_json,
            sources=content.citations,
        )

    async def analyze_visuals(
        self,
        session_id: UUID,
        image_urls: list[str] | None = None,
        locale: str | None = None,
        brand_context: str | None = None,
        reanalyze: bool = False,
    ) -> VisionAnalyseResponse:
        """
        Analyse the session's uploaded images and upsert the visual guide.

        The batch is the session's user images in ``uploaded`` status (plus
        ``analyzed`` ones when re-analysing). On success every image in the
        batch that is still in one of those statuses moves to ``analyzed`` in
        one update; images rejected or errored meanwhile keep their status.
        If generation or the guide write fails, no status changes.

        The guide is written before the status update. If the status update
        fails the new guide stays visible while the images remain
        ``uploaded``; the next analysis picks the same images up again and
        replaces the guide.

        Raises:
            MissingContext: No eligible images
            SchemaViolation: Guide failed validation
        """
        session = self.get_session(session_id)
        batch = select_analysis_batch(self.store.list_images(session_id, role="user"), reanalyze)
        if not batch:
            raise MissingContext("No uploaded images to analyse", missing=["images"])

        for image in batch:
            assert_image_transition(image, "analyzed")

        urls = list(image_urls or []) or [self.store.public_url(img["file_path"]) for img in batch]
        locale = locale or session.get("language") or "en-US"

        result = await analyze_brand_images(
            self.gateway, urls, locale, brand_context=brand_context, settings=self.settings
        )

        image_ids = [str(img["id"]) for img in batch]
        self.store.upsert_visual_guide(
            session_id,
            result.visual_guide.model_dump(),
            {
                "image_count": len(image_ids),
                "image_ids": image_ids,
                "analyzed_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        # Rows that left the batch's statuses during the call (rejected, error) keep them
        updated = self.store.set_images_status(
            image_ids, "analyzed", from_statuses=analysis_source_statuses(reanalyze)
        )
        analyzed_ids = [str(img["id"]) for img in updated]
        if len(analyzed_ids) < len(image_ids):
            logger.warning(
                f"{len(image_ids) - len(analyzed_ids)} images changed status during analysis and were skipped",
                extra={"session_id": str(session_id), "step": "visual"},
            )

        logger.info(
            f"Visual guide stored, {len(analyzed_ids)} images analyzed",
            extra={"session_id": str(session_id), "step": "visual", "image_count": len(analyzed_ids)},
        )
        return VisionAnalyseResponse(
            visual_guide=result.visual_guide,
            guide_md=result.guide_md,
            analyzed_image_ids=analyzed_ids,
        )

    async def generate_test_images(
        self,
        session_id: UUID,
        base_prompt: str,
        negative_prompt: str | None = None,
        count: int = 1,
    ) -> ImageGenerationResponse:
        """Generate sample images, store them and record them as generated images."""
        self.get_session(session_id)
        provider_urls = await run_image_generation(self.gateway, base_prompt, negative_prompt, count)

        images = []
        for provider_url in provider_urls:
            if provider_url.startswith("data:"):
                content, mime = decode_data_url(provider_url)
            else:
                content, mime = await fetch_image(
                    provider_url, self.settings.PROVIDER_TIMEOUT_SECONDS, self.settings.MAX_IMAGE_BYTES
                )

            extension = mimetypes.guess_extension(mime) or ".png"
            path = f"images/generated/{session_id}/{uuid4().hex}{extension}"
            self.store.upload_object(path, content, mime)
            record = self.store.insert_image(
                session_id,
                file_path=path,
                mime=mime,
                size_bytes=len(content),
                sha256=hashlib.sha256(content).hexdigest(),
                role="generated",
                status="uploaded",
            )
            images.append(
                GeneratedImage(url=self.store.public_url(path), storage_path=path, image_id=record["id"])
            )

        return ImageGenerationResponse(images=images)

    # === Images ===

    async def import_image_from_url(self, session_id: UUID, url: str) -> dict[str, Any]:
        """
        Import a user image from a public URL.

        Returns:
            {"image": row, "url": public URL, "duplicate": bool}
        """
        self.get_session(session_id)
        content, mime = await fetch_image(
            url, self.settings.PROVIDER_TIMEOUT_SECONDS, self.settings.MAX_IMAGE_BYTES
        )
        sha256 = hashlib.sha256(content).hexdigest()

        existing = self.store.get_image_by_sha256(session_id, sha256)
        if existing:
            logger.info(f"Image already imported as {existing['id']}", extra={"session_id": str(session_id)})
            return {"image": existing, "url": self.store.public_url(existing["file_path"]), "duplicate": True}

        extension = mimetypes.guess_extension(mime) or ".jpg"
        path = f"images/user/{session_id}/{sha256[:16]}{extension}"
        image = self.store.insert_image(
            session_id,
            file_path=path,
            mime=mime,
            size_bytes=len(content),
            sha256=sha256,
            role="user",
            status="uploading",
        )

        try:
            self.store.upload_object(path, content, mime)
        except PersistenceError:
            assert_image_transition(image, "error")
            self.store.set_images_status([str(image["id"])], "error", from_statuses=("uploading",))
            raise

        assert_image_transition(image, "uploaded")
        updated = self.store.set_images_status([str(image["id"])], "uploaded", from_statuses=("uploading",))
        image = updated[0] if updated else {**image, "status": "uploaded"}
        return {"image": image, "url": self.store.public_url(path), "duplicate": False}

    # === Documents ===

    def apply_chat_edit(
        self,
        session_id: UUID,
        step: str,
        updated_content: str,
        reason: str | None = None,
    ) -> ChatEditResponse:
        """
        Replace the content of a step's current document.

        No model call and no change to ``session.step``. The document keeps
        its status.

        Raises:
            NotFound: Unknown session or no document for the step
        """
        self.get_session(session_id)
        document = self.store.get_latest_document(session_id, step)
        if not document:
            raise NotFound(f"No {step} document to edit for session {session_id}")

        updates: dict[str, Any] = {"content_md": updated_content}
        structured = extract_structured_json(step, updated_content)
        if structured is not None:
            updates["content_json"] = structured
        self.store.update_document(document["id"], updates)

        logger.info(
            f"Applied chat edit to {step} document" + (f": {reason}" if reason else ""),
            extra={"session_id": str(session_id), "step": step, "document_id": str(document["id"])},
        )
        return ChatEditResponse(step=step, document_id=document["id"], reason=reason)

    def approve_document(self, document_id: UUID) -> dict[str, Any]:
        """Mark a document approved. Approving an approved document is a no-op."""
        document = self.store.get_document(document_id)
        if not document:
            raise NotFound(f"Document {document_id} not found")
        if not check_approval(document):
            return document
        approved = self.store.update_document(document_id, {"status": "approved"})
        logger.info(
            f"Approved {document.get('doc_type')} document",
            extra={"session_id": str(document.get("session_id")), "document_id": str(document_id)},
        )
        return approved

    # === Chat ===

    async def handle_chat_message(
        self,
        session_id: UUID,
        content: str,
        current_step: str,
        current_content: str | None = None,
        user_language: str | None = None,
    ) -> ChatResponse:
        """
        Answer a chat message; apply the assistant's edit to the step document if it made one.
        """
        session = self.get_session(session_id)
        history = self.store.list_chat_messages(session_id)
        self.store.insert_chat_message(session_id, "user", content, current_step)

        is_document_step = STEP_DEFINITIONS[current_step].generator == "research"
        if current_content is None and is_document_step:
            document = self.store.get_latest_document(session_id, current_step)
            current_content = document.get("content_md") if document else None

        reply = await generate_chat_reply(
            self.gateway,
            content,
            current_step,
            user_language or session.get("language") or "en-US",
            company_url=session.get("company_url"),
            current_content=current_content,
            history=history,
            settings=self.settings,
        )

        document_id = None
        if reply.edited_content and is_document_step:
            try:
                edit = self.apply_chat_edit(
                    session_id,
                    current_step,
                    reply.edited_content,
                    reason=f"User requested changes: {content[:100]}",
                )
                document_id = edit.document_id
            except NotFound:
                logger.warning(
                    f"Assistant edit discarded, no {current_step} document yet",
                    extra={"session_id": str(session_id), "step": current_step},
                )

        self.store.insert_chat_message(session_id, "assistant", reply.message, current_step)
        return ChatResponse(
            session_id=session_id,
            content=reply.message,
            content_updated=document_id is not None,
            document_id=document_id,
        )

    def chat_history(self, session_id: UUID) -> list[dict[str, Any]]:
        self.get_session(session_id)
        return self.store.list_chat_messages(session_id)

    def clear_chat(self, session_id: UUID) -> int:
        self.get_session(session_id)
        return self.store.clear_chat_messages(session_id)


@lru_cache
def get_pipeline_controller() -> PipelineController:
    """Process-wide controller; FastAPI dependency."""
    return PipelineController(KBStore(), get_model_gateway(), get_settings())
