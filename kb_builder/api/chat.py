"""API endpoints for the chat assistant."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends

from kb_builder.api.deps import get_controller, http_error, internal_error
from kb_builder.core.errors import KBError
from kb_builder.core.logging import get_logger
from kb_builder.core.schemas_kb import ChatRequest, ChatResponse
from kb_builder.services.pipeline_controller import PipelineController

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=ChatResponse)
async def send_message(
    request: ChatRequest,
    controller: PipelineController = Depends(get_controller),
) -> ChatResponse:
    """
    Send a message to the assistant.

    If the assistant rewrites the step content, the step's document is
    updated and ``content_updated`` is set.
    """
    try:
        return await controller.handle_chat_message(
            request.session_id,
            request.content,
            request.current_step,
            current_content=request.current_content,
            user_language=request.user_language,
        )
    except KBError as e:
        logger.warning(
            f"Chat failed: {e.code}: {e.message}",
            extra={"session_id": str(request.session_id), "step": request.current_step},
        )
        raise http_error(e) from e
    except Exception as e:
        logger.exception("Chat failed", extra={"session_id": str(request.session_id)})
        raise internal_error("Failed to process message") from e


@router.get("/{session_id}")
async def get_history(
    session_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    try:
        return {"messages": controller.chat_history(session_id)}
    except KBError as e:
        raise http_error(e) from e


@router.delete("/{session_id}")
async def clear_history(
    session_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    try:
        deleted = controller.clear_chat(session_id)
    except KBError as e:
        raise http_error(e) from e
    return {"success": True, "deleted": deleted}
