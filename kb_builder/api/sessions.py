"""API endpoints for sessions and their stored artifacts."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends

from kb_builder.api.deps import get_controller, http_error, internal_error
from kb_builder.core.errors import KBError
from kb_builder.core.logging import get_logger
from kb_builder.core.schemas_kb import CreateSessionRequest
from kb_builder.services.pipeline_controller import PipelineController

logger = get_logger(__name__)

router = APIRouter()


@router.post("/sessions", status_code=201)
async def create_session(
    request: CreateSessionRequest,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    try:
        return controller.create_session(
            request.user_id,
            request.language,
            str(request.company_url) if request.company_url else None,
        )
    except KBError as e:
        raise http_error(e) from e
    except Exception as e:
        logger.exception("Failed to create session")
        raise internal_error("Failed to create session") from e


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    try:
        return controller.get_session(session_id)
    except KBError as e:
        raise http_error(e) from e


@router.get("/sessions/{session_id}/documents")
async def list_documents(
    session_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    """Current document per step, in wizard order."""
    try:
        return {"documents": controller.current_documents(session_id)}
    except KBError as e:
        raise http_error(e) from e


@router.get("/sessions/{session_id}/sources")
async def list_sources(
    session_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    try:
        return {"sources": controller.list_sources(session_id)}
    except KBError as e:
        raise http_error(e) from e


@router.get("/sessions/{session_id}/visual-guide")
async def get_visual_guide(
    session_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    try:
        return controller.get_visual_guide(session_id)
    except KBError as e:
        raise http_error(e) from e


@router.post("/documents/{document_id}/approve")
async def approve_document(
    document_id: UUID,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    """Mark a document approved. Only explicit approval sets this status."""
    try:
        return controller.approve_document(document_id)
    except KBError as e:
        raise http_error(e) from e
