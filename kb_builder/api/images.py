"""API endpoints for image ingestion."""

from typing import Any

from fastapi import APIRouter, Depends

from kb_builder.api.deps import get_controller, http_error, internal_error
from kb_builder.core.errors import KBError
from kb_builder.core.logging import get_logger
from kb_builder.core.schemas_kb import ImportImageRequest
from kb_builder.services.pipeline_controller import PipelineController

logger = get_logger(__name__)

router = APIRouter()


@router.post("/import-url", status_code=201)
async def import_image_from_url(
    request: ImportImageRequest,
    controller: PipelineController = Depends(get_controller),
) -> dict[str, Any]:
    """Fetch an image server-side and add it to the session's image set."""
    try:
        return await controller.import_image_from_url(request.session_id, str(request.url))
    except KBError as e:
        raise http_error(e) from e
    except Exception as e:
        logger.exception("Image import failed", extra={"session_id": str(request.session_id)})
        raise internal_error("Image import failed") from e
