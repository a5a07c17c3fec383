"""API endpoints for step generation, chat edits, vision analysis and test images."""

from fastapi import APIRouter, Depends, HTTPException

from kb_builder.api.deps import get_controller, http_error, internal_error, run_with_deadline
from kb_builder.core.errors import KBError
from kb_builder.core.logging import get_logger
from kb_builder.core.schemas_kb import (
    ChatEditRequest,
    ChatEditResponse,
    ImageGenerationRequest,
    ImageGenerationResponse,
    RunStepRequest,
    RunStepResponse,
    VisionAnalyseRequest,
    VisionAnalyseResponse,
)
from kb_builder.services.pipeline_controller import PipelineController

logger = get_logger(__name__)

router = APIRouter()


@router.post("/run-step", response_model=RunStepResponse)
async def run_step(
    request: RunStepRequest,
    controller: PipelineController = Depends(get_controller),
) -> RunStepResponse:
    """
    Generate (or regenerate) one wizard step.

    Raises:
        HTTPException 400/404/409: Invalid step, unknown session, missing context
        HTTPException 502/503: Provider failed or returned unusable content
        HTTPException 504: Request deadline passed (generation continues)
    """
    try:
        return await run_with_deadline(
            controller.run_step(
                request.session_id,
                request.step,
                company_url=str(request.company_url) if request.company_url else None,
                allow_degraded_context=request.allow_degraded_context,
            ),
            controller.settings.REQUEST_TIMEOUT_SECONDS,
        )
    except HTTPException:
        raise
    except KBError as e:
        logger.warning(
            f"run-step failed: {e.code}: {e.message}",
            extra={"session_id": str(request.session_id), "step": request.step},
        )
        raise http_error(e) from e
    except Exception as e:
        logger.exception("run-step failed", extra={"session_id": str(request.session_id)})
        raise internal_error("Step generation failed") from e


@router.post("/chat-edit", response_model=ChatEditResponse)
async def chat_edit(
    request: ChatEditRequest,
    controller: PipelineController = Depends(get_controller),
) -> ChatEditResponse:
    """Replace a step document's content without calling a model."""
    try:
        return controller.apply_chat_edit(
            request.session_id, request.step, request.updated_content, request.reason
        )
    except KBError as e:
        raise http_error(e) from e
    except Exception as e:
        logger.exception("chat-edit failed", extra={"session_id": str(request.session_id)})
        raise internal_error("Failed to update content") from e


@router.post("/vision-analyse", response_model=VisionAnalyseResponse)
async def vision_analyse(
    request: VisionAnalyseRequest,
    controller: PipelineController = Depends(get_controller),
) -> VisionAnalyseResponse:
    """Analyse the session's uploaded images into a visual guide."""
    try:
        return await run_with_deadline(
            controller.analyze_visuals(
                request.session_id,
                image_urls=[str(u) for u in request.image_urls],
                locale=request.locale,
                brand_context=request.brand_context,
                reanalyze=request.reanalyze,
            ),
            controller.settings.REQUEST_TIMEOUT_SECONDS,
        )
    except HTTPException:
        raise
    except KBError as e:
        logger.warning(
            f"vision-analyse failed: {e.code}: {e.message}",
            extra={"session_id": str(request.session_id), "step": "visual"},
        )
        raise http_error(e) from e
    except Exception as e:
        logger.exception("vision-analyse failed", extra={"session_id": str(request.session_id)})
        raise internal_error("Vision analysis failed") from e


@router.post("/generate-test-images", response_model=ImageGenerationResponse)
async def generate_test_images(
    request: ImageGenerationRequest,
    controller: PipelineController = Depends(get_controller),
) -> ImageGenerationResponse:
    try:
        return await controller.generate_test_images(
            request.session_id, request.base_prompt, request.negative_prompt, request.count
        )
    except KBError as e:
        raise http_error(e) from e
    except Exception as e:
        logger.exception("generate-test-images failed", extra={"session_id": str(request.session_id)})
        raise internal_error("Image generation failed") from e
