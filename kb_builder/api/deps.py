"""Shared helpers for the v1 routers: controller dependency, error mapping, request deadline."""

import asyncio
from typing import Any, Coroutine, TypeVar

from fastapi import HTTPException

from kb_builder.core.errors import KBError
from kb_builder.core.logging import get_logger
from kb_builder.services.pipeline_controller import PipelineController, get_pipeline_controller

logger = get_logger(__name__)

T = TypeVar("T")

# Pipeline tasks still running after their request gave up waiting
_background_tasks: set[asyncio.Task] = set()


def get_controller() -> PipelineController:
    return get_pipeline_controller()


def http_error(error: KBError) -> HTTPException:
    """Translate a classified pipeline error into the API error body."""
    return HTTPException(status_code=error.status_code, detail=error.to_detail())


def internal_error(message: str) -> HTTPException:
    return HTTPException(status_code=500, detail={"error": "INTERNAL_ERROR", "message": message})


def _log_background_outcome(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Detached pipeline task failed: {type(error).__name__}: {error}")
    else:
        logger.info("Detached pipeline task completed")


async def run_with_deadline(coro: Coroutine[Any, Any, T], timeout: float) -> T:
    """
    Await a pipeline call for at most ``timeout`` seconds.

    On expiry the caller gets a 504 but the call itself is shielded: the
    provider request and any writes it triggers run to completion.
    """
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
    except asyncio.TimeoutError:
        _background_tasks.add(task)
        task.add_done_callback(_log_background_outcome)
        logger.warning(f"Request deadline of {timeout}s passed, pipeline continues in background")
        raise HTTPException(
            status_code=504,
            detail={
                "error": "TIMEOUT",
                "message": "The request took too long; generation continues and its result will be saved",
            },
        )
