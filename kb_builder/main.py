"""ASGI entry point for the KB Builder service."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kb_builder.api import router as api_router
from kb_builder.core.errors import KBError
from kb_builder.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="KB Builder",
    description="Staged company research, brand image analysis and chat editing for knowledge bases",
    version="0.1.0",
)


@app.exception_handler(KBError)
async def kb_error_handler(request: Request, exc: KBError) -> JSONResponse:
    """Classified errors that escape a router keep their status and code."""
    logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.get("/health")
async def health_check() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})


app.include_router(api_router, prefix="/v1", tags=["v1"])
