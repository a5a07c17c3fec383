"""API router for v1 endpoints."""

from fastapi import APIRouter

from kb_builder.api import chat, images, pipeline, sessions

router = APIRouter()

# Step generation, chat edits, vision analysis, test images
router.include_router(pipeline.router, tags=["pipeline"])

# Sessions, documents, sources, visual guide
router.include_router(sessions.router, tags=["sessions"])

# Chat assistant
router.include_router(chat.router, prefix="/chat", tags=["chat"])

# Image ingestion
router.include_router(images.router, prefix="/images", tags=["images"])
