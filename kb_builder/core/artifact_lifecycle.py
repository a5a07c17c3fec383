"""Status lifecycle rules for images and documents.

Image flow:
  uploading → uploaded → analyzing → analyzed
  any non-terminal state → rejected | error

``analyzed`` never moves back. Re-running analysis over analyzed images is an
explicit re-analysis (analyzed → analyzed), not a transition error.
Documents are written as ``draft`` by generation; ``approved`` is set only by
an explicit approval and never cleared.
"""

from typing import Any, Iterable

from kb_builder.core.errors import InvalidTransition
from kb_builder.core.logging import get_logger

logger = get_logger(__name__)

IMAGE_TRANSITIONS: dict[str, frozenset[str]] = {
    "uploading": frozenset({"uploaded", "rejected", "error"}),
    "uploaded": frozenset({"analyzing", "analyzed", "rejected", "error"}),
    "analyzing": frozenset({"analyzed", "uploaded", "error"}),
    "analyzed": frozenset({"analyzed"}),
    "rejected": frozenset(),
    "error": frozenset(),
}

GENERATED_DOCUMENT_STATUS = "draft"


def can_transition_image(current: str, target: str) -> bool:
    return target in IMAGE_TRANSITIONS.get(current, frozenset())


def assert_image_transition(image: dict[str, Any], target: str) -> None:
    """
    Guard a single image status change.

    Raises:
        InvalidTransition: If the image's current status does not allow ``target``
    """
    current = image.get("status", "uploaded")
    if not can_transition_image(current, target):
        raise InvalidTransition(
            f"Image {image.get('id')} cannot move from '{current}' to '{target}'",
            {"image_id": str(image.get("id")), "status": current, "target": target},
        )


def analysis_source_statuses(reanalyze: bool) -> tuple[str, ...]:
    """Statuses an image may be in to join an analysis batch."""
    return ("uploaded", "analyzed") if reanalyze else ("uploaded",)


def select_analysis_batch(
    images: Iterable[dict[str, Any]],
    reanalyze: bool = False,
) -> list[dict[str, Any]]:
    """
    Pick the user images eligible for a vision analysis pass.

    Only ``uploaded`` images qualify; with ``reanalyze`` already analyzed
    images join them. Rejected, errored and in-flight images are excluded.
    Generated images are never analysed as brand input.
    """
    images = list(images)
    allowed = analysis_source_statuses(reanalyze)
    batch = [
        img
        for img in images
        if img.get("role", "user") == "user" and img.get("status") in allowed
    ]
    if len(batch) < len(images):
        logger.debug(f"Excluded {len(images) - len(batch)} images from analysis batch")
    return batch


def check_approval(document: dict[str, Any]) -> bool:
    """
    Check an approval request.

    Returns:
        True if the document needs to change, False if it is already approved
    """
    status = document.get("status", GENERATED_DOCUMENT_STATUS)
    if status == "approved":
        return False
    if status != GENERATED_DOCUMENT_STATUS:
        raise InvalidTransition(
            f"Document {document.get('id')} has unknown status '{status}'",
            {"document_id": str(document.get("id")), "status": status},
        )
    return True
