"""Tests for image and document lifecycle guards."""

import pytest

from kb_builder.core.artifact_lifecycle import (
    assert_image_transition,
    can_transition_image,
    check_approval,
    select_analysis_batch,
)
from kb_builder.core.errors import InvalidTransition


def _img(status, role="user", image_id="img"):
    return {"id": image_id, "status": status, "role": role}


def test_forward_transitions():
    assert can_transition_image("uploading", "uploaded")
    assert can_transition_image("uploaded", "analyzed")
    assert can_transition_image("analyzing", "analyzed")


def test_never_backward_from_analyzed():
    assert not can_transition_image("analyzed", "uploaded")
    assert not can_transition_image("analyzed", "analyzing")
    assert can_transition_image("analyzed", "analyzed")


def test_terminal_states():
    for terminal in ("rejected", "error"):
        assert not can_transition_image(terminal, "uploaded")
        assert not can_transition_image(terminal, "analyzed")


def test_assert_transition_raises():
    with pytest.raises(InvalidTransition) as exc_info:
        assert_image_transition(_img("error"), "analyzed")
    assert exc_info.value.details["status"] == "error"


def test_batch_takes_uploaded_user_images_only():
    images = [
        _img("uploaded", image_id="a"),
        _img("uploading", image_id="b"),
        _img("analyzed", image_id="c"),
        _img("rejected", image_id="d"),
        _img("error", image_id="e"),
        _img("uploaded", role="generated", image_id="f"),
    ]
    assert [i["id"] for i in select_analysis_batch(images)] == ["a"]


def test_reanalysis_includes_analyzed():
    images = [_img("uploaded", image_id="a"), _img("analyzed", image_id="c"), _img("error", image_id="e")]
    assert [i["id"] for i in select_analysis_batch(images, reanalyze=True)] == ["a", "c"]


def test_approval():
    assert check_approval({"id": "d", "status": "draft"}) is True
    assert check_approval({"id": "d", "status": "approved"}) is False
    with pytest.raises(InvalidTransition):
        check_approval({"id": "d", "status": "archived"})
