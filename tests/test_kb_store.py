"""Tests for the Supabase table modules and the KBStore facade (mocked client)."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from kb_builder.core.errors import PersistenceError
from kb_builder.db import documents, images, visual_guides
from kb_builder.db.kb_store import KBStore

SESSION_ID = uuid4()


def _mock_supabase(execute_results=None):
    """Supabase mock with chained query builder.

    Args:
        execute_results: Optional list of return values for successive
            .execute() calls. When not provided every .execute() returns
            ``MagicMock(data=[])``.
    """
    sb = MagicMock()
    chain = MagicMock()
    if execute_results is not None:
        chain.execute.side_effect = execute_results
    else:
        chain.execute.return_value = MagicMock(data=[])
    for method in ("eq", "in_", "order", "limit", "select", "insert", "update", "upsert", "delete"):
        getattr(chain, method).return_value = chain
    sb.table.return_value = chain
    return sb, chain


def test_latest_document_orders_by_created_at():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "doc-2", "doc_type": "brand"}])])

    with patch("kb_builder.db.documents.get_supabase", return_value=sb):
        doc = documents.get_latest_document(SESSION_ID, "brand")

    assert doc["id"] == "doc-2"
    sb.table.assert_called_with("kb_documents")
    chain.order.assert_called_once_with("created_at", desc=True)
    chain.limit.assert_called_once_with(1)


def test_latest_document_none_when_empty():
    sb, _ = _mock_supabase()

    with patch("kb_builder.db.documents.get_supabase", return_value=sb):
        assert documents.get_latest_document(SESSION_ID, "brand") is None


def test_insert_document_defaults_to_draft():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "doc-1"}])])

    with patch("kb_builder.db.documents.get_supabase", return_value=sb):
        documents.insert_document(SESSION_ID, "research", "# Overview")

    payload = chain.insert.call_args[0][0]
    assert payload["status"] == "draft"
    assert payload["session_id"] == str(SESSION_ID)
    assert "content_json" not in payload


def test_set_images_status_single_update():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "a"}, {"id": "b"}])])

    with patch("kb_builder.db.images.get_supabase", return_value=sb):
        updated = images.set_images_status(["a", "b"], "analyzed")

    assert len(updated) == 2
    chain.update.assert_called_once_with({"status": "analyzed"})
    chain.in_.assert_called_once_with("id", ["a", "b"])


def test_set_images_status_noop_for_empty_batch():
    with patch("kb_builder.db.images.get_supabase") as get_sb:
        assert images.set_images_status([], "analyzed") == []
    get_sb.assert_not_called()


def test_set_images_status_only_moves_expected_statuses():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "a", "status": "analyzed"}])])

    with patch("kb_builder.db.images.get_supabase", return_value=sb):
        updated = images.set_images_status(["a", "b"], "analyzed", from_statuses=("uploaded",))

    assert [row["id"] for row in updated] == ["a"]
    assert chain.in_.call_args_list[0].args == ("id", ["a", "b"])
    assert chain.in_.call_args_list[1].args == ("status", ["uploaded"])


def test_visual_guide_upsert_on_session_constraint():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "guide-1", "session_id": str(SESSION_ID)}])])

    with patch("kb_builder.db.visual_guides.get_supabase", return_value=sb):
        guide = visual_guides.upsert_visual_guide(SESSION_ID, {"palette": {}}, {"image_count": 1})

    assert guide["id"] == "guide-1"
    row = chain.upsert.call_args.args[0]
    assert chain.upsert.call_args.kwargs == {"on_conflict": "session_id"}
    assert row["session_id"] == str(SESSION_ID)
    assert row["rules_json"] == {"palette": {}}
    assert row["derived_palettes_json"] == {"image_count": 1}
    # Single statement: no read before the write
    chain.select.assert_not_called()
    chain.insert.assert_not_called()
    chain.update.assert_not_called()


def test_visual_guide_read_prefers_latest_write():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "guide-2"}])])

    with patch("kb_builder.db.visual_guides.get_supabase", return_value=sb):
        guide = visual_guides.get_visual_guide(SESSION_ID)

    assert guide["id"] == "guide-2"
    chain.order.assert_called_once_with("updated_at", desc=True)


def test_store_wraps_client_errors():
    sb, chain = _mock_supabase()
    chain.execute.side_effect = RuntimeError("connection refused")

    with patch("kb_builder.db.documents.get_supabase", return_value=sb):
        with pytest.raises(PersistenceError) as exc_info:
            KBStore().insert_document(SESSION_ID, "research", "# Overview")

    assert exc_info.value.details["operation"] == "store document"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
