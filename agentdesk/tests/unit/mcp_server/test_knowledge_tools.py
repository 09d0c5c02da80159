"""Unit tests for the knowledge page tools."""

import pytest

from agentdesk.infrastructure.adapters.secondary.persistence.models import KnowledgePage
from agentdesk.mcp_server.results import ErrorCode
from agentdesk.tests.conftest import OTHER_WORKSPACE_ID, TEST_USER_ID, TEST_WORKSPACE_ID


@pytest.fixture
async def pages(test_db, test_workspace):
    test_db.add_all(
        [
            KnowledgePage(id="page-handbook", workspace_id=TEST_WORKSPACE_ID, title="Handbook"),
            KnowledgePage(id="page-old", workspace_id=TEST_WORKSPACE_ID, title="Old handbook", is_archived=True),
            KnowledgePage(id="page-foreign", workspace_id=OTHER_WORKSPACE_ID, title="Their handbook"),
        ]
    )
    await test_db.flush()
    test_db.add(
        KnowledgePage(
            id="page-expenses",
            workspace_id=TEST_WORKSPACE_ID,
            parent_id="page-handbook",
            title="Expense policy",
        )
    )
    await test_db.commit()


@pytest.mark.unit
class TestKnowledgePages:
    async def test_list_roots_and_children(self, call_tool, pages):
        roots = await call_tool("knowledge_page_list")
        assert [p["id"] for p in roots.data["pages"]] == ["page-handbook"]

        children = await call_tool("knowledge_page_list", {"parent_id": "page-handbook"})
        assert [p["id"] for p in children.data["pages"]] == ["page-expenses"]

        archived = await call_tool("knowledge_page_list", {"is_archived": True})
        assert [p["id"] for p in archived.data["pages"]] == ["page-old"]

    async def test_create_records_author(self, call_tool, pages):
        result = await call_tool(
            "knowledge_page_create",
            {"title": "Travel", "parent_id": "page-handbook", "content": {"type": "doc"}},
        )
        assert result.data["page"]["created_by"] == TEST_USER_ID
        assert result.data["page"]["content"] == {"type": "doc"}

    async def test_parent_must_be_in_workspace(self, call_tool, pages):
        result = await call_tool(
            "knowledge_page_create", {"title": "Travel", "parent_id": "page-foreign"}
        )
        assert result.code == ErrorCode.NOT_FOUND
        assert result.error == "Page not found in this workspace"

    async def test_page_cannot_be_its_own_parent(self, call_tool, pages):
        result = await call_tool(
            "knowledge_page_update", {"page_id": "page-handbook", "parent_id": "page-handbook"}
        )
        assert result.error == "A page cannot be its own parent"

    async def test_update_clears_parent_and_icon(self, call_tool, pages):
        result = await call_tool(
            "knowledge_page_update", {"page_id": "page-expenses", "parent_id": None, "icon": None}
        )
        assert result.data["page"]["parent_id"] is None
        assert result.data["page"]["icon"] is None

    async def test_title_cannot_be_cleared(self, call_tool, pages):
        result = await call_tool("knowledge_page_update", {"page_id": "page-handbook", "title": None})
        assert result.code == ErrorCode.VALIDATION
        assert result.error == "title cannot be cleared"

    async def test_get_children(self, call_tool, pages):
        result = await call_tool("knowledge_page_get_children", {"page_id": "page-handbook"})
        assert result.data["parent_id"] == "page-handbook"
        assert result.data["count"] == 1
        assert result.data["children"][0]["title"] == "Expense policy"

        foreign = await call_tool("knowledge_page_get_children", {"page_id": "page-foreign"})
        assert foreign.code == ErrorCode.NOT_FOUND

    async def test_move_to_root_and_back(self, call_tool, pages):
        to_root = await call_tool("knowledge_page_move", {"page_id": "page-expenses"})
        assert to_root.data["message"] == "Page moved successfully"
        assert to_root.data["page"]["parent_id"] is None

        back = await call_tool(
            "knowledge_page_move", {"page_id": "page-expenses", "parent_id": "page-handbook"}
        )
        assert back.data["page"]["parent_id"] == "page-handbook"

    async def test_move_into_itself_or_foreign_parent(self, call_tool, pages):
        itself = await call_tool(
            "knowledge_page_move", {"page_id": "page-handbook", "parent_id": "page-handbook"}
        )
        assert itself.error == "Cannot move a page into itself"

        foreign = await call_tool(
            "knowledge_page_move", {"page_id": "page-handbook", "parent_id": "page-foreign"}
        )
        assert foreign.code == ErrorCode.NOT_FOUND
        assert foreign.error == "Parent page not found in this workspace"

    async def test_move_under_own_child(self, call_tool, pages):
        result = await call_tool(
            "knowledge_page_move", {"page_id": "page-handbook", "parent_id": "page-expenses"}
        )
        assert result.code == ErrorCode.VALIDATION
        assert result.error == "Cannot move a page under one of its own children"

    async def test_archive_and_restore(self, call_tool, pages):
        archived = await call_tool("knowledge_page_archive", {"page_id": "page-handbook"})
        assert archived.data["page"]["is_archived"] is True

        restored = await call_tool("knowledge_page_restore", {"page_id": "page-handbook"})
        assert restored.data["page"]["is_archived"] is False

    async def test_search_skips_archived_and_foreign_pages(self, call_tool, pages):
        result = await call_tool("knowledge_page_search", {"query": "HANDBOOK"})
        assert [p["id"] for p in result.data["pages"]] == ["page-handbook"]

    async def test_get_foreign_page(self, call_tool, pages):
        result = await call_tool("knowledge_page_get", {"page_id": "page-foreign"})
        assert result.code == ErrorCode.NOT_FOUND
