"""Knowledge base tools over the workspace's page tree."""

from typing import Any

from sqlalchemy import select

from agentdesk.infrastructure.adapters.secondary.persistence.models import KnowledgePage
from agentdesk.mcp_server.context import ToolInvocation
from agentdesk.mcp_server.registry import ToolDefinition, workspace_schema
from agentdesk.mcp_server.results import NotFoundError, ValidationError
from agentdesk.mcp_server.tools.common import (
    PAGINATION_PROPERTIES,
    id_property,
    nullable,
    page_bounds,
)

SEARCH_LIMIT = 20


async def _get_page(inv: ToolInvocation, page_id: str) -> KnowledgePage:
    page = await inv.session.scalar(
        select(KnowledgePage).where(
            KnowledgePage.id == page_id, KnowledgePage.workspace_id == inv.workspace_id
        )
    )
    if page is None:
        raise NotFoundError("Page not found in this workspace")
    return page


async def _check_new_parent(inv: ToolInvocation, page: KnowledgePage, parent_id: str) -> None:
    """The new parent exists in the workspace and is not one of ``page``'s descendants."""
    parent = await inv.session.scalar(
        select(KnowledgePage).where(
            KnowledgePage.id == parent_id, KnowledgePage.workspace_id == inv.workspace_id
        )
    )
    if parent is None:
        raise NotFoundError("Parent page not found in this workspace")
    ancestor_id = parent.parent_id
    while ancestor_id:
        if ancestor_id == page.id:
            raise ValidationError("Cannot move a page under one of its own children")
        ancestor_id = await inv.session.scalar(
            select(KnowledgePage.parent_id).where(KnowledgePage.id == ancestor_id)
        )


async def knowledge_page_list(inv: ToolInvocation) -> dict[str, Any]:
    """Children of ``parent_id``, or root pages when it is omitted."""
    limit, offset = page_bounds(inv.arguments)
    parent_id = inv.get("parent_id")
    query = select(KnowledgePage).where(
        KnowledgePage.workspace_id == inv.workspace_id,
        KnowledgePage.is_archived.is_(bool(inv.get("is_archived", False))),
        KnowledgePage.parent_id == parent_id if parent_id else KnowledgePage.parent_id.is_(None),
    )
    pages = (
        await inv.session.scalars(
            query.order_by(KnowledgePage.title).limit(limit).offset(offset)
        )
    ).all()
    return {"pages": [p.to_dict() for p in pages], "count": len(pages)}


async def knowledge_page_get(inv: ToolInvocation) -> dict[str, Any]:
    page = await _get_page(inv, inv.require("page_id"))
    return page.to_dict()


async def knowledge_page_create(inv: ToolInvocation) -> dict[str, Any]:
    parent_id = inv.get("parent_id")
    if parent_id:
        await _get_page(inv, parent_id)
    page = KnowledgePage(
        workspace_id=inv.workspace_id,
        parent_id=parent_id,
        title=inv.require("title"),
        content=inv.get("content"),
        icon=inv.get("icon"),
        cover_image=inv.get("cover_image"),
        created_by=inv.user_id,
    )
    inv.session.add(page)
    await inv.session.flush()
    return {"message": "Page created successfully", "page": page.to_dict()}


async def knowledge_page_update(inv: ToolInvocation) -> dict[str, Any]:
    page = await _get_page(inv, inv.require("page_id"))
    values = inv.updates(
        "title",
        "content",
        "parent_id",
        "icon",
        "cover_image",
        clearable={"content", "parent_id", "icon", "cover_image"},
    )
    if values.get("parent_id"):
        if values["parent_id"] == page.id:
            raise ValidationError("A page cannot be its own parent")
        await _check_new_parent(inv, page, values["parent_id"])
    for key, value in values.items():
        setattr(page, key, value)
    await inv.session.flush()
    return {"message": "Page updated successfully", "page": page.to_dict()}


async def knowledge_page_move(inv: ToolInvocation) -> dict[str, Any]:
    """Re-parent a page; a missing or null ``parent_id`` moves it to the root."""
    page = await _get_page(inv, inv.require("page_id"))
    parent_id = inv.get("parent_id")
    if parent_id:
        if parent_id == page.id:
            raise ValidationError("Cannot move a page into itself")
        await _check_new_parent(inv, page, parent_id)
    page.parent_id = parent_id or None
    await inv.session.flush()
    return {"message": "Page moved successfully", "page": page.to_dict()}


async def knowledge_page_get_children(inv: ToolInvocation) -> dict[str, Any]:
    page = await _get_page(inv, inv.require("page_id"))
    children = (
        await inv.session.scalars(
            select(KnowledgePage)
            .where(KnowledgePage.workspace_id == inv.workspace_id, KnowledgePage.parent_id == page.id)
            .order_by(KnowledgePage.title)
        )
    ).all()
    return {
        "children": [
            {"id": c.id, "title": c.title, "icon": c.icon, "is_archived": c.is_archived}
            for c in children
        ],
        "count": len(children),
        "parent_id": page.id,
    }


async def knowledge_page_delete(inv: ToolInvocation) -> dict[str, Any]:
    page = await _get_page(inv, inv.require("page_id"))
    await inv.session.delete(page)
    return {"message": "Page deleted successfully", "page_id": page.id}


async def _set_archived(inv: ToolInvocation, archived: bool) -> KnowledgePage:
    page = await _get_page(inv, inv.require("page_id"))
    page.is_archived = archived
    await inv.session.flush()
    return page


async def knowledge_page_archive(inv: ToolInvocation) -> dict[str, Any]:
    page = await _set_archived(inv, True)
    return {"message": "Page archived successfully", "page": page.to_dict()}


async def knowledge_page_restore(inv: ToolInvocation) -> dict[str, Any]:
    page = await _set_archived(inv, False)
    return {"message": "Page restored successfully", "page": page.to_dict()}


async def knowledge_page_search(inv: ToolInvocation) -> dict[str, Any]:
    query_text = inv.require("query")
    limit, _ = page_bounds(inv.arguments, default_limit=SEARCH_LIMIT)
    pages = (
        await inv.session.scalars(
            select(KnowledgePage)
            .where(
                KnowledgePage.workspace_id == inv.workspace_id,
                KnowledgePage.is_archived.is_(False),
                KnowledgePage.title.ilike(f"%{query_text}%"),
            )
            .order_by(KnowledgePage.updated_at.desc(), KnowledgePage.created_at.desc())
            .limit(limit)
        )
    ).all()
    return {"pages": [p.to_dict() for p in pages], "count": len(pages), "query": query_text}


PAGE_ID = {"page_id": id_property("Knowledge page ID")}

PAGE_FIELDS = {
    "title": {"type": "string"},
    "content": {"description": "Page content (rich-text document JSON or plain text)"},
    "parent_id": nullable(id_property("Parent page ID")),
    "icon": nullable({"type": "string"}),
    "cover_image": nullable({"type": "string", "description": "Cover image URL"}),
}


KNOWLEDGE_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        "knowledge_page_list",
        "List knowledge pages under a parent page (root pages by default)",
        workspace_schema(
            {
                "parent_id": id_property("Parent page ID"),
                "is_archived": {"type": "boolean", "description": "List archived pages"},
                **PAGINATION_PROPERTIES,
            }
        ),
        knowledge_page_list,
    ),
    ToolDefinition(
        "knowledge_page_get",
        "Get a knowledge page with its content",
        workspace_schema(PAGE_ID, ["page_id"]),
        knowledge_page_get,
    ),
    ToolDefinition(
        "knowledge_page_create",
        "Create a knowledge page",
        workspace_schema(PAGE_FIELDS, ["title"]),
        knowledge_page_create,
    ),
    ToolDefinition(
        "knowledge_page_update",
        "Update a knowledge page",
        workspace_schema({**PAGE_ID, **PAGE_FIELDS}, ["page_id"]),
        knowledge_page_update,
    ),
    ToolDefinition(
        "knowledge_page_delete",
        "Delete a knowledge page and its children",
        workspace_schema(PAGE_ID, ["page_id"]),
        knowledge_page_delete,
    ),
    ToolDefinition(
        "knowledge_page_move",
        "Move a page under a new parent, or to the root when parent_id is omitted",
        workspace_schema(
            {**PAGE_ID, "parent_id": nullable(id_property("New parent page ID (null for root)"))},
            ["page_id"],
        ),
        knowledge_page_move,
    ),
    ToolDefinition(
        "knowledge_page_get_children",
        "Get the child pages of a page",
        workspace_schema(PAGE_ID, ["page_id"]),
        knowledge_page_get_children,
    ),
    ToolDefinition(
        "knowledge_page_search",
        "Search non-archived knowledge pages by title",
        workspace_schema(
            {
                "query": {"type": "string", "description": "Text to look for in page titles"},
                "limit": PAGINATION_PROPERTIES["limit"],
            },
            ["query"],
        ),
        knowledge_page_search,
    ),
    ToolDefinition(
        "knowledge_page_archive",
        "Archive a knowledge page",
        workspace_schema(PAGE_ID, ["page_id"]),
        knowledge_page_archive,
    ),
    ToolDefinition(
        "knowledge_page_restore",
        "Restore an archived knowledge page",
        workspace_schema(PAGE_ID, ["page_id"]),
        knowledge_page_restore,
    ),
]
