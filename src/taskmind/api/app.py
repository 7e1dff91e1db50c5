"""FastAPI app exposing one in-memory mind map session."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from taskmind.config import Settings, load_settings
from taskmind.core.session import MindMapSession
from taskmind.errors import EnrichmentFetchError, PreconditionError, TaskMindError
from taskmind.logging import configure_logging, get_logger
from taskmind.models.node import Node, NodePatch, NodeStatus


class GenerateRequest(BaseModel):
    """Generate request."""

    topic: str


class StatusRequest(BaseModel):
    status: NodeStatus


class ChecklistItemRequest(BaseModel):
    item: str


def _node(node: Node) -> dict[str, Any]:
    return node.model_dump(mode="json", by_alias=True)


def _soft_error(error: Exception, **extra: Any) -> JSONResponse:
    """Core errors are reported in the body, never as a server error."""

    kind = type(error).__name__
    return JSONResponse({"ok": False, "errorKind": kind, "error": str(error), **extra})


def create_app(settings: Settings | None = None, session: MindMapSession | None = None) -> FastAPI:
    """Create FastAPI app."""

    settings = settings or load_settings()
    configure_logging(settings.log_level)
    logger = get_logger(__name__)

    app = FastAPI(title="TaskMind", version="0.1.0")
    app.state.session = session or MindMapSession.from_settings(settings)

    def current() -> MindMapSession:
        return app.state.session

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/mindmap")
    async def generate(req: GenerateRequest) -> Any:
        logger.info("API generate requested", extra={"topic_len": len(req.topic)})
        try:
            root = await current().generate(req.topic)
        except PreconditionError as e:
            return _soft_error(e)
        return {"ok": True, "version": current().version, "tree": _node(root)}

    @app.get("/mindmap")
    def get_tree() -> Any:
        try:
            root = current().get_tree()
        except PreconditionError as e:
            return _soft_error(e)
        return {"ok": True, "version": current().version, "tree": _node(root)}

    @app.post("/nodes/{node_id:path}/expand")
    async def expand(node_id: str) -> Any:
        try:
            outcome = await current().expand(node_id)
        except PreconditionError as e:
            return _soft_error(e)
        return {"ok": outcome.ok, "outcome": outcome.to_dict(), "version": current().version}

    @app.post("/nodes/{node_id:path}/select")
    async def select(node_id: str) -> Any:
        session = current()
        try:
            node = await session.select_node(node_id)
        except EnrichmentFetchError as e:
            return _soft_error(e, enrichment=session.enrichment_state(node_id).to_dict())
        except TaskMindError as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node), "enrichment": session.enrichment_state(node_id).to_dict()}

    @app.post("/nodes/{node_id:path}/roles")
    async def roles(node_id: str) -> Any:
        session = current()
        try:
            node = await session.generate_roles_for_node(node_id)
        except EnrichmentFetchError as e:
            return _soft_error(e, enrichment=session.enrichment_state(node_id).to_dict())
        except TaskMindError as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node), "enrichment": session.enrichment_state(node_id).to_dict()}

    @app.patch("/nodes/{node_id:path}")
    def patch_node(node_id: str, patch: NodePatch) -> Any:
        try:
            node = current().update_node_fields(node_id, patch)
        except (TaskMindError, ValueError) as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node), "version": current().version}

    @app.put("/nodes/{node_id:path}/status")
    def set_status(node_id: str, req: StatusRequest) -> Any:
        try:
            node = current().set_status(node_id, req.status)
        except TaskMindError as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node), "version": current().version}

    # Checklist routes must be registered before DELETE /nodes/{node_id:path}.
    @app.post("/nodes/{node_id:path}/checklist")
    def add_checklist_item(node_id: str, req: ChecklistItemRequest) -> Any:
        try:
            node = current().add_checklist_item(node_id, req.item)
        except TaskMindError as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node)}

    @app.put("/nodes/{node_id:path}/checklist/{index}")
    def update_checklist_item(node_id: str, index: int, req: ChecklistItemRequest) -> Any:
        try:
            node = current().update_checklist_item(node_id, index, req.item)
        except (TaskMindError, IndexError) as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node)}

    @app.delete("/nodes/{node_id:path}/checklist/{index}")
    def remove_checklist_item(node_id: str, index: int) -> Any:
        try:
            node = current().remove_checklist_item(node_id, index)
        except (TaskMindError, IndexError) as e:
            return _soft_error(e)
        return {"ok": True, "node": _node(node)}

    @app.delete("/nodes/{node_id:path}")
    def delete_node(node_id: str) -> Any:
        try:
            removed = current().delete_node(node_id)
        except TaskMindError as e:
            return _soft_error(e)
        return {"ok": True, "removed": removed, "version": current().version}

    @app.get("/export/json")
    def export_json() -> Any:
        try:
            body = current().export_json()
        except PreconditionError as e:
            return _soft_error(e)
        return PlainTextResponse(body, media_type="application/json")

    @app.get("/export/markdown")
    def export_markdown() -> Any:
        try:
            body = current().export_markdown()
        except PreconditionError as e:
            return _soft_error(e)
        return PlainTextResponse(body, media_type="text/markdown")

    @app.post("/import")
    def import_json(document: dict[str, Any]) -> Any:
        try:
            root = current().load_json(document)
        except (ValidationError, ValueError) as e:
            return _soft_error(e)
        return {"ok": True, "version": current().version, "tree": _node(root)}

    return app
