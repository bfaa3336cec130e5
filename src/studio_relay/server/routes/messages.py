"""Message history route — the conversation as stored, oldest first."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from studio_relay.errors import ValidationError
from studio_relay.storage.message_store import MessageStore

router = APIRouter(prefix="/api", tags=["messages"])


def _get_store() -> MessageStore:
    from studio_relay.server.app import get_message_store
    return get_message_store()


@router.get("/chat")
async def list_messages(project_id: str = Query(default="", alias="projectId")) -> dict[str, Any]:
    if not project_id:
        raise ValidationError("Project ID required")
    messages = await _get_store().list_messages(project_id)
    return {"messages": [m.model_dump() for m in messages]}
