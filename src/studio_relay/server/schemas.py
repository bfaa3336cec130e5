"""Pydantic request/response schemas for the REST API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from studio_relay.ai.types import ChatTurn
from studio_relay.server.relay import RelayRequest

# --- Chat schemas ---

class HistoryItem(BaseModel):
    role: str = "user"
    content: str = ""

    model_config = {"extra": "ignore"}


class ChatRequest(BaseModel):
    """Body of ``POST /api/ai/chat``.

    Required fields default to empty strings so that the relay, not the
    framework, reports them as missing.
    """

    project_id: str = Field(default="default", alias="projectId")
    model: str = ""
    message: str = ""
    context: list[HistoryItem] = Field(default_factory=list)
    kind: Literal["text", "file"] = Field(default="text", alias="type")
    timeout: float | None = Field(default=None, gt=0)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def to_relay_request(self) -> RelayRequest:
        history = tuple(
            ChatTurn(role="assistant" if item.role == "assistant" else "user", content=item.content)
            for item in self.context
            if item.content
        )
        return RelayRequest(
            model=self.model,
            message=self.message,
            project_id=self.project_id or "default",
            history=history,
            kind=self.kind,
            timeout=self.timeout,
        )


# --- Model schemas ---

class ModelInfo(BaseModel):
    name: str
    provider: str
    model: str
    grammar: str
    aliases: list[str] = Field(default_factory=list)


# --- Health ---

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


# --- Error ---

class ErrorResponse(BaseModel):
    error: str
