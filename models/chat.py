"""Chat assistant models."""

from pydantic import BaseModel, Field


class ChatSource(BaseModel):
    """A source cited in a chat reply (article or stored report)."""

    title: str
    type: str = Field(description="'article' or 'report'")
    url: str | None = None
    source: str | None = None
    date: str | None = None


class ChatReply(BaseModel):
    """Assistant reply returned to the HTTP API."""

    content: str
    sources: list[ChatSource] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    conversation_id: str = ""
