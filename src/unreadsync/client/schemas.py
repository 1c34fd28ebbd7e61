"""Pydantic schemas for API response and push message models."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class UnreadCountResponse(BaseModel):
    """Body of the unread count endpoint."""

    model_config = ConfigDict(extra="ignore")

    # A missing or null count means nothing is unread
    count: Annotated[int, Field(strict=True, ge=0)] | None = 0

    @property
    def value(self) -> int:
        return self.count or 0


class PushMessage(BaseModel):
    """Real-time message received on the push channel.

    Servers name the event either under "event" or under "type".
    The payload is never interpreted.
    """

    model_config = ConfigDict(extra="allow")

    event: str | None = None
    type: str | None = None

    @property
    def name(self) -> str | None:
        return self.event or self.type
