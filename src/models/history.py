"""Broadcast history models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BroadcastRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    source_id: str = Field(alias="sourceId")
    started_at: datetime = Field(alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")
    is_active: bool = Field(default=True, alias="isActive")
