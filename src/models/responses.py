"""Response models for the query endpoints."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class StatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    live_sources: int = Field(alias="liveSources")
    live_receivers: int = Field(alias="liveReceivers")


class SourceListResponse(BaseModel):
    sources: List[str]
