"""Error models for API responses."""

import enum
from typing import Literal

from pydantic import BaseModel


class RelayErrorType(str, enum.Enum):
    HISTORY_UNAVAILABLE = "history_unavailable"


class RelayErrorDetail(BaseModel):
    type: RelayErrorType
    message: str


class RelayErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    error: RelayErrorDetail
