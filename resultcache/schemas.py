"""Pydantic models for API input/output."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    query_type: str = Field(min_length=1, max_length=50)
    params: dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    result_set_id: uuid.UUID | None = None
    resource_ids: list[str] = Field(default_factory=list)
    cached: bool = False
    fingerprint: str = ""


class ResultSetResponse(BaseModel):
    result_set_id: uuid.UUID
    resource_ids: list[str] = Field(default_factory=list)


class ReapRequest(BaseModel):
    """Operator trigger. ``now`` overrides the clock for this run only."""
    now: datetime | None = None


class ReapResponse(BaseModel):
    deleted: int = 0
    cutoff: datetime | None = None
