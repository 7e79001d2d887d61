"""Pydantic request models."""
from __future__ import annotations

from pydantic import BaseModel, Field


class QuotesRequest(BaseModel):
    symbols: list[str] = Field(default_factory=list)
