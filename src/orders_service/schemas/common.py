"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Machine-readable description of a failed request."""

    code: str = Field(..., description="Symbolic error code, e.g. ORDER_NOT_FOUND.")
    message: str
    timestamp: str
    path: str
    details: dict[str, Any] | None = None


class ErrorBody(BaseModel):
    """Envelope used for every error response."""

    error: ErrorDetail
