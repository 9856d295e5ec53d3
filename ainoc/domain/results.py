"""
Tool and turn result types

ToolResult is the envelope every tool returns. Expected failures (not signed
in, not found, missing identifier) are reported through it instead of raised.
"""
from typing import Any, Optional

from pydantic import BaseModel


class ToolResult(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error, data=None)


class UsageMetadata(BaseModel):
    """Token accounting for one chat turn. Fields stay None when not reported."""
    total_tokens: Optional[int] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    cached_input_tokens: Optional[int] = None


class DocumentLink(BaseModel):
    """Downloadable invoice PDF detected in an answer"""
    document_id: str
    url: str
    label: str
    filename: str
