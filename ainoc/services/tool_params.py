"""
Common tool input models

Tool arguments arrive from the language model as loosely-typed JSON. Each
tool declares a pydantic model for them; these are the shared building blocks.
Dates are taken as free-form strings and normalized later, so a malformed
date becomes "no filter" instead of a validation error.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolParams(BaseModel):
    """Base for all tool inputs: unknown keys from the model are ignored."""
    model_config = ConfigDict(extra="ignore")


class NoParams(ToolParams):
    pass


class DateRangeParams(ToolParams):
    from_date: Optional[str] = Field(None, description="Start date (inclusive), YYYY-MM-DD")
    to_date: Optional[str] = Field(None, description="End date (inclusive), YYYY-MM-DD")


class PageParams(ToolParams):
    limit: Optional[int] = Field(None, description="Maximum number of rows to return")
    offset: Optional[int] = Field(None, description="Number of rows to skip")


class DatePageParams(DateRangeParams, PageParams):
    pass
