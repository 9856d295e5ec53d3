"""Shared field types for the record models."""
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import PlainSerializer

# NUMERIC columns arrive as Decimal; the model context wants plain JSON numbers.
Amount = Annotated[
    Optional[Decimal],
    PlainSerializer(float, return_type=float, when_used="json-unless-none"),
]
