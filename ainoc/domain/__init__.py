"""
Domain Layer - Record types

Pydantic models for the two stored record sets (invoice lines, stock items)
and for every aggregate shape the analytics tools return.

Author: TM3
Date: 2025-11-02
"""
from ainoc.domain.invoice import InvoiceLine
from ainoc.domain.stock import StockItem
from ainoc.domain.results import ToolResult, UsageMetadata, DocumentLink

__all__ = ['InvoiceLine', 'StockItem', 'ToolResult', 'UsageMetadata', 'DocumentLink']
