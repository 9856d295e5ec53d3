"""
Repository Layer - Data Access

Read-only SQL over the `invoice` and `stock` tables. Repositories compose
predicates from whichever filters are present and map rows onto the domain
record types; they hold no business rules.

Author: TM3
Date: 2025-11-02
"""
from ainoc.repositories.invoice_repository import InvoiceRepository
from ainoc.repositories.stock_repository import StockRepository

__all__ = ['InvoiceRepository', 'StockRepository']
