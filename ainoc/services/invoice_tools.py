"""
Invoice analytics tools (unscoped)

Company-wide invoice queries: single-line lookups, customer and material
listings, amount rollups, performance breakdowns, filter discovery, and PDF
links. Lookups that need an identifier report misses through ToolResult.

Author: TM3
Date: 2025-11-02
"""
import logging
from typing import List, Optional

from pydantic import Field

from ainoc.core.config import settings
from ainoc.domain.invoice import (
    AdminDistinctValues,
    AgentPerformance,
    AmountSummary,
    CustomerDistinctValues,
    CustomerRevenue,
    FabricPerformance,
    InvoiceKpis,
    InvoiceLine,
    InvoicePdfLink,
    PatternPerformance,
    RegionRevenue,
)
from ainoc.domain.results import ToolResult
from ainoc.repositories.filters import QueryFilter, clamp_limit, clamp_offset
from ainoc.repositories.invoice_repository import InvoiceRepository
from ainoc.services.tool_params import DatePageParams, DateRangeParams, ToolParams

logger = logging.getLogger(__name__)

invoice_repository = InvoiceRepository()

TOP_CUSTOMERS_DEFAULT = 20
TOP_CUSTOMERS_MAX = 100


def invoice_pdf_url(billing_document: str) -> str:
    """Public PDF location for a billing document (no file-store check)."""
    return f"{settings.INVOICE_PDF_BASE_URL.rstrip('/')}/{billing_document.strip()}.pdf"


# ============================================================================
# Input models
# ============================================================================

class InvoiceIdParams(ToolParams):
    id: int = Field(..., description="Numeric invoice primary key")


class DocumentItemParams(ToolParams):
    billing_document: str = Field(..., description="Billing document number, e.g. '91234567'")
    item: int = Field(..., description="Line item number within the billing document")


class BillingDocumentParams(ToolParams):
    billing_document: Optional[str] = Field(None, description="Billing document number, e.g. '91234567'")


class CustomerInvoicesParams(DatePageParams):
    bill_to_party_code: Optional[str] = Field(None, description="Customer code (bill-to party code)")
    bill_to_party: Optional[str] = Field(None, description="Customer name (bill-to party)")


class MaterialInvoicesParams(DatePageParams):
    material: Optional[str] = Field(None, description="Material code")
    ainocular_design: Optional[str] = Field(None, description="Ainocular design code")
    ainocular_shade: Optional[str] = Field(None, description="Ainocular shade code")
    region_zone: Optional[str] = Field(None, description="Region / zone")


class CustomerSummaryParams(DateRangeParams):
    bill_to_party_code: Optional[str] = Field(None, description="Customer code (bill-to party code)")
    bill_to_party: Optional[str] = Field(None, description="Customer name (bill-to party)")


class TopCustomersParams(DateRangeParams):
    limit: Optional[int] = Field(None, description="How many customers to return (default 20, max 100)")


# ============================================================================
# TOOL 1: Single invoice lines
# ============================================================================

def get_invoice_by_id(params: InvoiceIdParams) -> ToolResult:
    line = invoice_repository.find_by_id(params.id)
    if line is None:
        return ToolResult.fail(f"No invoice found with id: {params.id}")
    return ToolResult.ok(line)


def get_invoice_by_billing_document_and_item(params: DocumentItemParams) -> ToolResult:
    billing_document = params.billing_document.strip()
    line = invoice_repository.find_by_document_and_item(billing_document, params.item)
    if line is None:
        return ToolResult.fail(f"No invoice line found for billing document {billing_document}, item {params.item}")
    return ToolResult.ok(line)


def get_invoice_shipping_details(params: DocumentItemParams) -> ToolResult:
    billing_document = params.billing_document.strip()
    shipping = invoice_repository.find_shipping(billing_document, params.item)
    if shipping is None:
        return ToolResult.fail(f"No invoice line found for billing document {billing_document}, item {params.item}")
    return ToolResult.ok(shipping)


# ============================================================================
# TOOL 2: Listings
# ============================================================================

def list_customer_invoices(params: CustomerInvoicesParams) -> List[InvoiceLine]:
    qf = (
        QueryFilter()
        .equals("bill_to_party_code", params.bill_to_party_code)
        .equals("bill_to_party", params.bill_to_party)
        .date_range("invoice_date", params.from_date, params.to_date)
    )
    return invoice_repository.list_lines(qf, clamp_limit(params.limit), clamp_offset(params.offset))


def list_material_invoices(params: MaterialInvoicesParams) -> List[InvoiceLine]:
    qf = (
        QueryFilter()
        .equals("material", params.material)
        .equals("ainocular_design", params.ainocular_design)
        .equals("ainocular_shade", params.ainocular_shade)
        .equals("region_zone", params.region_zone)
        .date_range("invoice_date", params.from_date, params.to_date)
    )
    return invoice_repository.list_lines(qf, clamp_limit(params.limit), clamp_offset(params.offset))


# ============================================================================
# TOOL 3: Rollups and breakdowns
# ============================================================================

def get_customer_amount_summary(params: CustomerSummaryParams) -> AmountSummary:
    qf = (
        QueryFilter()
        .equals("bill_to_party_code", params.bill_to_party_code)
        .equals("bill_to_party", params.bill_to_party)
        .date_range("invoice_date", params.from_date, params.to_date)
    )
    return invoice_repository.amount_summary(qf)


def get_invoice_kpis(params: DateRangeParams) -> InvoiceKpis:
    qf = QueryFilter().date_range("invoice_date", params.from_date, params.to_date)
    return invoice_repository.kpis(qf)


def get_top_customers_by_revenue(params: TopCustomersParams) -> List[CustomerRevenue]:
    qf = QueryFilter().date_range("invoice_date", params.from_date, params.to_date)
    limit = clamp_limit(params.limit, TOP_CUSTOMERS_DEFAULT, TOP_CUSTOMERS_MAX)
    return invoice_repository.top_customers(qf, limit)


def get_revenue_by_region(params: DateRangeParams) -> List[RegionRevenue]:
    qf = QueryFilter().date_range("invoice_date", params.from_date, params.to_date)
    return invoice_repository.revenue_by_region(qf)


def get_agent_performance(params: DateRangeParams) -> List[AgentPerformance]:
    qf = QueryFilter().date_range("invoice_date", params.from_date, params.to_date)
    return invoice_repository.agent_performance(qf)


def get_fabric_performance_by_end_use(params: DateRangeParams) -> List[FabricPerformance]:
    qf = QueryFilter().date_range("invoice_date", params.from_date, params.to_date)
    return invoice_repository.fabric_performance(qf)


def get_pattern_performance(params: DateRangeParams) -> List[PatternPerformance]:
    qf = QueryFilter().date_range("invoice_date", params.from_date, params.to_date)
    return invoice_repository.pattern_performance(qf)


# ============================================================================
# TOOL 4: Filter discovery
# ============================================================================

def list_customer_distinct_values(params: ToolParams) -> CustomerDistinctValues:
    return CustomerDistinctValues(
        customers=invoice_repository.distinct_customers(),
        cities=invoice_repository.distinct_cities(),
    )


def list_admin_distinct_values(params: ToolParams) -> AdminDistinctValues:
    return AdminDistinctValues(
        regions=invoice_repository.distinct_regions(),
        agents=invoice_repository.distinct_agents(),
        end_uses=invoice_repository.distinct_end_uses(),
        designs=invoice_repository.distinct_designs(),
    )


# ============================================================================
# TOOL 5: Invoice PDF link
# ============================================================================

def get_invoice_pdf_link(params: BillingDocumentParams) -> ToolResult:
    """
    Derive the PDF download URL once the billing document is known to exist.
    """
    billing_document = (params.billing_document or "").strip()
    if not billing_document:
        return ToolResult.fail("Billing document ID is required.")

    line = invoice_repository.first_line_of_document(
        QueryFilter().equals("billing_document", billing_document)
    )
    if line is None:
        return ToolResult.fail(f"No invoice found with billing document ID: {billing_document}")

    return ToolResult.ok(InvoicePdfLink(
        billing_document=billing_document,
        pdf_url=invoice_pdf_url(billing_document),
        bill_to_party=line.bill_to_party,
        invoice_date=line.invoice_date,
        message=f"PDF link for invoice {billing_document}",
    ))
