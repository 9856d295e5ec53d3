"""
User-scoped invoice tools ("my invoices")

Every tool here is restricted to the signed-in customer's own invoice lines.
The caller's auth state is passed in explicitly; an unauthenticated caller
gets a failed ToolResult before any query runs. For authenticated callers the
ownership predicate is always the first condition of the query and caller
filters can only narrow it. Document-level tools re-check ownership on the
fetched rows as well.

Author: TM3
Date: 2025-11-02
"""
import functools
import logging
from datetime import date
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta
from pydantic import Field

from ainoc.core.auth import Authenticated, AuthState, Identity
from ainoc.domain.invoice import UserProfile
from ainoc.domain.results import ToolResult
from ainoc.repositories.filters import QueryFilter, clamp_limit, clamp_offset
from ainoc.repositories.invoice_repository import InvoiceRepository
from ainoc.services.invoice_tools import invoice_pdf_url
from ainoc.services.tool_params import DatePageParams, DateRangeParams, ToolParams

logger = logging.getLogger(__name__)

invoice_repository = InvoiceRepository()

OWNERSHIP_COLUMN = "bill_to_party_code"

RECENT_INVOICES_DEFAULT = 10
RECENT_INVOICES_MAX = 50
MATERIAL_PURCHASES_DEFAULT = 20
MATERIAL_PURCHASES_MAX = 100
TREND_MONTHS_DEFAULT = 12
TREND_MONTHS_MAX = 24


def ownership_filter(identity: Identity) -> QueryFilter:
    """Mandatory predicate restricting a query to the caller's own rows."""
    return QueryFilter().raw(f"{OWNERSHIP_COLUMN} = %s", identity.bill_to_party_code)


def owns(identity: Identity, owner_code: Optional[str]) -> bool:
    return owner_code is not None and owner_code == identity.bill_to_party_code


def requires_identity(func: Callable) -> Callable:
    """
    Gate a user-scoped tool on the caller's auth state.

    The wrapped function receives the resolved Identity; unauthenticated
    callers get a failed ToolResult and the function body never runs.
    """
    @functools.wraps(func)
    def wrapper(params, auth: AuthState) -> ToolResult:
        if not isinstance(auth, Authenticated):
            reason = getattr(auth, "reason", None)
            logger.info(f"Blocked {func.__name__}: caller not authenticated")
            return ToolResult.fail(reason or "You must be logged in to use this feature. Please sign in first.")
        return func(params, auth.identity)

    wrapper.requires_identity = True
    return wrapper


# ============================================================================
# Input models
# ============================================================================

class RecentInvoicesParams(ToolParams):
    limit: Optional[int] = Field(None, description="How many recent invoice lines (default 10, max 50)")


class MyDocumentParams(ToolParams):
    billing_document: Optional[str] = Field(None, description="Billing document number from the user's invoices")
    item: Optional[int] = Field(None, description="Line item number; omit to get every line of the document")


class MyPdfParams(ToolParams):
    billing_document: Optional[str] = Field(None, description="Billing document number from the user's invoices")


class MyPurchasesParams(DateRangeParams):
    limit: Optional[int] = Field(None, description="How many materials to return (default 20, max 100)")


class MonthlyTrendParams(ToolParams):
    months: Optional[int] = Field(None, description="How many months back to analyze (default 12, max 24)")


# ============================================================================
# TOOL 1: Profile and listings
# ============================================================================

@requires_identity
def get_my_profile(params: ToolParams, identity: Identity) -> ToolResult:
    stats = invoice_repository.lifetime_stats(ownership_filter(identity))
    return ToolResult.ok(UserProfile(
        id=identity.id,
        name=identity.name,
        email=identity.email,
        bill_to_party_code=identity.bill_to_party_code,
        **stats,
    ))


@requires_identity
def get_my_invoice_history(params: DatePageParams, identity: Identity) -> ToolResult:
    qf = ownership_filter(identity).date_range("invoice_date", params.from_date, params.to_date)
    lines = invoice_repository.list_lines(qf, clamp_limit(params.limit), clamp_offset(params.offset))
    return ToolResult.ok(lines)


@requires_identity
def get_my_recent_invoices(params: RecentInvoicesParams, identity: Identity) -> ToolResult:
    limit = clamp_limit(params.limit, RECENT_INVOICES_DEFAULT, RECENT_INVOICES_MAX)
    lines = invoice_repository.list_lines(ownership_filter(identity), limit)
    return ToolResult.ok(lines)


@requires_identity
def get_my_invoice_summary(params: DateRangeParams, identity: Identity) -> ToolResult:
    qf = ownership_filter(identity).date_range("invoice_date", params.from_date, params.to_date)
    return ToolResult.ok(invoice_repository.amount_summary(qf))


# ============================================================================
# TOOL 2: Single documents (ownership re-checked on fetched rows)
# ============================================================================

@requires_identity
def get_my_invoice_details(params: MyDocumentParams, identity: Identity) -> ToolResult:
    billing_document = (params.billing_document or "").strip()
    if not billing_document:
        return ToolResult.fail("Billing document ID is required.")

    not_found = f"No invoice found with billing document ID: {billing_document} for your account."

    qf = ownership_filter(identity).equals("billing_document", billing_document).equals("item", params.item)
    lines = invoice_repository.list_lines(qf, limit=None, order_by="item ASC")
    if not lines:
        return ToolResult.fail(not_found)

    if not all(owns(identity, line.bill_to_party_code) for line in lines):
        logger.warning(f"Ownership mismatch on billing document {billing_document} for user {identity.id}")
        return ToolResult.fail(not_found)

    if len(lines) == 1:
        return ToolResult.ok(lines[0])
    return ToolResult.ok(lines)


@requires_identity
def get_my_invoice_pdf(params: MyPdfParams, identity: Identity) -> ToolResult:
    billing_document = (params.billing_document or "").strip()
    if not billing_document:
        return ToolResult.fail("Billing document ID is required.")

    qf = ownership_filter(identity).equals("billing_document", billing_document)
    line = invoice_repository.first_line_of_document(qf)
    if line is None or not owns(identity, line.bill_to_party_code):
        return ToolResult.fail(f"No invoice found with billing document ID: {billing_document} for your account.")

    return ToolResult.ok({
        "billing_document": billing_document,
        "pdf_url": invoice_pdf_url(billing_document),
        "invoice_date": line.invoice_date,
        "message": f"PDF link for your invoice {billing_document}",
    })


# ============================================================================
# TOOL 3: Purchase breakdowns
# ============================================================================

@requires_identity
def get_my_purchases_by_material(params: MyPurchasesParams, identity: Identity) -> ToolResult:
    qf = ownership_filter(identity).date_range("invoice_date", params.from_date, params.to_date)
    limit = clamp_limit(params.limit, MATERIAL_PURCHASES_DEFAULT, MATERIAL_PURCHASES_MAX)
    return ToolResult.ok(invoice_repository.purchases_by_material(qf, limit))


@requires_identity
def get_my_monthly_purchase_trend(params: MonthlyTrendParams, identity: Identity) -> ToolResult:
    months = clamp_limit(params.months, TREND_MONTHS_DEFAULT, TREND_MONTHS_MAX)
    since = date.today() - relativedelta(months=months)
    qf = ownership_filter(identity).gte("invoice_date", since.isoformat())
    return ToolResult.ok({
        "months": months,
        "trend": invoice_repository.monthly_totals(qf),
    })
