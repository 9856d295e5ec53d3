"""
Tool catalog for the analytics assistant

Binds every data tool to a name, a description for the model, and a pydantic
input model. The catalog renders Anthropic tool definitions from those models
and is the single dispatch point: arguments are validated here, so a bad
argument set becomes a ToolInputError instead of reaching a query.

Groups are for documentation and listing only; all tools are offered to the
model on every turn.

Author: TM3
Date: 2025-11-02
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ainoc.core.auth import AuthState, Unauthenticated
from ainoc.domain.results import ToolResult
from ainoc.services import invoice_tools, sales_analysis, stock_tools, user_tools
from ainoc.services.tool_params import (
    DatePageParams,
    DateRangeParams,
    NoParams,
)

logger = logging.getLogger(__name__)

INVOICE_ANALYTICS = "invoice_analytics"
USER_SCOPED = "user_scoped"
SALES_ANALYSIS = "sales_analysis"
ADMIN_STOCK = "admin_stock"


class ToolError(Exception):
    """Base class for dispatch-level tool errors"""


class UnknownToolError(ToolError):
    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class ToolInputError(ToolError):
    """Arguments from the model did not match the tool's input model."""

    def __init__(self, name: str, error: ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
            for err in error.errors()
        )
        super().__init__(f"Invalid arguments for {name}: {problems}")
        self.name = name


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable
    group: str
    scoped: bool = False

    def input_schema(self) -> Dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def to_anthropic(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }


class ToolCatalog:
    """Name -> ToolDefinition registry with validated dispatch"""

    def __init__(self, definitions: List[ToolDefinition]):
        self._tools: Dict[str, ToolDefinition] = {}
        for definition in definitions:
            if definition.name in self._tools:
                raise ValueError(f"Duplicate tool name: {definition.name}")
            self._tools[definition.name] = definition

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def names(self, group: Optional[str] = None) -> List[str]:
        return [name for name, tool in self._tools.items() if group is None or tool.group == group]

    def anthropic_tools(self) -> List[Dict[str, Any]]:
        return [tool.to_anthropic() for tool in self._tools.values()]

    def execute(self, name: str, raw_input: Optional[Dict[str, Any]], auth: Optional[AuthState] = None) -> Dict[str, Any]:
        """
        Validate arguments and run a tool.

        Returns the JSON-ready ToolResult envelope. Raises UnknownToolError or
        ToolInputError for dispatch problems; errors from the data layer
        propagate to the caller untouched.
        """
        tool = self.get(name)
        try:
            params = tool.input_model.model_validate(raw_input or {})
        except ValidationError as e:
            raise ToolInputError(name, e) from e

        logger.info(f"Executing tool {name} with {params.model_dump(exclude_none=True)}")

        if tool.scoped:
            result = tool.handler(params, auth if auth is not None else Unauthenticated())
        else:
            result = tool.handler(params)

        if not isinstance(result, ToolResult):
            result = ToolResult.ok(result)
        return result.model_dump(mode="json")


def _tool(name, description, input_model, handler, group) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        input_model=input_model,
        handler=handler,
        group=group,
        scoped=getattr(handler, "requires_identity", False),
    )


# ============================================================================
# Catalog
# ============================================================================

TOOL_DEFINITIONS = [
    # --- Unscoped invoice analytics ---
    _tool("get_invoice_by_id",
          "Fetch a single invoice line by its numeric primary key ID.",
          invoice_tools.InvoiceIdParams, invoice_tools.get_invoice_by_id, INVOICE_ANALYTICS),
    _tool("get_invoice_by_billing_document_and_item",
          "Fetch one invoice line using the billing document number and item number.",
          invoice_tools.DocumentItemParams, invoice_tools.get_invoice_by_billing_document_and_item,
          INVOICE_ANALYTICS),
    _tool("list_customer_invoices",
          "List invoices for a specific customer and optional date range, newest first. "
          "Default 50 rows, max 200.",
          invoice_tools.CustomerInvoicesParams, invoice_tools.list_customer_invoices, INVOICE_ANALYTICS),
    _tool("list_material_invoices",
          "List invoices for a given material or Ainocular design/shade, with optional region and "
          "date filters, newest first.",
          invoice_tools.MaterialInvoicesParams, invoice_tools.list_material_invoices, INVOICE_ANALYTICS),
    _tool("get_customer_amount_summary",
          "Summarize invoice amounts for a customer over an optional date range "
          "(net, gross, tax, discount, TCS, line count).",
          invoice_tools.CustomerSummaryParams, invoice_tools.get_customer_amount_summary, INVOICE_ANALYTICS),
    _tool("get_invoice_shipping_details",
          "Shipping and logistics details (cities, packs, freight, agent, broker) for one invoice line.",
          invoice_tools.DocumentItemParams, invoice_tools.get_invoice_shipping_details, INVOICE_ANALYTICS),
    _tool("get_invoice_kpis",
          "High-level KPI summary across all invoices in an optional date range (totals, average per line).",
          DateRangeParams, invoice_tools.get_invoice_kpis, INVOICE_ANALYTICS),
    _tool("get_top_customers_by_revenue",
          "Top customers by net and gross revenue in an optional date range.",
          invoice_tools.TopCustomersParams, invoice_tools.get_top_customers_by_revenue, INVOICE_ANALYTICS),
    _tool("get_revenue_by_region",
          "Revenue and invoice counts per region/zone in an optional date range.",
          DateRangeParams, invoice_tools.get_revenue_by_region, INVOICE_ANALYTICS),
    _tool("get_agent_performance",
          "Revenue and invoice count per sales agent in an optional date range.",
          DateRangeParams, invoice_tools.get_agent_performance, INVOICE_ANALYTICS),
    _tool("get_fabric_performance_by_end_use",
          "Revenue, quantity and counts per end use / fabric type / style in an optional date range.",
          DateRangeParams, invoice_tools.get_fabric_performance_by_end_use, INVOICE_ANALYTICS),
    _tool("get_pattern_performance",
          "Revenue, quantity and counts per Ainocular design/shade and pattern in an optional date range.",
          DateRangeParams, invoice_tools.get_pattern_performance, INVOICE_ANALYTICS),
    _tool("list_customer_distinct_values",
          "List distinct bill-to customers (code + name) and bill-to cities. Use before filtering "
          "by customer or city instead of guessing values.",
          NoParams, invoice_tools.list_customer_distinct_values, INVOICE_ANALYTICS),
    _tool("list_admin_distinct_values",
          "List distinct regions, agents, end uses and Ainocular designs to choose valid filters.",
          NoParams, invoice_tools.list_admin_distinct_values, INVOICE_ANALYTICS),
    _tool("get_invoice_pdf_link",
          "Get the PDF download link for an invoice by its billing document ID.",
          invoice_tools.BillingDocumentParams, invoice_tools.get_invoice_pdf_link, INVOICE_ANALYTICS),

    # --- Signed-in user's own invoices ---
    _tool("get_my_profile",
          "The signed-in user's profile and invoice statistics (total invoices, total spent, "
          "first/last invoice date). Requires sign-in.",
          NoParams, user_tools.get_my_profile, USER_SCOPED),
    _tool("get_my_invoice_history",
          "The signed-in user's invoice lines with optional date filters, newest first. Requires sign-in.",
          DatePageParams, user_tools.get_my_invoice_history, USER_SCOPED),
    _tool("get_my_recent_invoices",
          "The signed-in user's most recent invoice lines. Requires sign-in.",
          user_tools.RecentInvoicesParams, user_tools.get_my_recent_invoices, USER_SCOPED),
    _tool("get_my_invoice_summary",
          "Totals (net, gross, discount, taxes) over the signed-in user's invoices. Requires sign-in.",
          DateRangeParams, user_tools.get_my_invoice_summary, USER_SCOPED),
    _tool("get_my_invoice_details",
          "Details of one of the signed-in user's invoices. Returns every line of the document unless "
          "an item number is given. Requires sign-in.",
          user_tools.MyDocumentParams, user_tools.get_my_invoice_details, USER_SCOPED),
    _tool("get_my_invoice_pdf",
          "PDF download link for one of the signed-in user's invoices. Requires sign-in.",
          user_tools.MyPdfParams, user_tools.get_my_invoice_pdf, USER_SCOPED),
    _tool("get_my_purchases_by_material",
          "What the signed-in user has bought, grouped by material, with quantities and amounts. "
          "Requires sign-in.",
          user_tools.MyPurchasesParams, user_tools.get_my_purchases_by_material, USER_SCOPED),
    _tool("get_my_monthly_purchase_trend",
          "The signed-in user's purchases month by month. Requires sign-in.",
          user_tools.MonthlyTrendParams, user_tools.get_my_monthly_purchase_trend, USER_SCOPED),

    # --- Sales and stock analysis ---
    _tool("get_quarterly_revenue",
          "Quarterly revenue per region for the last N years.",
          sales_analysis.QuarterlyRevenueParams, sales_analysis.get_quarterly_revenue, SALES_ANALYSIS),
    _tool("get_region_growth",
          "Region revenue growth, last 12 months vs the 12 months before, highest percentage first.",
          NoParams, sales_analysis.get_region_growth, SALES_ANALYSIS),
    _tool("get_customer_growth",
          "Customer revenue growth (absolute and percentage), last 12 months vs the 12 months before.",
          sales_analysis.CustomerGrowthParams, sales_analysis.get_customer_growth, SALES_ANALYSIS),
    _tool("get_agent_growth",
          "Agent revenue growth, last 12 months vs the 12 months before, largest absolute growth first.",
          NoParams, sales_analysis.get_agent_growth, SALES_ANALYSIS),
    _tool("get_city_analysis",
          "City performance: top customers, top products, top shades, or average selling rate.",
          sales_analysis.CityAnalysisParams, sales_analysis.get_city_analysis, SALES_ANALYSIS),
    _tool("get_end_use_share",
          "Revenue share by end use (e.g. Curtains, Upholstery).",
          NoParams, sales_analysis.get_end_use_share, SALES_ANALYSIS),
    _tool("get_inactive_customers",
          "Customers who ordered in the year before the cutoff but not in the last N months.",
          sales_analysis.InactiveCustomersParams, sales_analysis.get_inactive_customers, SALES_ANALYSIS),
    _tool("get_stock_sales_analysis",
          "Stock vs sales: high sales with zero stock, out of stock, likely to stock out within a "
          "month, low stock (under 100 m), or excess stock.",
          sales_analysis.StockSalesParams, sales_analysis.get_stock_sales_analysis, SALES_ANALYSIS),
    _tool("get_stock_info",
          "Check stock availability for a material code or list stock items.",
          sales_analysis.StockInfoParams, sales_analysis.get_stock_info, SALES_ANALYSIS),
    _tool("get_total_stock_value",
          "Total value of current stock (meters on hand times basic price).",
          NoParams, sales_analysis.get_total_stock_value, SALES_ANALYSIS),
    _tool("get_stock_turn_ratio",
          "Stock turn ratio: quantity sold in the last 12 months / current quantity on hand.",
          NoParams, sales_analysis.get_stock_turn_ratio, SALES_ANALYSIS),
    _tool("get_top_products",
          "Top selling products by revenue.",
          sales_analysis.TopProductsParams, sales_analysis.get_top_products, SALES_ANALYSIS),

    # --- Admin stock ---
    _tool("get_stock_summary_kpis",
          "Stock KPIs: total materials, quantity, value, average price and lead time, items with/without stock.",
          NoParams, stock_tools.get_stock_summary_kpis, ADMIN_STOCK),
    _tool("get_stock_by_category",
          "Stock quantity and value grouped by fabric type, loom type, dyed type, stock type, colour "
          "family, end use or pattern name.",
          stock_tools.StockByCategoryParams, stock_tools.get_stock_by_category, ADMIN_STOCK),
    _tool("get_replenishment_report",
          "Items with a replenishment date within the next N days.",
          stock_tools.ReplenishmentParams, stock_tools.get_replenishment_report, ADMIN_STOCK),
    _tool("get_stock_lead_time_analysis",
          "Items sorted by supplier lead time, optionally only long lead times.",
          stock_tools.LeadTimeParams, stock_tools.get_stock_lead_time_analysis, ADMIN_STOCK),
    _tool("search_stock",
          "Search stock by material, colour family, pattern, fabric/loom/dyed type, end use, design, "
          "and stock or price ranges. Largest stock first.",
          stock_tools.SearchStockParams, stock_tools.search_stock, ADMIN_STOCK),
    _tool("list_stock_distinct_values",
          "Distinct fabric types, loom types, dyed types, stock types, colour families, patterns, end "
          "uses and designs present in stock.",
          NoParams, stock_tools.list_stock_distinct_values, ADMIN_STOCK),
    _tool("get_stock_value_by_design",
          "Stock value grouped by design, shade or colour master, with average GSM.",
          stock_tools.StockValueByDesignParams, stock_tools.get_stock_value_by_design, ADMIN_STOCK),
    _tool("get_stock_aging_report",
          "Items with a replenishment date, ordered by days until replenishment, with stock value.",
          stock_tools.AgingParams, stock_tools.get_stock_aging_report, ADMIN_STOCK),
    _tool("get_excess_stock_report",
          "Items holding more than N months of cover at 6-month average sales, largest value first.",
          stock_tools.ExcessStockParams, stock_tools.get_excess_stock_report, ADMIN_STOCK),
]

tool_catalog = ToolCatalog(TOOL_DEFINITIONS)
