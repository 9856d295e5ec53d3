"""
Sales and stock analysis tools

Derived metrics that are computed in Python on top of plain aggregate reads:
year-over-year growth, stock coverage classifications, and stock turn.
Stock and sales are read independently and joined here by material code.

Author: TM3
Date: 2025-11-02
"""
import logging
import math
from datetime import date
from typing import Dict, List, Literal, Optional, Set, Tuple

from dateutil.relativedelta import relativedelta
from pydantic import Field

from ainoc.domain.analysis import (
    AgentGrowth,
    CustomerGrowth,
    EndUseShare,
    InactiveCustomer,
    QuarterlyRevenue,
    RegionGrowth,
    StockSalesRow,
    StockTurnRatio,
    TopProduct,
)
from ainoc.domain.results import ToolResult
from ainoc.domain.stock import StockItem, StockValue
from ainoc.repositories.filters import QueryFilter, clamp_limit
from ainoc.repositories.invoice_repository import InvoiceRepository
from ainoc.repositories.stock_repository import StockRepository
from ainoc.services.tool_params import ToolParams

logger = logging.getLogger(__name__)

invoice_repository = InvoiceRepository()
stock_repository = StockRepository()

# Placeholder business threshold (meters). No reorder levels exist in the data yet.
LOW_STOCK_THRESHOLD = 100

NEAR_TERM_WINDOW_MONTHS = 3
EXCESS_WINDOW_MONTHS = 6
DEFAULT_COVERAGE_THRESHOLD = 6.0
STOCK_SALES_RESULT_LIMIT = 20

HIGH_SALES_ZERO_STOCK = "high_sales_zero_stock"
OUT_OF_STOCK = "out_of_stock"
LIKELY_STOCK_OUT = "likely_stock_out"
LOW_STOCK = "low_stock"
EXCESS_STOCK = "excess_stock"

StockSalesType = Literal["high_sales_zero_stock", "out_of_stock", "likely_stock_out", "low_stock", "excess_stock"]


# ============================================================================
# Pure computations
# ============================================================================

def growth_percentage(current: float, previous: float) -> float:
    """
    Period-over-period growth in percent, rounded to 2 decimals.

    With no previous revenue, any current revenue counts as 100% growth and
    none as 0%.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def trailing_windows(today: date) -> Tuple[Tuple[date, date], Tuple[date, date]]:
    """
    (current, previous) 12-month windows ending today.

    current  = [today - 12 months, today]
    previous = [today - 24 months, today - 12 months)
    """
    one_year_ago = today - relativedelta(months=12)
    two_years_ago = today - relativedelta(months=24)
    return (one_year_ago, today), (two_years_ago, one_year_ago)


def monthly_velocity(sold: float, window_months: int) -> float:
    return sold / window_months if window_months else 0.0


def coverage_months(quantity: float, velocity: float) -> float:
    """Months of stock at the given monthly velocity; inf when nothing sells."""
    if velocity <= 0:
        return math.inf if quantity > 0 else 0.0
    return quantity / velocity


def classify_stock(
    quantity: float,
    sold_near_term: float,
    sold_excess_window: float = 0.0,
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> Set[str]:
    """
    Every stock-vs-sales class a material falls into.

    Near-term classes use the 3-month velocity, excess stock the 6-month one.
    A material can be in several classes at once (zero stock with recent sales
    is both high_sales_zero_stock and out_of_stock).
    """
    classes = set()
    near_velocity = monthly_velocity(sold_near_term, NEAR_TERM_WINDOW_MONTHS)

    if quantity <= 0:
        classes.add(OUT_OF_STOCK)
        if sold_near_term > 0:
            classes.add(HIGH_SALES_ZERO_STOCK)
    else:
        if quantity < near_velocity:
            classes.add(LIKELY_STOCK_OUT)
        if quantity < LOW_STOCK_THRESHOLD:
            classes.add(LOW_STOCK)
        excess_velocity = monthly_velocity(sold_excess_window, EXCESS_WINDOW_MONTHS)
        if coverage_months(quantity, excess_velocity) >= coverage_threshold:
            classes.add(EXCESS_STOCK)

    return classes


def join_stock_and_sales(
    stock_quantities: Dict[str, float],
    sales_by_material: Dict[str, float],
) -> List[Tuple[str, float, float]]:
    """
    Inner join by material code: (material, quantity, sold).

    Materials missing from either side are left out entirely.
    """
    return [
        (material, stock_quantities[material], sold)
        for material, sold in sorted(sales_by_material.items())
        if material in stock_quantities
    ]


def _growth_rows(
    current: Dict[str, Tuple[Optional[str], float]],
    previous: Dict[str, Tuple[Optional[str], float]],
) -> List[Tuple[str, Optional[str], float, float]]:
    """(key, name, current, previous) for every key with current-period revenue."""
    rows = []
    for key, (name, current_revenue) in current.items():
        previous_revenue = previous.get(key, (None, 0.0))[1]
        rows.append((key, name, current_revenue, previous_revenue))
    return rows


# ============================================================================
# Input models
# ============================================================================

class QuarterlyRevenueParams(ToolParams):
    regions: Optional[List[str]] = Field(None, description="Regions / zones to include, e.g. ['US', 'UK', 'EU']")
    years: Optional[int] = Field(None, description="How many years back (default 2)")


class CustomerGrowthParams(ToolParams):
    limit: Optional[int] = Field(None, description="How many customers to return (default 20, max 100)")


class CityAnalysisParams(ToolParams):
    city: str = Field(..., description="Bill-to city name (case-insensitive)")
    type: Literal["top_customers", "top_products", "top_shades", "avg_selling_rate"] = Field(
        ..., description="Which breakdown to return"
    )


class InactiveCustomersParams(ToolParams):
    months_inactive: int = Field(..., description="Months without any order", ge=1)


class StockSalesParams(ToolParams):
    type: StockSalesType = Field(..., description="Which stock-vs-sales signal to look for")
    coverage_months_threshold: Optional[float] = Field(
        None, description="Excess stock only: months of cover that counts as excess (default 6)"
    )


class StockInfoParams(ToolParams):
    sku: Optional[str] = Field(None, description="Material code to look up")
    min_quantity: Optional[float] = Field(None, description="Only items with at least this many meters")


class TopProductsParams(ToolParams):
    limit: Optional[int] = Field(None, description="How many products (default 10, max 100)")


# ============================================================================
# TOOL 1: Revenue over time
# ============================================================================

def get_quarterly_revenue(params: QuarterlyRevenueParams) -> List[QuarterlyRevenue]:
    years = clamp_limit(params.years, 2, 10)
    since = date.today() - relativedelta(months=12 * years)
    return invoice_repository.quarterly_revenue(since, params.regions)


def get_region_growth(params: ToolParams) -> List[RegionGrowth]:
    (cur_start, cur_end), (prev_start, prev_end) = trailing_windows(date.today())
    current = invoice_repository.revenue_by_key("region_zone", None, cur_start, cur_end)
    previous = invoice_repository.revenue_by_key("region_zone", None, prev_start, prev_end, end_inclusive=False)

    results = [
        RegionGrowth(
            region_zone=key,
            current_revenue=cur,
            previous_revenue=prev,
            growth_percentage=growth_percentage(cur, prev),
        )
        for key, _, cur, prev in _growth_rows(current, previous)
    ]
    results.sort(key=lambda row: row.growth_percentage, reverse=True)
    return results


def get_customer_growth(params: CustomerGrowthParams) -> List[CustomerGrowth]:
    (cur_start, cur_end), (prev_start, prev_end) = trailing_windows(date.today())
    current = invoice_repository.revenue_by_key("bill_to_party_code", "bill_to_party", cur_start, cur_end)
    previous = invoice_repository.revenue_by_key(
        "bill_to_party_code", "bill_to_party", prev_start, prev_end, end_inclusive=False
    )

    results = [
        CustomerGrowth(
            bill_to_party_code=key,
            bill_to_party=name,
            current_revenue=cur,
            previous_revenue=prev,
            absolute_growth=round(cur - prev, 2),
            growth_percentage=growth_percentage(cur, prev),
        )
        for key, name, cur, prev in _growth_rows(current, previous)
    ]
    results.sort(key=lambda row: row.absolute_growth, reverse=True)
    return results[:clamp_limit(params.limit, 20, 100)]


def get_agent_growth(params: ToolParams) -> List[AgentGrowth]:
    (cur_start, cur_end), (prev_start, prev_end) = trailing_windows(date.today())
    current = invoice_repository.revenue_by_key("agent_code", "agent_name", cur_start, cur_end)
    previous = invoice_repository.revenue_by_key("agent_code", "agent_name", prev_start, prev_end, end_inclusive=False)

    results = [
        AgentGrowth(
            agent_code=key,
            agent_name=name,
            current_revenue=cur,
            previous_revenue=prev,
            absolute_growth=round(cur - prev, 2),
            growth_percentage=growth_percentage(cur, prev),
        )
        for key, name, cur, prev in _growth_rows(current, previous)
    ]
    results.sort(key=lambda row: row.absolute_growth, reverse=True)
    return results


# ============================================================================
# TOOL 2: Customers, cities and end uses
# ============================================================================

def get_city_analysis(params: CityAnalysisParams) -> ToolResult:
    city = params.city.strip()
    if params.type == "top_customers":
        data = invoice_repository.city_top_customers(city, limit=10)
    elif params.type == "top_products":
        data = invoice_repository.city_top_products(city, limit=5)
    elif params.type == "top_shades":
        data = invoice_repository.city_top_shades(city, limit=5)
    else:
        # Rates are listed for every city so the asked one can be compared.
        data = invoice_repository.selling_rate_by_city()
    return ToolResult.ok({"city": city, "type": params.type, "results": data})


def get_end_use_share(params: ToolParams) -> List[EndUseShare]:
    return invoice_repository.end_use_revenue()


def get_inactive_customers(params: InactiveCustomersParams) -> List[InactiveCustomer]:
    """
    Customers who ordered in the year before the cutoff but not since.

    cutoff = today - months_inactive months
    """
    cutoff = date.today() - relativedelta(months=params.months_inactive)
    recently_active = invoice_repository.customers_active_between(cutoff)
    previously_active = invoice_repository.customers_active_between(cutoff - relativedelta(months=12), cutoff)

    inactive = []
    for code, row in previously_active.items():
        if code in recently_active:
            continue
        last = row.get("last_invoice_date")
        inactive.append(InactiveCustomer(
            bill_to_party_code=code,
            bill_to_party=row.get("bill_to_party"),
            last_invoice_date=last.isoformat() if last else None,
        ))

    inactive.sort(key=lambda c: c.last_invoice_date or "", reverse=True)
    return inactive


# ============================================================================
# TOOL 3: Stock vs sales
# ============================================================================

def get_stock_sales_analysis(params: StockSalesParams) -> List[StockSalesRow]:
    """
    Two-phase fetch then join: stock quantities and trailing sales per
    material are read separately and matched by material code.
    """
    today = date.today()
    window = EXCESS_WINDOW_MONTHS if params.type == EXCESS_STOCK else NEAR_TERM_WINDOW_MONTHS
    threshold = params.coverage_months_threshold or DEFAULT_COVERAGE_THRESHOLD

    stock_quantities = stock_repository.quantities_by_material()
    near_term_sales = invoice_repository.quantity_sold_by_material(
        today - relativedelta(months=NEAR_TERM_WINDOW_MONTHS)
    )
    excess_sales = invoice_repository.quantity_sold_by_material(today - relativedelta(months=EXCESS_WINDOW_MONTHS))
    sales = excess_sales if window == EXCESS_WINDOW_MONTHS else near_term_sales

    results = []
    for material, quantity, sold in join_stock_and_sales(stock_quantities, sales):
        classes = classify_stock(
            quantity,
            sold_near_term=near_term_sales.get(material, 0.0),
            sold_excess_window=excess_sales.get(material, 0.0),
            coverage_threshold=threshold,
        )
        if params.type not in classes:
            continue

        velocity = monthly_velocity(sold, window)
        coverage = coverage_months(quantity, velocity)
        results.append(StockSalesRow(
            material=material,
            stock_in_meters=quantity,
            sold_quantity=sold,
            monthly_velocity=round(velocity, 2),
            coverage_months=round(coverage, 2) if math.isfinite(coverage) else None,
            classifications=sorted(classes),
        ))

    if params.type == HIGH_SALES_ZERO_STOCK:
        results.sort(key=lambda row: row.sold_quantity, reverse=True)
    elif params.type == LIKELY_STOCK_OUT:
        results.sort(key=lambda row: row.coverage_months or 0.0)
    elif params.type == EXCESS_STOCK:
        results.sort(key=lambda row: row.coverage_months if row.coverage_months is not None else math.inf,
                     reverse=True)

    return results[:STOCK_SALES_RESULT_LIMIT]


def get_stock_info(params: StockInfoParams) -> List[StockItem]:
    qf = QueryFilter().equals("material", params.sku).gte("stock_in_meters", params.min_quantity or None)
    return stock_repository.list_items(qf, limit=20)


def get_total_stock_value(params: ToolParams) -> StockValue:
    return stock_repository.total_value()


def get_stock_turn_ratio(params: ToolParams) -> StockTurnRatio:
    """Trailing 12 months quantity sold / current quantity on hand."""
    sold = invoice_repository.total_quantity_sold(date.today() - relativedelta(months=12))
    on_hand = stock_repository.total_quantity()

    if on_hand <= 0:
        return StockTurnRatio(
            stock_turn_ratio=None,
            total_sales_qty_last_year=sold,
            current_total_stock_qty=on_hand,
            message="Current stock is zero, so the stock turn ratio is undefined.",
        )

    return StockTurnRatio(
        stock_turn_ratio=round(sold / on_hand, 2),
        total_sales_qty_last_year=sold,
        current_total_stock_qty=on_hand,
    )


def get_top_products(params: TopProductsParams) -> List[TopProduct]:
    return invoice_repository.top_products(clamp_limit(params.limit, 10, 100))

