"""
Admin stock tools

Inventory views over the stock snapshot: KPIs, category rollups, replenishment
and lead-time reports, faceted search, and the excess stock report (which
joins stock with six months of sales).

Author: TM3
Date: 2025-11-02
"""
import logging
import math
from datetime import date, timedelta
from typing import List, Literal, Optional

from dateutil.relativedelta import relativedelta
from pydantic import Field

from ainoc.domain.stock import (
    ExcessStockRow,
    LeadTimeRow,
    ReplenishmentItem,
    ReplenishmentReport,
    StockAgingRow,
    StockCategoryRow,
    StockDistinctValues,
    StockItem,
    StockSummaryKpis,
    StockValueGroup,
)
from ainoc.repositories.filters import QueryFilter, as_float, clamp_limit
from ainoc.repositories.invoice_repository import InvoiceRepository
from ainoc.repositories.stock_repository import StockRepository
from ainoc.services.sales_analysis import (
    DEFAULT_COVERAGE_THRESHOLD,
    EXCESS_WINDOW_MONTHS,
    coverage_months,
    monthly_velocity,
)
from ainoc.services.tool_params import ToolParams

logger = logging.getLogger(__name__)

stock_repository = StockRepository()
invoice_repository = InvoiceRepository()

NO_SALES = "No sales"


class StockByCategoryParams(ToolParams):
    group_by: Literal[
        "fabric_type", "loom_type", "dyed_type", "stock_type", "colour_family", "end_use", "pattern_name"
    ] = Field(..., description="Stock attribute to group by")


class ReplenishmentParams(ToolParams):
    days_ahead: Optional[int] = Field(None, description="Look-ahead window in days (default 30)")


class LeadTimeParams(ToolParams):
    min_lead_time_days: Optional[int] = Field(None, description="Only items with at least this lead time")
    sort_order: Literal["asc", "desc"] = Field("desc", description="Sort by lead time ascending or descending")
    limit: Optional[int] = Field(None, description="Maximum rows (default 20, max 100)")


class SearchStockParams(ToolParams):
    material: Optional[str] = Field(None, description="Material code, partial match")
    colour_family: Optional[str] = None
    pattern_name: Optional[str] = None
    fabric_type: Optional[str] = None
    loom_type: Optional[str] = None
    dyed_type: Optional[str] = None
    end_use: Optional[str] = None
    design: Optional[str] = Field(None, description="Ainocular design code")
    min_stock: Optional[float] = Field(None, description="Minimum meters on hand")
    max_stock: Optional[float] = Field(None, description="Maximum meters on hand")
    min_price: Optional[float] = Field(None, description="Minimum basic price")
    max_price: Optional[float] = Field(None, description="Maximum basic price")
    limit: Optional[int] = Field(None, description="Maximum rows (default and max 50)")


class StockValueByDesignParams(ToolParams):
    group_by: Literal["design", "shade", "colour_master"] = Field("design", description="Grouping dimension")
    limit: Optional[int] = Field(None, description="Maximum groups (default 20, max 100)")


class AgingParams(ToolParams):
    limit: Optional[int] = Field(None, description="Maximum rows (default 30, max 100)")


class ExcessStockParams(ToolParams):
    coverage_months_threshold: Optional[float] = Field(
        None, description="Months of cover at 6-month average sales that counts as excess (default 6)"
    )
    limit: Optional[int] = Field(None, description="Maximum rows (default 20, max 100)")


# ============================================================================
# TOOL 1: KPIs and rollups
# ============================================================================

def get_stock_summary_kpis(params: ToolParams) -> StockSummaryKpis:
    return stock_repository.summary_kpis()


def get_stock_by_category(params: StockByCategoryParams) -> List[StockCategoryRow]:
    return stock_repository.by_category(params.group_by)


def get_stock_value_by_design(params: StockValueByDesignParams) -> List[StockValueGroup]:
    return stock_repository.value_by_group(params.group_by, clamp_limit(params.limit, 20, 100))


def list_stock_distinct_values(params: ToolParams) -> StockDistinctValues:
    return stock_repository.distinct_values()


# ============================================================================
# TOOL 2: Replenishment, lead time and aging
# ============================================================================

def get_replenishment_report(params: ReplenishmentParams) -> ReplenishmentReport:
    """Items whose replenishment date falls within [today, today + days_ahead]."""
    days_ahead = clamp_limit(params.days_ahead, 30, 365)
    today = date.today()
    until = today + timedelta(days=days_ahead)

    items = [
        ReplenishmentItem(
            material=item.material,
            stock_in_meters=as_float(item.stock_in_meters),
            replenishment_date=item.replenishment_date,
            lead_time_days=item.lead_time_days,
            description_2_for_the_material_group=item.description_2_for_the_material_group,
            days_until_replenishment=(item.replenishment_date - today).days,
        )
        for item in stock_repository.replenishment_between(today, until)
    ]
    return ReplenishmentReport(days_ahead=days_ahead, from_date=today, to_date=until, items=items)


def get_stock_lead_time_analysis(params: LeadTimeParams) -> List[LeadTimeRow]:
    return stock_repository.lead_times(
        params.min_lead_time_days,
        descending=params.sort_order != "asc",
        limit=clamp_limit(params.limit, 20, 100),
    )


def get_stock_aging_report(params: AgingParams) -> List[StockAgingRow]:
    """Dated items only, soonest replenishment first."""
    today = date.today()
    rows = []
    for item in stock_repository.with_replenishment_date(clamp_limit(params.limit, 30, 100)):
        if item.replenishment_date is None:
            continue
        quantity = as_float(item.stock_in_meters)
        rows.append(StockAgingRow(
            material=item.material,
            stock_in_meters=quantity,
            replenishment_date=item.replenishment_date,
            days_until_replenishment=(item.replenishment_date - today).days,
            lead_time_days=item.lead_time_days,
            stock_value=round(quantity * as_float(item.basic_price), 2),
        ))
    rows.sort(key=lambda row: row.days_until_replenishment)
    return rows


# ============================================================================
# TOOL 3: Search
# ============================================================================

def search_stock(params: SearchStockParams) -> List[StockItem]:
    qf = (
        QueryFilter()
        .ilike("material", params.material)
        .equals("colour_family", params.colour_family)
        .equals("pattern_name", params.pattern_name)
        .equals("fabric_type", params.fabric_type)
        .equals("loom_type", params.loom_type)
        .equals("dyed_type", params.dyed_type)
        .equals("end_use", params.end_use)
        .equals("ainocular_design", params.design)
        .gte("stock_in_meters", params.min_stock)
        .lte("stock_in_meters", params.max_stock)
        .gte("basic_price", params.min_price)
        .lte("basic_price", params.max_price)
    )
    return stock_repository.list_items(qf, limit=clamp_limit(params.limit, 50, 50))


# ============================================================================
# TOOL 4: Excess stock
# ============================================================================

def get_excess_stock_report(params: ExcessStockParams) -> List[ExcessStockRow]:
    """
    Positive stock covering at least `threshold` months of 6-month average
    sales. Items that sold nothing in the window have unbounded coverage and
    are always reported, marked "No sales".
    """
    threshold = params.coverage_months_threshold or DEFAULT_COVERAGE_THRESHOLD
    since = date.today() - relativedelta(months=EXCESS_WINDOW_MONTHS)
    sold_by_material = invoice_repository.quantity_sold_by_material(since)

    rows = []
    for item in stock_repository.list_items(QueryFilter().raw("stock_in_meters > 0")):
        quantity = as_float(item.stock_in_meters)
        velocity = monthly_velocity(sold_by_material.get(item.material, 0.0), EXCESS_WINDOW_MONTHS)
        coverage = coverage_months(quantity, velocity)
        if coverage < threshold:
            continue

        rows.append(ExcessStockRow(
            material=item.material,
            stock_in_meters=quantity,
            monthly_velocity=round(velocity, 2),
            coverage_months=round(coverage, 1) if math.isfinite(coverage) else NO_SALES,
            stock_value=round(quantity * as_float(item.basic_price), 2),
            description_2_for_the_material_group=item.description_2_for_the_material_group,
        ))

    rows.sort(key=lambda row: row.stock_value, reverse=True)
    return rows[:clamp_limit(params.limit, 20, 100)]
