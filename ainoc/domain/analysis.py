"""
Sales analysis record types

Derived, per-request shapes: period comparisons, city breakdowns, and the
stock-vs-sales classifications. None of these are persisted.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class QuarterlyRevenue(BaseModel):
    year: int
    quarter: int
    region_zone: Optional[str]
    total_revenue: float


class RegionGrowth(BaseModel):
    region_zone: str
    current_revenue: float
    previous_revenue: float
    growth_percentage: float


class CustomerGrowth(BaseModel):
    bill_to_party_code: str
    bill_to_party: Optional[str]
    current_revenue: float
    previous_revenue: float
    absolute_growth: float
    growth_percentage: float


class AgentGrowth(BaseModel):
    agent_code: str
    agent_name: Optional[str]
    current_revenue: float
    previous_revenue: float
    absolute_growth: float
    growth_percentage: float


class CityCustomer(BaseModel):
    bill_to_party: Optional[str]
    total_revenue: float


class CityProduct(BaseModel):
    material: Optional[str]
    description_2_for_the_material_group: Optional[str]
    total_quantity: float
    total_revenue: float


class CityShade(BaseModel):
    shade_name: Optional[str]
    total_quantity: float


class CitySellingRate(BaseModel):
    city: Optional[str]
    avg_selling_rate: float


class EndUseShare(BaseModel):
    end_use: Optional[str]
    revenue: float
    share_percentage: float


class InactiveCustomer(BaseModel):
    bill_to_party_code: str
    bill_to_party: Optional[str]
    last_invoice_date: Optional[str] = None


class StockSalesRow(BaseModel):
    material: str
    stock_in_meters: float
    sold_quantity: float = Field(..., description="Quantity sold in the trailing window")
    monthly_velocity: float
    coverage_months: Optional[float] = Field(None, description="Months of stock at current velocity")
    classifications: List[str]


class StockTurnRatio(BaseModel):
    stock_turn_ratio: Optional[float]
    total_sales_qty_last_year: float
    current_total_stock_qty: float
    message: Optional[str] = None


class TopProduct(BaseModel):
    material: Optional[str]
    description_2_for_the_material_group: Optional[str]
    total_revenue: float
    total_quantity: float
