"""
Stock Domain Models

StockItem mirrors one row of the `stock` table: the latest known state of a
material, keyed by material code. The rest are report shapes built from it.

Author: TM3
Date: 2025-11-02
"""
from datetime import date
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ainoc.domain.types import Amount


class StockItem(BaseModel):
    """Current stock snapshot for one material"""

    model_config = ConfigDict(extra="ignore")

    material: str = Field(..., description="Material code (primary key)")
    stock_in_meters: Amount = Field(None, description="Quantity on hand, meters")
    replenishment_date: Optional[date] = None
    lead_time_days: Optional[int] = None
    basic_price: Amount = None
    description_2_for_the_material_group: Optional[str] = None

    stock_type: Optional[str] = None
    loom_type: Optional[str] = None
    dyed_type: Optional[str] = None
    width: Amount = None
    quality: Optional[str] = None
    design: Optional[str] = None
    shade_no: Optional[str] = None
    fabric_type: Optional[str] = None
    book_name: Optional[str] = None
    book_reference_no: Optional[str] = None
    ainocular_shade: Optional[str] = None
    ainocular_shade_description: Optional[str] = None
    ainocular_design: Optional[str] = None
    ainocular_design_description: Optional[str] = None
    colour_family: Optional[str] = None
    colour_master: Optional[str] = None
    pattern_scale: Optional[str] = None
    pattern_name: Optional[str] = None
    end_use: Optional[str] = None
    fabric_type_description: Optional[str] = None
    style: Optional[str] = None
    gsm: Amount = None
    vertical_repeat: Amount = None
    horizontal_repeat: Amount = None
    repeat: Optional[str] = None
    composition: Optional[str] = None


class StockValue(BaseModel):
    total_stock_value: float
    total_quantity: float


class StockSummaryKpis(BaseModel):
    total_materials: int
    total_quantity: float
    total_value: float
    avg_basic_price: float
    avg_lead_time_days: float
    items_with_stock: int
    items_without_stock: int


class StockCategoryRow(BaseModel):
    category: Optional[str]
    item_count: int
    total_quantity: float
    total_value: float


class ReplenishmentItem(BaseModel):
    material: str
    stock_in_meters: float
    replenishment_date: date
    lead_time_days: Optional[int] = None
    description_2_for_the_material_group: Optional[str] = None
    days_until_replenishment: int


class ReplenishmentReport(BaseModel):
    days_ahead: int
    from_date: date
    to_date: date
    items: List[ReplenishmentItem]


class LeadTimeRow(BaseModel):
    material: str
    lead_time_days: Optional[int]
    stock_in_meters: float
    basic_price: Optional[float] = None
    replenishment_date: Optional[date] = None
    description_2_for_the_material_group: Optional[str] = None


class StockDistinctValues(BaseModel):
    fabric_types: List[str]
    loom_types: List[str]
    dyed_types: List[str]
    stock_types: List[str]
    colour_families: List[str]
    pattern_names: List[str]
    end_uses: List[str]
    designs: List[str]


class StockValueGroup(BaseModel):
    group: Optional[str]
    item_count: int
    total_quantity: float
    total_value: float
    avg_gsm: Optional[float] = None


class StockAgingRow(BaseModel):
    material: str
    stock_in_meters: float
    replenishment_date: date
    days_until_replenishment: int
    lead_time_days: Optional[int] = None
    stock_value: float


class ExcessStockRow(BaseModel):
    """
    Stock held well beyond recent demand.

    coverage_months is a number, or the string "No sales" when the material
    sold nothing in the trailing window.
    """
    material: str
    stock_in_meters: float
    monthly_velocity: float
    coverage_months: Union[float, str]
    stock_value: float
    description_2_for_the_material_group: Optional[str] = None
