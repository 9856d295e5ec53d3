"""
Stock Repository - Data Access Layer

Read-only SQL over the `stock` table (one row per material, latest known
state). Stock value is always quantity on hand times basic price.

Author: TM3
Date: 2025-11-02
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from ainoc.core.database import db_cursor
from ainoc.domain.stock import (
    LeadTimeRow,
    StockCategoryRow,
    StockDistinctValues,
    StockItem,
    StockSummaryKpis,
    StockValue,
    StockValueGroup,
)
from ainoc.repositories.filters import QueryFilter, as_float, as_int

logger = logging.getLogger(__name__)

# Allowed GROUP BY targets. Keys are tool-facing names, values are columns.
CATEGORY_COLUMNS = {
    "fabric_type": "fabric_type",
    "loom_type": "loom_type",
    "dyed_type": "dyed_type",
    "stock_type": "stock_type",
    "colour_family": "colour_family",
    "end_use": "end_use",
    "pattern_name": "pattern_name",
}

DESIGN_GROUP_COLUMNS = {
    "design": "ainocular_design",
    "shade": "ainocular_shade",
    "colour_master": "colour_master",
}

_STOCK_VALUE = "COALESCE(SUM(stock_in_meters * basic_price), 0)"


class StockRepository:
    """Read-only access to the stock snapshot"""

    def _fetch_all(self, query: str, params=None) -> List[dict]:
        with db_cursor() as cursor:
            cursor.execute(query, params or [])
            return cursor.fetchall()

    def _fetch_one(self, query: str, params=None) -> Optional[dict]:
        with db_cursor() as cursor:
            cursor.execute(query, params or [])
            return cursor.fetchone()

    def list_items(self, qf: QueryFilter, limit: Optional[int] = None,
                   order_by: str = "stock_in_meters DESC NULLS LAST, material") -> List[StockItem]:
        where, params = qf.build()
        query = f"SELECT * FROM stock WHERE {where} ORDER BY {order_by}"
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)
        return [StockItem.model_validate(row) for row in self._fetch_all(query, params)]

    def quantities_by_material(self) -> Dict[str, float]:
        """Quantity on hand per material; NULL quantities count as zero."""
        rows = self._fetch_all("SELECT material, stock_in_meters FROM stock")
        return {row["material"]: as_float(row["stock_in_meters"]) for row in rows}

    def total_value(self) -> StockValue:
        row = self._fetch_one(
            f"SELECT {_STOCK_VALUE} AS total_stock_value, "
            "COALESCE(SUM(stock_in_meters), 0) AS total_quantity FROM stock"
        ) or {}
        return StockValue(
            total_stock_value=as_float(row.get("total_stock_value")),
            total_quantity=as_float(row.get("total_quantity")),
        )

    def total_quantity(self) -> float:
        return self.total_value().total_quantity

    def summary_kpis(self) -> StockSummaryKpis:
        row = self._fetch_one(
            f"""
            SELECT COUNT(*) AS total_materials,
                   COALESCE(SUM(stock_in_meters), 0) AS total_quantity,
                   {_STOCK_VALUE} AS total_value,
                   COALESCE(AVG(basic_price), 0) AS avg_basic_price,
                   COALESCE(AVG(lead_time_days), 0) AS avg_lead_time_days,
                   COUNT(*) FILTER (WHERE stock_in_meters > 0) AS items_with_stock,
                   COUNT(*) FILTER (WHERE stock_in_meters <= 0 OR stock_in_meters IS NULL) AS items_without_stock
            FROM stock
            """
        ) or {}
        return StockSummaryKpis(
            total_materials=as_int(row.get("total_materials")),
            total_quantity=as_float(row.get("total_quantity")),
            total_value=as_float(row.get("total_value")),
            avg_basic_price=round(as_float(row.get("avg_basic_price")), 2),
            avg_lead_time_days=round(as_float(row.get("avg_lead_time_days")), 1),
            items_with_stock=as_int(row.get("items_with_stock")),
            items_without_stock=as_int(row.get("items_without_stock")),
        )

    def by_category(self, group_by: str) -> List[StockCategoryRow]:
        column = CATEGORY_COLUMNS[group_by]
        rows = self._fetch_all(
            f"""
            SELECT {column} AS category,
                   COUNT(*) AS item_count,
                   COALESCE(SUM(stock_in_meters), 0) AS total_quantity,
                   {_STOCK_VALUE} AS total_value
            FROM stock
            GROUP BY {column}
            ORDER BY total_value DESC
            """
        )
        return [
            StockCategoryRow(
                category=row["category"],
                item_count=as_int(row["item_count"]),
                total_quantity=as_float(row["total_quantity"]),
                total_value=as_float(row["total_value"]),
            )
            for row in rows
        ]

    def value_by_group(self, group_by: str, limit: int) -> List[StockValueGroup]:
        column = DESIGN_GROUP_COLUMNS[group_by]
        rows = self._fetch_all(
            f"""
            SELECT {column} AS grp,
                   COUNT(*) AS item_count,
                   COALESCE(SUM(stock_in_meters), 0) AS total_quantity,
                   {_STOCK_VALUE} AS total_value,
                   AVG(gsm) AS avg_gsm
            FROM stock
            GROUP BY {column}
            ORDER BY total_value DESC
            LIMIT %s
            """,
            [limit],
        )
        return [
            StockValueGroup(
                group=row["grp"],
                item_count=as_int(row["item_count"]),
                total_quantity=as_float(row["total_quantity"]),
                total_value=as_float(row["total_value"]),
                avg_gsm=round(as_float(row["avg_gsm"]), 2) if row["avg_gsm"] is not None else None,
            )
            for row in rows
        ]

    def replenishment_between(self, start: date, end: date) -> List[StockItem]:
        qf = QueryFilter().gte("replenishment_date", start.isoformat()).lte("replenishment_date", end.isoformat())
        return self.list_items(qf, order_by="replenishment_date ASC, material")

    def lead_times(self, min_lead_time_days: Optional[int], descending: bool, limit: int) -> List[LeadTimeRow]:
        qf = QueryFilter().gte("lead_time_days", min_lead_time_days or None)
        where, params = qf.build()
        direction = "DESC" if descending else "ASC"
        rows = self._fetch_all(
            f"""
            SELECT material, description_2_for_the_material_group, lead_time_days,
                   stock_in_meters, replenishment_date, basic_price
            FROM stock
            WHERE {where}
            ORDER BY lead_time_days {direction} NULLS LAST, material
            LIMIT %s
            """,
            params + [limit],
        )
        return [
            LeadTimeRow(
                material=row["material"],
                lead_time_days=row["lead_time_days"],
                stock_in_meters=as_float(row["stock_in_meters"]),
                basic_price=as_float(row["basic_price"]) if row["basic_price"] is not None else None,
                replenishment_date=row["replenishment_date"],
                description_2_for_the_material_group=row["description_2_for_the_material_group"],
            )
            for row in rows
        ]

    def with_replenishment_date(self, limit: int) -> List[StockItem]:
        """Items that have a replenishment date, soonest first."""
        qf = QueryFilter().raw("replenishment_date IS NOT NULL")
        return self.list_items(qf, limit=limit, order_by="replenishment_date ASC, material")

    def distinct_values(self) -> StockDistinctValues:
        def distinct(column: str) -> List[str]:
            rows = self._fetch_all(
                f"SELECT DISTINCT {column} AS value FROM stock "
                f"WHERE {column} IS NOT NULL AND {column} <> '' ORDER BY {column}"
            )
            return [row["value"] for row in rows]

        return StockDistinctValues(
            fabric_types=distinct("fabric_type"),
            loom_types=distinct("loom_type"),
            dyed_types=distinct("dyed_type"),
            stock_types=distinct("stock_type"),
            colour_families=distinct("colour_family"),
            pattern_names=distinct("pattern_name"),
            end_uses=distinct("end_use"),
            designs=distinct("ainocular_design"),
        )
