"""
Invoice Repository - Data Access Layer

All SQL over the `invoice` table lives here. Callers pass a QueryFilter
describing the rows they want (customer, material, date range, ownership);
methods add grouping, ordering and paging and map rows onto record types.

Author: TM3
Date: 2025-11-02
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from ainoc.core.database import db_cursor
from ainoc.domain.analysis import (
    CityCustomer,
    CityProduct,
    CitySellingRate,
    CityShade,
    EndUseShare,
    QuarterlyRevenue,
    TopProduct,
)
from ainoc.domain.invoice import (
    AgentOption,
    AgentPerformance,
    AmountSummary,
    CustomerOption,
    CustomerRevenue,
    DesignOption,
    FabricPerformance,
    InvoiceKpis,
    InvoiceLine,
    InvoiceShipping,
    MaterialPurchase,
    MonthlyPurchase,
    PatternPerformance,
    RegionRevenue,
)
from ainoc.repositories.filters import QueryFilter, as_float, as_int

logger = logging.getLogger(__name__)

_AMOUNT_TOTALS = """
    COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
    COALESCE(SUM(gross_amount), 0) AS total_gross_amount,
    COALESCE(SUM(discount_amount), 0) AS total_discount,
    COALESCE(SUM(taxable_amt), 0) AS total_taxable_amount,
    COALESCE(SUM(total_gst_amt), 0) AS total_gst,
    COALESCE(SUM(tcs_amt), 0) AS total_tcs,
    COUNT(*) AS invoice_count
"""


class InvoiceRepository:
    """
    Read-only access to invoice lines

    Every method opens its own short-lived cursor; nothing is cached, so each
    call reflects the current snapshot of the table.
    """

    def _fetch_all(self, query: str, params=None) -> List[dict]:
        with db_cursor() as cursor:
            cursor.execute(query, params or [])
            return cursor.fetchall()

    def _fetch_one(self, query: str, params=None) -> Optional[dict]:
        with db_cursor() as cursor:
            cursor.execute(query, params or [])
            return cursor.fetchone()

    # ------------------------------------------------------------------
    # Single lines and listings
    # ------------------------------------------------------------------

    def find_by_id(self, invoice_id: int) -> Optional[InvoiceLine]:
        row = self._fetch_one("SELECT * FROM invoice WHERE id = %s", [invoice_id])
        return InvoiceLine.model_validate(row) if row else None

    def find_by_document_and_item(self, billing_document: str, item: int) -> Optional[InvoiceLine]:
        row = self._fetch_one(
            "SELECT * FROM invoice WHERE billing_document = %s AND item = %s LIMIT 1",
            [billing_document, item],
        )
        return InvoiceLine.model_validate(row) if row else None

    def find_shipping(self, billing_document: str, item: int) -> Optional[InvoiceShipping]:
        row = self._fetch_one(
            """
            SELECT billing_document, item, invoice_date, bill_to_party,
                   bill_to_party_city, ship_to_party_city, region_zone, no_of_pack,
                   billed_quantity, base_unit_of_measure, air_freight,
                   agent_name, broker_name
            FROM invoice
            WHERE billing_document = %s AND item = %s
            LIMIT 1
            """,
            [billing_document, item],
        )
        return InvoiceShipping.model_validate(row) if row else None

    def list_lines(
        self,
        qf: QueryFilter,
        limit: Optional[int],
        offset: int = 0,
        order_by: str = "invoice_date DESC, billing_document DESC, item ASC",
    ) -> List[InvoiceLine]:
        """Invoice lines matching the filter, newest first by default. limit=None returns every line."""
        where, params = qf.build()
        query = f"SELECT * FROM invoice WHERE {where} ORDER BY {order_by}"
        if limit is not None:
            query += " LIMIT %s OFFSET %s"
            params += [limit, offset]
        rows = self._fetch_all(query, params)
        return [InvoiceLine.model_validate(row) for row in rows]

    def first_line_of_document(self, qf: QueryFilter) -> Optional[InvoiceLine]:
        where, params = qf.build()
        row = self._fetch_one(
            f"SELECT * FROM invoice WHERE {where} ORDER BY item ASC LIMIT 1",
            params,
        )
        return InvoiceLine.model_validate(row) if row else None

    # ------------------------------------------------------------------
    # Rollups
    # ------------------------------------------------------------------

    def amount_summary(self, qf: QueryFilter) -> AmountSummary:
        where, params = qf.build()
        row = self._fetch_one(f"SELECT {_AMOUNT_TOTALS} FROM invoice WHERE {where}", params) or {}
        return self._map_row_to_summary(row)

    def kpis(self, qf: QueryFilter) -> InvoiceKpis:
        summary = self.amount_summary(qf)
        average = summary.total_net_amount / summary.invoice_count if summary.invoice_count else 0.0
        return InvoiceKpis(**summary.model_dump(), avg_invoice_net_amount=round(average, 2))

    def top_customers(self, qf: QueryFilter, limit: int) -> List[CustomerRevenue]:
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT bill_to_party_code, bill_to_party,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COALESCE(SUM(gross_amount), 0) AS total_gross_amount,
                   COUNT(*) AS invoice_count
            FROM invoice
            WHERE {where}
            GROUP BY bill_to_party_code, bill_to_party
            ORDER BY total_net_amount DESC, bill_to_party_code
            LIMIT %s
            """,
            params + [limit],
        )
        return [
            CustomerRevenue(
                bill_to_party_code=row["bill_to_party_code"],
                bill_to_party=row["bill_to_party"],
                total_net_amount=as_float(row["total_net_amount"]),
                total_gross_amount=as_float(row["total_gross_amount"]),
                invoice_count=as_int(row["invoice_count"]),
            )
            for row in rows
        ]

    def revenue_by_region(self, qf: QueryFilter) -> List[RegionRevenue]:
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT region_zone,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COALESCE(SUM(gross_amount), 0) AS total_gross_amount,
                   COUNT(*) AS invoice_count
            FROM invoice
            WHERE {where}
            GROUP BY region_zone
            ORDER BY total_net_amount DESC
            """,
            params,
        )
        return [
            RegionRevenue(
                region_zone=row["region_zone"],
                total_net_amount=as_float(row["total_net_amount"]),
                total_gross_amount=as_float(row["total_gross_amount"]),
                invoice_count=as_int(row["invoice_count"]),
            )
            for row in rows
        ]

    def agent_performance(self, qf: QueryFilter) -> List[AgentPerformance]:
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT agent_code, agent_name, region_zone,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COUNT(*) AS invoice_count
            FROM invoice
            WHERE {where}
            GROUP BY agent_code, agent_name, region_zone
            ORDER BY total_net_amount DESC
            """,
            params,
        )
        return [
            AgentPerformance(
                agent_code=row["agent_code"],
                agent_name=row["agent_name"],
                region_zone=row["region_zone"],
                total_net_amount=as_float(row["total_net_amount"]),
                invoice_count=as_int(row["invoice_count"]),
            )
            for row in rows
        ]

    def fabric_performance(self, qf: QueryFilter) -> List[FabricPerformance]:
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT end_use, fabric_type, fabric_type_des, style,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COALESCE(SUM(billed_quantity), 0) AS total_quantity,
                   COUNT(*) AS invoice_count
            FROM invoice
            WHERE {where}
            GROUP BY end_use, fabric_type, fabric_type_des, style
            ORDER BY total_net_amount DESC
            """,
            params,
        )
        return [
            FabricPerformance(
                end_use=row["end_use"],
                fabric_type=row["fabric_type"],
                fabric_type_des=row["fabric_type_des"],
                style=row["style"],
                total_net_amount=as_float(row["total_net_amount"]),
                total_quantity=as_float(row["total_quantity"]),
                invoice_count=as_int(row["invoice_count"]),
            )
            for row in rows
        ]

    def pattern_performance(self, qf: QueryFilter) -> List[PatternPerformance]:
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT ainocular_design, ainocular_shade,
                   ainocular_design_description, ainocular_shade_description,
                   pattern_name, colour_family,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COALESCE(SUM(billed_quantity), 0) AS total_quantity,
                   COUNT(*) AS invoice_count
            FROM invoice
            WHERE {where}
            GROUP BY ainocular_design, ainocular_shade, ainocular_design_description,
                     ainocular_shade_description, pattern_name, colour_family
            ORDER BY total_net_amount DESC
            """,
            params,
        )
        return [
            PatternPerformance(
                ainocular_design=row["ainocular_design"],
                ainocular_shade=row["ainocular_shade"],
                ainocular_design_description=row["ainocular_design_description"],
                ainocular_shade_description=row["ainocular_shade_description"],
                pattern_name=row["pattern_name"],
                colour_family=row["colour_family"],
                total_net_amount=as_float(row["total_net_amount"]),
                total_quantity=as_float(row["total_quantity"]),
                invoice_count=as_int(row["invoice_count"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Distinct values (filter discovery)
    # ------------------------------------------------------------------

    def _distinct_column(self, column: str) -> List[str]:
        rows = self._fetch_all(
            f"SELECT DISTINCT {column} AS value FROM invoice "
            f"WHERE {column} IS NOT NULL AND {column} <> '' ORDER BY {column}"
        )
        return [row["value"] for row in rows]

    def distinct_customers(self) -> List[CustomerOption]:
        rows = self._fetch_all(
            """
            SELECT DISTINCT bill_to_party_code, bill_to_party
            FROM invoice
            WHERE bill_to_party_code IS NOT NULL
            ORDER BY bill_to_party
            """
        )
        return [CustomerOption(**row) for row in rows]

    def distinct_cities(self) -> List[str]:
        return self._distinct_column("bill_to_party_city")

    def distinct_regions(self) -> List[str]:
        return self._distinct_column("region_zone")

    def distinct_end_uses(self) -> List[str]:
        return self._distinct_column("end_use")

    def distinct_agents(self) -> List[AgentOption]:
        rows = self._fetch_all(
            """
            SELECT DISTINCT agent_code, agent_name
            FROM invoice
            WHERE agent_code IS NOT NULL
            ORDER BY agent_name
            """
        )
        return [AgentOption(**row) for row in rows]

    def distinct_designs(self) -> List[DesignOption]:
        rows = self._fetch_all(
            """
            SELECT DISTINCT ainocular_design, ainocular_design_description
            FROM invoice
            WHERE ainocular_design IS NOT NULL
            ORDER BY ainocular_design
            """
        )
        return [DesignOption(**row) for row in rows]

    # ------------------------------------------------------------------
    # Customer purchase breakdowns
    # ------------------------------------------------------------------

    def purchases_by_material(self, qf: QueryFilter, limit: int) -> List[MaterialPurchase]:
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT material, design, description_2_for_the_material_group, fabric_type,
                   COALESCE(SUM(billed_quantity), 0) AS total_quantity,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COUNT(*) AS purchase_count
            FROM invoice
            WHERE {where}
            GROUP BY material, design, description_2_for_the_material_group, fabric_type
            ORDER BY total_net_amount DESC
            LIMIT %s
            """,
            params + [limit],
        )
        return [
            MaterialPurchase(
                material=row["material"],
                design=row["design"],
                description_2_for_the_material_group=row["description_2_for_the_material_group"],
                fabric_type=row["fabric_type"],
                total_quantity=as_float(row["total_quantity"]),
                total_net_amount=as_float(row["total_net_amount"]),
                purchase_count=as_int(row["purchase_count"]),
            )
            for row in rows
        ]

    def monthly_totals(self, qf: QueryFilter) -> List[MonthlyPurchase]:
        """Totals per calendar month (YYYY-MM), oldest month first."""
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT TO_CHAR(invoice_date, 'YYYY-MM') AS month,
                   COALESCE(SUM(net_amount_inr), 0) AS total_net_amount,
                   COALESCE(SUM(billed_quantity), 0) AS total_quantity,
                   COUNT(*) AS invoice_count
            FROM invoice
            WHERE {where}
            GROUP BY TO_CHAR(invoice_date, 'YYYY-MM')
            ORDER BY month ASC
            """,
            params,
        )
        return [
            MonthlyPurchase(
                month=row["month"],
                total_net_amount=as_float(row["total_net_amount"]),
                total_quantity=as_float(row["total_quantity"]),
                invoice_count=as_int(row["invoice_count"]),
            )
            for row in rows
        ]

    def lifetime_stats(self, qf: QueryFilter) -> dict:
        where, params = qf.build()
        row = self._fetch_one(
            f"""
            SELECT COUNT(*) AS total_invoices,
                   COALESCE(SUM(net_amount_inr), 0) AS total_spent,
                   MIN(invoice_date) AS first_invoice_date,
                   MAX(invoice_date) AS last_invoice_date
            FROM invoice
            WHERE {where}
            """,
            params,
        ) or {}
        return {
            "total_invoices": as_int(row.get("total_invoices")),
            "total_spent": as_float(row.get("total_spent")),
            "first_invoice_date": row.get("first_invoice_date"),
            "last_invoice_date": row.get("last_invoice_date"),
        }

    # ------------------------------------------------------------------
    # Sales analysis reads
    # ------------------------------------------------------------------

    def revenue_by_key(
        self,
        key_column: str,
        name_column: Optional[str],
        start: date,
        end: date,
        end_inclusive: bool = True,
    ) -> Dict[str, Tuple[Optional[str], float]]:
        """
        Net revenue per dimension key within [start, end] (or [start, end)).

        Returns {key: (display_name, revenue)}; rows with a NULL key are dropped.
        """
        upper = "<=" if end_inclusive else "<"
        name_select = f"MAX({name_column})" if name_column else "NULL"
        rows = self._fetch_all(
            f"""
            SELECT {key_column} AS key, {name_select} AS name,
                   COALESCE(SUM(net_amount_inr), 0) AS revenue
            FROM invoice
            WHERE invoice_date >= %s AND invoice_date {upper} %s
              AND {key_column} IS NOT NULL
            GROUP BY {key_column}
            """,
            [start.isoformat(), end.isoformat()],
        )
        return {row["key"]: (row["name"], as_float(row["revenue"])) for row in rows}

    def quarterly_revenue(self, since: date, regions: Optional[List[str]] = None) -> List[QuarterlyRevenue]:
        qf = QueryFilter().gte("invoice_date", since.isoformat())
        if regions:
            qf.raw("region_zone = ANY(%s)", list(regions))
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT EXTRACT(YEAR FROM invoice_date)::int AS year,
                   EXTRACT(QUARTER FROM invoice_date)::int AS quarter,
                   region_zone,
                   COALESCE(SUM(net_amount_inr), 0) AS total_revenue
            FROM invoice
            WHERE {where}
            GROUP BY 1, 2, region_zone
            ORDER BY year DESC, quarter DESC, total_revenue DESC
            """,
            params,
        )
        return [
            QuarterlyRevenue(
                year=as_int(row["year"]),
                quarter=as_int(row["quarter"]),
                region_zone=row["region_zone"],
                total_revenue=as_float(row["total_revenue"]),
            )
            for row in rows
        ]

    def city_top_customers(self, city: str, limit: int = 10) -> List[CityCustomer]:
        rows = self._fetch_all(
            """
            SELECT bill_to_party, COALESCE(SUM(net_amount_inr), 0) AS total_revenue
            FROM invoice
            WHERE LOWER(bill_to_party_city) = LOWER(%s)
            GROUP BY bill_to_party
            ORDER BY total_revenue DESC
            LIMIT %s
            """,
            [city, limit],
        )
        return [
            CityCustomer(bill_to_party=row["bill_to_party"], total_revenue=as_float(row["total_revenue"]))
            for row in rows
        ]

    def city_top_products(self, city: str, limit: int = 5) -> List[CityProduct]:
        rows = self._fetch_all(
            """
            SELECT material, MAX(description_2_for_the_material_group) AS description,
                   COALESCE(SUM(billed_quantity), 0) AS total_quantity,
                   COALESCE(SUM(net_amount_inr), 0) AS total_revenue
            FROM invoice
            WHERE LOWER(bill_to_party_city) = LOWER(%s)
            GROUP BY material
            ORDER BY total_quantity DESC
            LIMIT %s
            """,
            [city, limit],
        )
        return [
            CityProduct(
                material=row["material"],
                description_2_for_the_material_group=row["description"],
                total_quantity=as_float(row["total_quantity"]),
                total_revenue=as_float(row["total_revenue"]),
            )
            for row in rows
        ]

    def city_top_shades(self, city: str, limit: int = 5) -> List[CityShade]:
        rows = self._fetch_all(
            """
            SELECT shade_name, COALESCE(SUM(billed_quantity), 0) AS total_quantity
            FROM invoice
            WHERE LOWER(bill_to_party_city) = LOWER(%s)
            GROUP BY shade_name
            ORDER BY total_quantity DESC
            LIMIT %s
            """,
            [city, limit],
        )
        return [
            CityShade(shade_name=row["shade_name"], total_quantity=as_float(row["total_quantity"]))
            for row in rows
        ]

    def selling_rate_by_city(self) -> List[CitySellingRate]:
        rows = self._fetch_all(
            """
            SELECT bill_to_party_city AS city, COALESCE(AVG(basic_price), 0) AS avg_selling_rate
            FROM invoice
            GROUP BY bill_to_party_city
            ORDER BY avg_selling_rate DESC
            """
        )
        return [
            CitySellingRate(city=row["city"], avg_selling_rate=round(as_float(row["avg_selling_rate"]), 2))
            for row in rows
        ]

    def end_use_revenue(self) -> List[EndUseShare]:
        rows = self._fetch_all(
            """
            SELECT end_use, COALESCE(SUM(net_amount_inr), 0) AS revenue
            FROM invoice
            GROUP BY end_use
            ORDER BY revenue DESC
            """
        )
        total = sum(as_float(row["revenue"]) for row in rows) or 1.0
        return [
            EndUseShare(
                end_use=row["end_use"],
                revenue=as_float(row["revenue"]),
                share_percentage=round(as_float(row["revenue"]) / total * 100, 2),
            )
            for row in rows
        ]

    def customers_active_between(self, start: date, end: Optional[date] = None) -> Dict[str, dict]:
        """
        Customers with at least one invoice on or after `start` (and on or
        before `end` when given), keyed by bill-to party code.
        """
        qf = QueryFilter().gte("invoice_date", start.isoformat())
        if end is not None:
            qf.lte("invoice_date", end.isoformat())
        qf.raw("bill_to_party_code IS NOT NULL")
        where, params = qf.build()
        rows = self._fetch_all(
            f"""
            SELECT bill_to_party_code, MAX(bill_to_party) AS bill_to_party,
                   MAX(invoice_date) AS last_invoice_date
            FROM invoice
            WHERE {where}
            GROUP BY bill_to_party_code
            """,
            params,
        )
        return {row["bill_to_party_code"]: row for row in rows}

    def quantity_sold_by_material(self, since: date) -> Dict[str, float]:
        rows = self._fetch_all(
            """
            SELECT material, COALESCE(SUM(billed_quantity), 0) AS total_sold
            FROM invoice
            WHERE invoice_date >= %s AND material IS NOT NULL
            GROUP BY material
            """,
            [since.isoformat()],
        )
        return {row["material"]: as_float(row["total_sold"]) for row in rows}

    def total_quantity_sold(self, since: date) -> float:
        row = self._fetch_one(
            "SELECT COALESCE(SUM(billed_quantity), 0) AS total_quantity FROM invoice WHERE invoice_date >= %s",
            [since.isoformat()],
        ) or {}
        return as_float(row.get("total_quantity"))

    def top_products(self, limit: int) -> List[TopProduct]:
        rows = self._fetch_all(
            """
            SELECT material, MAX(description_2_for_the_material_group) AS description,
                   COALESCE(SUM(net_amount_inr), 0) AS total_revenue,
                   COALESCE(SUM(billed_quantity), 0) AS total_quantity
            FROM invoice
            GROUP BY material
            ORDER BY total_revenue DESC
            LIMIT %s
            """,
            [limit],
        )
        return [
            TopProduct(
                material=row["material"],
                description_2_for_the_material_group=row["description"],
                total_revenue=as_float(row["total_revenue"]),
                total_quantity=as_float(row["total_quantity"]),
            )
            for row in rows
        ]

    def _map_row_to_summary(self, row: dict) -> AmountSummary:
        return AmountSummary(
            total_net_amount=as_float(row.get("total_net_amount")),
            total_gross_amount=as_float(row.get("total_gross_amount")),
            total_discount=as_float(row.get("total_discount")),
            total_taxable_amount=as_float(row.get("total_taxable_amount")),
            total_gst=as_float(row.get("total_gst")),
            total_tcs=as_float(row.get("total_tcs")),
            invoice_count=as_int(row.get("invoice_count")),
        )
