"""
Unit tests for sales and stock analysis

The pure helpers are tested directly; the tools are tested with their
repositories patched so the join and sort logic runs on fixed inputs.
"""
import math
from datetime import date
from unittest.mock import patch

from ainoc.services.sales_analysis import (
    EXCESS_STOCK,
    HIGH_SALES_ZERO_STOCK,
    LIKELY_STOCK_OUT,
    LOW_STOCK,
    OUT_OF_STOCK,
    CityAnalysisParams,
    CustomerGrowthParams,
    InactiveCustomersParams,
    StockSalesParams,
    classify_stock,
    coverage_months,
    get_agent_growth,
    get_city_analysis,
    get_customer_growth,
    get_inactive_customers,
    get_region_growth,
    get_stock_sales_analysis,
    get_stock_turn_ratio,
    growth_percentage,
    join_stock_and_sales,
    trailing_windows,
)
from ainoc.services.tool_params import ToolParams


class TestGrowthPercentage:

    def test_new_revenue_counts_as_full_growth(self):
        assert growth_percentage(500.0, 0.0) == 100.0

    def test_no_revenue_in_either_period(self):
        assert growth_percentage(0.0, 0.0) == 0.0

    def test_decline(self):
        assert growth_percentage(750.0, 1000.0) == -25.0

    def test_rounded_to_two_decimals(self):
        assert growth_percentage(1000.0, 3000.0) == -66.67


class TestTrailingWindows:

    def test_windows_are_adjacent_years(self):
        current, previous = trailing_windows(date(2025, 6, 15))

        assert current == (date(2024, 6, 15), date(2025, 6, 15))
        assert previous == (date(2023, 6, 15), date(2024, 6, 15))

    def test_leap_day_is_clamped(self):
        current, previous = trailing_windows(date(2024, 2, 29))

        assert current[0] == date(2023, 2, 28)
        assert previous == (date(2022, 2, 28), date(2023, 2, 28))


class TestClassification:

    def test_coverage(self):
        assert coverage_months(50.0, 100.0) == 0.5
        assert coverage_months(50.0, 0.0) == math.inf
        assert coverage_months(0.0, 0.0) == 0.0

    def test_zero_stock_with_recent_sales(self):
        classes = classify_stock(0.0, sold_near_term=30.0)

        assert classes == {OUT_OF_STOCK, HIGH_SALES_ZERO_STOCK}

    def test_zero_stock_without_sales_is_only_out_of_stock(self):
        assert classify_stock(0.0, sold_near_term=0.0) == {OUT_OF_STOCK}

    def test_fast_seller_running_low(self):
        # 300 sold in 3 months -> 100/month; 50 on hand covers half a month
        classes = classify_stock(50.0, sold_near_term=300.0, sold_excess_window=600.0)

        assert classes == {LIKELY_STOCK_OUT, LOW_STOCK}

    def test_slow_seller_is_excess(self):
        # 600 sold in 6 months -> 100/month; 1200 on hand covers 12 months
        classes = classify_stock(1200.0, sold_near_term=300.0, sold_excess_window=600.0)

        assert classes == {EXCESS_STOCK}

    def test_custom_coverage_threshold(self):
        classes = classify_stock(1200.0, sold_near_term=300.0, sold_excess_window=600.0, coverage_threshold=18)

        assert EXCESS_STOCK not in classes


class TestJoin:

    def test_unmatched_materials_are_excluded(self):
        stock = {"M1": 10.0, "M2": 0.0}
        sales = {"M2": 5.0, "M9": 100.0}

        assert join_stock_and_sales(stock, sales) == [("M2", 0.0, 5.0)]


STOCK = {"M1": 0.0, "M2": 50.0, "M3": 1200.0, "M4": 10.0}
NEAR_TERM_SALES = {"M1": 90.0, "M2": 300.0, "M3": 300.0, "M9": 40.0}
SIX_MONTH_SALES = {"M1": 150.0, "M2": 600.0, "M3": 600.0, "M9": 80.0}


class TestStockSalesAnalysis:

    @patch("ainoc.services.sales_analysis.invoice_repository")
    @patch("ainoc.services.sales_analysis.stock_repository")
    def test_high_sales_zero_stock(self, mock_stock, mock_invoices):
        mock_stock.quantities_by_material.return_value = STOCK
        mock_invoices.quantity_sold_by_material.side_effect = [NEAR_TERM_SALES, SIX_MONTH_SALES]

        rows = get_stock_sales_analysis(StockSalesParams(type=HIGH_SALES_ZERO_STOCK))

        assert [row.material for row in rows] == ["M1"]
        assert rows[0].sold_quantity == 90.0
        assert rows[0].coverage_months == 0.0

    @patch("ainoc.services.sales_analysis.invoice_repository")
    @patch("ainoc.services.sales_analysis.stock_repository")
    def test_likely_stock_out_reports_coverage(self, mock_stock, mock_invoices):
        mock_stock.quantities_by_material.return_value = STOCK
        mock_invoices.quantity_sold_by_material.side_effect = [NEAR_TERM_SALES, SIX_MONTH_SALES]

        rows = get_stock_sales_analysis(StockSalesParams(type=LIKELY_STOCK_OUT))

        assert [row.material for row in rows] == ["M2"]
        assert rows[0].monthly_velocity == 100.0
        assert rows[0].coverage_months == 0.5

    @patch("ainoc.services.sales_analysis.invoice_repository")
    @patch("ainoc.services.sales_analysis.stock_repository")
    def test_excess_uses_six_month_sales(self, mock_stock, mock_invoices):
        mock_stock.quantities_by_material.return_value = STOCK
        mock_invoices.quantity_sold_by_material.side_effect = [NEAR_TERM_SALES, SIX_MONTH_SALES]

        rows = get_stock_sales_analysis(StockSalesParams(type=EXCESS_STOCK))

        assert [row.material for row in rows] == ["M3"]
        assert rows[0].sold_quantity == 600.0
        assert rows[0].coverage_months == 12.0

    @patch("ainoc.services.sales_analysis.invoice_repository")
    @patch("ainoc.services.sales_analysis.stock_repository")
    def test_material_without_stock_row_never_appears(self, mock_stock, mock_invoices):
        mock_stock.quantities_by_material.return_value = STOCK
        mock_invoices.quantity_sold_by_material.side_effect = [NEAR_TERM_SALES, SIX_MONTH_SALES]

        rows = get_stock_sales_analysis(StockSalesParams(type=OUT_OF_STOCK))

        assert "M9" not in [row.material for row in rows]


class TestStockTurnRatio:

    @patch("ainoc.services.sales_analysis.invoice_repository")
    @patch("ainoc.services.sales_analysis.stock_repository")
    def test_zero_stock_has_no_ratio(self, mock_stock, mock_invoices):
        mock_invoices.total_quantity_sold.return_value = 500.0
        mock_stock.total_quantity.return_value = 0.0

        result = get_stock_turn_ratio(ToolParams())

        assert result.stock_turn_ratio is None
        assert result.total_sales_qty_last_year == 500.0
        assert "zero" in result.message

    @patch("ainoc.services.sales_analysis.invoice_repository")
    @patch("ainoc.services.sales_analysis.stock_repository")
    def test_ratio(self, mock_stock, mock_invoices):
        mock_invoices.total_quantity_sold.return_value = 500.0
        mock_stock.total_quantity.return_value = 200.0

        result = get_stock_turn_ratio(ToolParams())

        assert result.stock_turn_ratio == 2.5
        assert result.message is None


class TestGrowthTools:

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_region_growth_sorted_by_percentage(self, mock_invoices):
        mock_invoices.revenue_by_key.side_effect = [
            {"WEST": (None, 1500.0), "NORTH": (None, 900.0), "EU": (None, 200.0)},
            {"WEST": (None, 1000.0), "NORTH": (None, 1200.0)},
        ]

        rows = get_region_growth(ToolParams())

        assert [(row.region_zone, row.growth_percentage) for row in rows] == [
            ("EU", 100.0), ("WEST", 50.0), ("NORTH", -25.0)
        ]
        previous_call = mock_invoices.revenue_by_key.call_args_list[1]
        assert previous_call.kwargs["end_inclusive"] is False

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_customer_growth_sorted_by_absolute_growth(self, mock_invoices):
        mock_invoices.revenue_by_key.side_effect = [
            {
                "C1": ("ALPHA", 11000.0),
                "C2": ("BETA", 300.0),
                "C3": ("GAMMA", 4000.0),
            },
            {"C1": ("ALPHA", 10000.0), "C3": ("GAMMA", 1000.0), "C9": ("GONE", 5000.0)},
        ]

        rows = get_customer_growth(CustomerGrowthParams())

        # C2 has the highest percentage (new revenue) but the smallest absolute gain
        assert [(row.bill_to_party_code, row.absolute_growth) for row in rows] == [
            ("C3", 3000.0), ("C1", 1000.0), ("C2", 300.0)
        ]
        assert rows[2].growth_percentage == 100.0
        assert rows[0].bill_to_party == "GAMMA"

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_customer_growth_limit(self, mock_invoices):
        current = {f"C{i:03d}": (f"CUSTOMER {i}", float(i)) for i in range(150)}
        mock_invoices.revenue_by_key.side_effect = [current, {}, current, {}, current, {}]

        assert len(get_customer_growth(CustomerGrowthParams())) == 20
        assert len(get_customer_growth(CustomerGrowthParams(limit=5))) == 5
        assert len(get_customer_growth(CustomerGrowthParams(limit=1000))) == 100

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_agent_growth_sorted_by_absolute_growth(self, mock_invoices):
        mock_invoices.revenue_by_key.side_effect = [
            {"A1": ("RAVI", 2000.0), "A2": ("MEERA", 50000.0), "A3": ("ANIL", 100.0)},
            {"A1": ("RAVI", 500.0), "A2": ("MEERA", 45000.0), "A3": ("ANIL", 900.0)},
        ]

        rows = get_agent_growth(ToolParams())

        assert [(row.agent_code, row.absolute_growth) for row in rows] == [
            ("A2", 5000.0), ("A1", 1500.0), ("A3", -800.0)
        ]
        assert rows[1].growth_percentage == 300.0
        group_columns = [call.args[:2] for call in mock_invoices.revenue_by_key.call_args_list]
        assert group_columns == [("agent_code", "agent_name"), ("agent_code", "agent_name")]


class TestCityAnalysis:

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_top_customers(self, mock_invoices):
        mock_invoices.city_top_customers.return_value = ["customers"]

        result = get_city_analysis(CityAnalysisParams(city="  Mumbai ", type="top_customers"))

        mock_invoices.city_top_customers.assert_called_once_with("Mumbai", limit=10)
        assert result.success is True
        assert result.data == {"city": "Mumbai", "type": "top_customers", "results": ["customers"]}

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_top_products(self, mock_invoices):
        mock_invoices.city_top_products.return_value = ["products"]

        result = get_city_analysis(CityAnalysisParams(city="Surat", type="top_products"))

        mock_invoices.city_top_products.assert_called_once_with("Surat", limit=5)
        assert result.data["results"] == ["products"]

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_top_shades(self, mock_invoices):
        mock_invoices.city_top_shades.return_value = ["shades"]

        result = get_city_analysis(CityAnalysisParams(city="Surat", type="top_shades"))

        mock_invoices.city_top_shades.assert_called_once_with("Surat", limit=5)
        assert result.data["results"] == ["shades"]

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_avg_selling_rate_lists_every_city(self, mock_invoices):
        mock_invoices.selling_rate_by_city.return_value = ["rates"]

        result = get_city_analysis(CityAnalysisParams(city="Delhi", type="avg_selling_rate"))

        mock_invoices.selling_rate_by_city.assert_called_once_with()
        mock_invoices.city_top_customers.assert_not_called()
        assert result.data == {"city": "Delhi", "type": "avg_selling_rate", "results": ["rates"]}


class TestInactiveCustomers:

    @patch("ainoc.services.sales_analysis.invoice_repository")
    def test_only_customers_silent_since_cutoff(self, mock_invoices):
        mock_invoices.customers_active_between.side_effect = [
            {"C2": {"bill_to_party": "BETA", "last_invoice_date": date(2025, 9, 1)}},
            {
                "C1": {"bill_to_party": "ALPHA", "last_invoice_date": date(2025, 1, 10)},
                "C2": {"bill_to_party": "BETA", "last_invoice_date": date(2025, 2, 1)},
            },
        ]

        rows = get_inactive_customers(InactiveCustomersParams(months_inactive=3))

        assert [row.bill_to_party_code for row in rows] == ["C1"]
        assert rows[0].last_invoice_date == "2025-01-10"
