"""
Unit tests for InvoiceRepository

These tests validate query composition and row mapping without requiring a
database connection.
"""
from datetime import date
from decimal import Decimal

from ainoc.domain.invoice import InvoiceLine
from ainoc.repositories.filters import QueryFilter
from ainoc.repositories.invoice_repository import InvoiceRepository


class TestInvoiceRepository:

    def test_find_by_id_returns_invoice_line(self, mock_db, sample_invoice_row):
        mock_db.cursor.fetchone.return_value = dict(sample_invoice_row, net_amount_inr=Decimal("45000.00"))

        line = InvoiceRepository().find_by_id(1)

        assert isinstance(line, InvoiceLine)
        assert line.billing_document == "91234567"
        assert line.invoice_date == date(2025, 6, 14)
        assert line.net_amount_inr == Decimal("45000.00")
        mock_db.cursor.execute.assert_called_once_with("SELECT * FROM invoice WHERE id = %s", [1])
        mock_db.cursor.close.assert_called_once()
        mock_db.conn.close.assert_called_once()

    def test_find_by_id_returns_none_when_not_found(self, mock_db):
        assert InvoiceRepository().find_by_id(999) is None

    def test_session_is_read_only(self, mock_db):
        InvoiceRepository().find_by_id(1)

        mock_db.conn.set_session.assert_called_once_with(readonly=True, autocommit=True)

    def test_list_lines_appends_paging(self, mock_db):
        qf = QueryFilter().equals("material", "M100")

        InvoiceRepository().list_lines(qf, limit=10, offset=20)

        sql, params = mock_db.cursor.execute.call_args.args
        assert "WHERE material = %s ORDER BY invoice_date DESC" in sql
        assert sql.rstrip().endswith("LIMIT %s OFFSET %s")
        assert params == ["M100", 10, 20]

    def test_amount_summary_maps_nulls_to_zero(self, mock_db):
        mock_db.cursor.fetchone.return_value = {
            "total_net_amount": Decimal("1500.50"),
            "total_gross_amount": None,
            "total_discount": Decimal("0"),
            "total_taxable_amount": None,
            "total_gst": None,
            "total_tcs": None,
            "invoice_count": 2,
        }

        summary = InvoiceRepository().amount_summary(QueryFilter())

        assert summary.total_net_amount == 1500.5
        assert summary.total_gross_amount == 0.0
        assert summary.invoice_count == 2

    def test_top_customers(self, mock_db):
        mock_db.cursor.fetchall.return_value = [
            {"bill_to_party_code": "C1", "bill_to_party": "ACME", "total_net_amount": Decimal("900"),
             "total_gross_amount": Decimal("1000"), "invoice_count": 3},
        ]

        rows = InvoiceRepository().top_customers(QueryFilter(), limit=5)

        assert rows[0].bill_to_party_code == "C1"
        assert rows[0].total_gross_amount == 1000.0
        assert mock_db.cursor.execute.call_args.args[1] == [5]

    def test_revenue_by_key_previous_window_excludes_end(self, mock_db):
        mock_db.cursor.fetchall.return_value = [
            {"key": "WEST", "name": None, "revenue": Decimal("1200")},
        ]

        result = InvoiceRepository().revenue_by_key(
            "region_zone", None, date(2023, 6, 1), date(2024, 6, 1), end_inclusive=False
        )

        sql, params = mock_db.cursor.execute.call_args.args
        assert "invoice_date < %s" in sql
        assert params == ["2023-06-01", "2024-06-01"]
        assert result == {"WEST": (None, 1200.0)}

    def test_quarterly_revenue_region_filter(self, mock_db):
        InvoiceRepository().quarterly_revenue(date(2024, 1, 1), ["US", "EU"])

        sql, params = mock_db.cursor.execute.call_args.args
        assert "region_zone = ANY(%s)" in sql
        assert params == ["2024-01-01", ["US", "EU"]]

    def test_end_use_share_of_empty_table(self, mock_db):
        assert InvoiceRepository().end_use_revenue() == []

    def test_end_use_share_percentages(self, mock_db):
        mock_db.cursor.fetchall.return_value = [
            {"end_use": "UPHOLSTERY", "revenue": Decimal("750")},
            {"end_use": "CURTAIN", "revenue": Decimal("250")},
        ]

        rows = InvoiceRepository().end_use_revenue()

        assert [row.share_percentage for row in rows] == [75.0, 25.0]

    def test_quantity_sold_by_material(self, mock_db):
        mock_db.cursor.fetchall.return_value = [
            {"material": "M100", "total_sold": Decimal("12.5")},
        ]

        sold = InvoiceRepository().quantity_sold_by_material(date(2025, 1, 1))

        assert sold == {"M100": 12.5}
