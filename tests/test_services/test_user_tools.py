"""
Unit tests for the user-scoped ("my invoices") tools

Covers the fail-closed gate for anonymous callers and the ownership
predicate that scopes every query to the caller's bill-to party code.
"""
from ainoc.core.auth import Authenticated, Identity, SESSION_INVALID_MESSAGE, Unauthenticated
from ainoc.services.tool_params import DatePageParams, DateRangeParams, ToolParams
from ainoc.services.user_tools import (
    MonthlyTrendParams,
    MyDocumentParams,
    MyPdfParams,
    RecentInvoicesParams,
    get_my_invoice_details,
    get_my_invoice_history,
    get_my_invoice_pdf,
    get_my_invoice_summary,
    get_my_monthly_purchase_trend,
    get_my_profile,
    get_my_recent_invoices,
    ownership_filter,
)


class TestFailClosed:
    """Anonymous callers never reach the database"""

    def test_anonymous_recent_invoices_fails_without_query(self, mock_db, anonymous):
        result = get_my_recent_invoices(RecentInvoicesParams(), anonymous)

        assert result.success is False
        assert result.data is None
        assert "logged in" in result.error
        mock_db.connect.assert_not_called()

    def test_every_scoped_tool_fails_for_anonymous(self, mock_db, anonymous):
        calls = [
            (get_my_profile, ToolParams()),
            (get_my_invoice_history, DatePageParams()),
            (get_my_invoice_summary, DateRangeParams()),
            (get_my_invoice_details, MyDocumentParams(billing_document="91234567")),
            (get_my_invoice_pdf, MyPdfParams(billing_document="91234567")),
            (get_my_monthly_purchase_trend, MonthlyTrendParams()),
        ]

        results = [tool(params, anonymous) for tool, params in calls]

        assert all(result.success is False for result in results)
        mock_db.connect.assert_not_called()

    def test_invalid_session_reason_is_passed_through(self, mock_db):
        result = get_my_profile(ToolParams(), Unauthenticated(SESSION_INVALID_MESSAGE))

        assert result.error == SESSION_INVALID_MESSAGE


class TestOwnershipScoping:

    def test_ownership_filter_is_parameterized_by_identity(self, identity):
        where, params = ownership_filter(identity).build()

        assert where == "bill_to_party_code = %s"
        assert params == ["ACME TEXTILES"]

    def test_queries_for_two_users_differ_only_in_owner(self, mock_db):
        alice = Authenticated(Identity(id="1", name="ALICE FABRICS", email="a@example.com"))
        bob = Authenticated(Identity(id="2", name="BOB MILLS", email="b@example.com"))

        get_my_recent_invoices(RecentInvoicesParams(), alice)
        get_my_recent_invoices(RecentInvoicesParams(), bob)

        (alice_sql, alice_params), (bob_sql, bob_params) = [c.args for c in mock_db.cursor.execute.call_args_list]
        assert alice_sql == bob_sql
        assert alice_sql.startswith("SELECT * FROM invoice WHERE bill_to_party_code = %s")
        assert alice_params[0] == "ALICE FABRICS"
        assert bob_params[0] == "BOB MILLS"

    def test_caller_filters_narrow_but_keep_ownership_first(self, mock_db, authenticated):
        get_my_invoice_history(DatePageParams(from_date="2025-01-01", to_date="31/03/2025"), authenticated)

        sql, params = mock_db.cursor.execute.call_args.args
        assert "bill_to_party_code = %s AND invoice_date >= %s AND invoice_date <= %s" in sql
        assert params[:3] == ["ACME TEXTILES", "2025-01-01", "2025-03-31"]

    def test_recent_invoices_limit_is_capped(self, mock_db, authenticated):
        get_my_recent_invoices(RecentInvoicesParams(limit=500), authenticated)

        _, params = mock_db.cursor.execute.call_args.args
        assert params[-2:] == [50, 0]


class TestMyInvoiceDetails:

    def test_missing_document_id(self, mock_db, authenticated):
        result = get_my_invoice_details(MyDocumentParams(billing_document="  "), authenticated)

        assert result.success is False
        assert result.error == "Billing document ID is required."
        mock_db.connect.assert_not_called()

    def test_foreign_document_is_reported_as_not_found(self, mock_db, authenticated):
        mock_db.cursor.fetchall.return_value = []

        result = get_my_invoice_details(MyDocumentParams(billing_document="99999999"), authenticated)

        assert result.success is False
        assert result.error == "No invoice found with billing document ID: 99999999 for your account."

    def test_rows_owned_by_someone_else_are_discarded(self, mock_db, authenticated, sample_invoice_row):
        mock_db.cursor.fetchall.return_value = [dict(sample_invoice_row, bill_to_party_code="OTHER CO")]

        result = get_my_invoice_details(MyDocumentParams(billing_document="91234567"), authenticated)

        assert result.success is False

    def test_single_line_is_returned_unwrapped(self, mock_db, authenticated, sample_invoice_row):
        mock_db.cursor.fetchall.return_value = [sample_invoice_row]

        result = get_my_invoice_details(MyDocumentParams(billing_document="91234567", item=10), authenticated)

        assert result.success is True
        assert result.data.billing_document == "91234567"
        assert result.data.item == 10

    def test_multi_line_document_returns_all_lines(self, mock_db, authenticated, sample_invoice_row):
        mock_db.cursor.fetchall.return_value = [sample_invoice_row, dict(sample_invoice_row, id=2, item=20)]

        result = get_my_invoice_details(MyDocumentParams(billing_document="91234567"), authenticated)

        assert result.success is True
        assert [line.item for line in result.data] == [10, 20]

    def test_large_document_is_not_truncated(self, mock_db, authenticated, sample_invoice_row):
        mock_db.cursor.fetchall.return_value = [
            dict(sample_invoice_row, id=n, item=n * 10) for n in range(1, 601)
        ]

        result = get_my_invoice_details(MyDocumentParams(billing_document="91234567"), authenticated)

        sql, params = mock_db.cursor.execute.call_args.args
        assert "LIMIT" not in sql
        assert sql.endswith("ORDER BY item ASC")
        assert params == ["ACME TEXTILES", "91234567"]
        assert len(result.data) == 600


class TestMyInvoicePdf:

    def test_pdf_link_for_own_invoice(self, mock_db, authenticated, sample_invoice_row):
        mock_db.cursor.fetchone.return_value = sample_invoice_row

        result = get_my_invoice_pdf(MyPdfParams(billing_document="91234567"), authenticated)

        assert result.success is True
        assert result.data["pdf_url"].endswith("/91234567.pdf")

    def test_pdf_for_unknown_document_fails(self, mock_db, authenticated):
        result = get_my_invoice_pdf(MyPdfParams(billing_document="123"), authenticated)

        assert result.success is False
        assert "for your account" in result.error


class TestProfileAndSummaries:

    def test_profile_combines_identity_and_lifetime_stats(self, mock_db, authenticated):
        mock_db.cursor.fetchone.return_value = {
            "total_invoices": 4,
            "total_spent": "120000.50",
            "first_invoice_date": None,
            "last_invoice_date": None,
        }

        result = get_my_profile(ToolParams(), authenticated)

        assert result.success is True
        assert result.data.email == "buyer@acme.example"
        assert result.data.total_invoices == 4
        assert result.data.total_spent == 120000.5

    def test_summary_of_empty_history_is_zero(self, mock_db, authenticated):
        mock_db.cursor.fetchone.return_value = None

        result = get_my_invoice_summary(DateRangeParams(), authenticated)

        assert result.success is True
        assert result.data.invoice_count == 0
        assert result.data.total_net_amount == 0.0

    def test_monthly_trend_defaults_to_twelve_months(self, mock_db, authenticated):
        mock_db.cursor.fetchall.return_value = [
            {"month": "2025-06", "total_net_amount": 1000, "total_quantity": 10, "invoice_count": 2},
        ]

        result = get_my_monthly_purchase_trend(MonthlyTrendParams(), authenticated)

        assert result.data["months"] == 12
        assert result.data["trend"][0].month == "2025-06"

    def test_monthly_trend_is_chronological(self, mock_db, authenticated):
        get_my_monthly_purchase_trend(MonthlyTrendParams(months=3), authenticated)

        sql, params = mock_db.cursor.execute.call_args.args
        assert "ORDER BY month ASC" in sql
        assert params[0] == "ACME TEXTILES"
