"""
Unit tests for the tool catalog: registration, schemas and dispatch
"""
import pytest

from ainoc.services.tool_catalog import (
    ADMIN_STOCK,
    USER_SCOPED,
    ToolInputError,
    UnknownToolError,
    tool_catalog,
)


class TestRegistration:

    def test_all_tools_registered(self):
        assert len(tool_catalog) == 44

    def test_user_scoped_tools_are_marked(self):
        scoped = {name for name in tool_catalog.names() if tool_catalog.get(name).scoped}

        assert scoped == set(tool_catalog.names(USER_SCOPED))
        assert "get_my_invoice_details" in scoped
        assert "get_invoice_by_id" not in scoped

    def test_groups(self):
        assert "get_excess_stock_report" in tool_catalog.names(ADMIN_STOCK)
        assert "get_invoice_pdf_link" in tool_catalog

    def test_anthropic_definitions_have_object_schemas(self):
        tools = tool_catalog.anthropic_tools()

        assert len(tools) == 44
        for tool in tools:
            assert tool["description"]
            assert tool["input_schema"]["type"] == "object"
            assert "properties" in tool["input_schema"]

    def test_required_arguments_appear_in_schema(self):
        schema = tool_catalog.get("get_city_analysis").input_schema()

        assert set(schema["required"]) == {"city", "type"}
        assert "title" not in schema


class TestDispatch:

    def test_unknown_tool(self):
        with pytest.raises(UnknownToolError):
            tool_catalog.execute("drop_all_tables", {})

    def test_missing_required_argument(self, mock_db):
        with pytest.raises(ToolInputError) as exc_info:
            tool_catalog.execute("get_invoice_by_id", {})

        assert "id" in str(exc_info.value)
        mock_db.connect.assert_not_called()

    def test_enum_argument_is_validated(self, mock_db):
        with pytest.raises(ToolInputError):
            tool_catalog.execute("get_stock_by_category", {"group_by": "price"})

    def test_unknown_arguments_are_ignored(self, mock_db):
        output = tool_catalog.execute("get_invoice_kpis", {"from_date": "2025-01-01", "verbose": True})

        assert output["success"] is True

    def test_plain_results_are_wrapped_in_envelope(self, mock_db):
        mock_db.cursor.fetchall.side_effect = [[{"value": "WEST"}], [], [], []]

        output = tool_catalog.execute("list_admin_distinct_values", None)

        assert output == {
            "success": True,
            "data": {
                "regions": ["WEST"],
                "agents": [],
                "end_uses": [],
                "designs": [],
            },
            "error": None,
        }

    def test_scoped_tool_without_auth_fails_closed(self, mock_db):
        output = tool_catalog.execute("get_my_recent_invoices", {"limit": 5})

        assert output["success"] is False
        assert output["data"] is None
        mock_db.connect.assert_not_called()

    def test_scoped_tool_receives_auth(self, mock_db, authenticated, sample_invoice_row):
        mock_db.cursor.fetchall.return_value = [sample_invoice_row]

        output = tool_catalog.execute("get_my_recent_invoices", {}, authenticated)

        assert output["success"] is True
        assert output["data"][0]["billing_document"] == "91234567"
        assert output["data"][0]["net_amount_inr"] == 45000.0
        assert output["data"][0]["invoice_date"] == "2025-06-14"

    def test_database_errors_propagate(self, mock_db):
        mock_db.cursor.execute.side_effect = RuntimeError("connection reset")

        with pytest.raises(RuntimeError):
            tool_catalog.execute("get_total_stock_value", {})
