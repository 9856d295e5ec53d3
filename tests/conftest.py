"""
Pytest fixtures shared by the ainoc test suite

No test needs a database: repositories are exercised against a mocked
psycopg2 connection whose cursor returns dict rows, the way RealDictCursor
does.
"""
from types import SimpleNamespace

import pytest
from unittest.mock import MagicMock, patch

from ainoc.core.auth import Authenticated, Identity, Unauthenticated
from ainoc.core.config import settings
from ainoc.core.rate_limit import rate_limiter


@pytest.fixture
def mock_db():
    """
    Patches the connection factory behind db_cursor().

    Set fetchall/fetchone return values (or side_effect for several queries)
    on mock_db.cursor; mock_db.connect records whether a connection was opened.
    """
    with patch("ainoc.core.database.get_db_connection_dict_with_retry") as mock_connect:
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_connect.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        mock_cursor.fetchall.return_value = []
        mock_cursor.fetchone.return_value = None
        yield SimpleNamespace(connect=mock_connect, conn=mock_conn, cursor=mock_cursor)


@pytest.fixture
def identity():
    return Identity(id="user-1", name="ACME TEXTILES", email="buyer@acme.example")


@pytest.fixture
def authenticated(identity):
    return Authenticated(identity)


@pytest.fixture
def anonymous():
    return Unauthenticated()


@pytest.fixture
def auth_secret(monkeypatch):
    """Configure a signing secret for session tokens"""
    monkeypatch.setattr(settings, "AUTH_SECRET", "test-secret")
    return "test-secret"


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def sample_invoice_row():
    """One invoice line as RealDictCursor returns it"""
    return {
        "id": 1,
        "billing_document": "91234567",
        "item": 10,
        "invoice_date": "2025-06-14",
        "bill_to_party": "ACME TEXTILES",
        "bill_to_party_code": "ACME TEXTILES",
        "bill_to_party_city": "MUMBAI",
        "ship_to_party_city": "PUNE",
        "material": "M100",
        "billed_quantity": "120.5",
        "net_amount_inr": "45000.00",
        "gross_amount": "53100.00",
        "region_zone": "WEST",
    }
