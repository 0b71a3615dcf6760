"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings require Supabase credentials at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from typing import Generator

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters are applied to the table's rows on execute(). update() and
    insert() change the shared row list, so later queries see them.
    """

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._filters = []
        self._limit = None
        self._order = None
        self._update = None
        self._insert = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._insert = data if isinstance(data, list) else [data]
        return self

    def update(self, data):
        self._update = data
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def ilike(self, column, pattern):
        needle = pattern.strip("%").lower()
        self._filters.append(lambda row: needle in str(row.get(column) or "").lower())
        return self

    def order(self, column, **kwargs):
        self._order = (column, kwargs.get("desc", False))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._table.fail_with is not None:
            raise self._table.fail_with

        if self._insert is not None:
            rows = [dict(item) for item in self._insert]
            self._table.rows.extend(rows)
            return MockSupabaseResponse(data=rows)

        rows = [r for r in self._table.rows if all(f(r) for f in self._filters)]

        if self._update is not None:
            for row in rows:
                row.update(self._update)
            return MockSupabaseResponse(data=[dict(r) for r in rows])

        if self._order is not None:
            column, desc = self._order
            rows = sorted(rows, key=lambda r: str(r.get(column)), reverse=desc)
        if self._limit is not None:
            rows = rows[:self._limit]
        return MockSupabaseResponse(data=[dict(r) for r in rows])


class MockSupabaseTable:
    """Mock Supabase table backed by a list of row dicts."""

    def __init__(self, rows: list = None):
        self.rows = rows if rows is not None else []
        self.fail_with = None

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self)

    def insert(self, data):
        return MockSupabaseQuery(self).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self).update(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name: str, data: list):
        """Configure rows for a table."""
        self._tables[table_name] = MockSupabaseTable([dict(row) for row in data])

    def fail_table(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self.table(table_name).fail_with = error

    def rows(self, table_name: str) -> list:
        return self.table(table_name).rows

    def table(self, name: str) -> MockSupabaseTable:
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("alloy_master", [
                {"id": 1, "product_name": "...", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any CatalogService created inside the test gets the mock.
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture(autouse=True)
def clear_session_store():
    """Every test starts without reconciliation sessions."""
    from services.session_store_service import clear_sessions

    clear_sessions()
    yield
    clear_sessions()


@pytest.fixture
def sample_catalog_rows() -> list:
    """Small alloy catalog: two models, two finishes."""
    from tests.factories import CatalogProductFactory

    return [
        CatalogProductFactory.create(id=1, model_name="VOLTA", inches="17", finish="Gunmetal", in_house_stock=10),
        CatalogProductFactory.create(id=2, model_name="VOLTA", inches="17", finish="Silver", in_house_stock=4),
        CatalogProductFactory.create(id=3, model_name="RAPTOR", inches="18", finish="Black", in_house_stock=0),
    ]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/stock-upload/finishes")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
