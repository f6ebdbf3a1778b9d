"""Pytest configuration and fixtures for the P&L import package."""
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from pnl_import import langfuse_tracer
from pnl_import.classifier import RuleCache, default_rule_records, sort_rules, validate_rule_records
from pnl_import.config import Settings
from pnl_import.main import SessionStore, app


@pytest.fixture
def default_rules():
    """Built-in rules, validated and sorted the way the rule cache serves them."""
    return sort_rules(validate_rule_records(default_rule_records()))


@pytest.fixture
def e2e_rules():
    """The three rules from the reference end-to-end scenario."""
    return sort_rules(
        validate_rule_records(
            [
                {"keyword": "cost of goods", "category": "materials_subs", "priority": 95},
                {"keyword": "owner", "category": "owner_pay", "priority": 95},
                {"keyword": "rent", "category": "opex", "priority": 90},
            ]
        )
    )


@pytest.fixture
def disabled_tracer():
    """Keep tests from ever talking to a Langfuse server."""
    original = langfuse_tracer._tracer
    langfuse_tracer._tracer = langfuse_tracer.ImportTracer(Settings())
    yield langfuse_tracer._tracer
    langfuse_tracer._tracer = original


@pytest.fixture
def client(disabled_tracer):
    """Create a test client with fresh sessions and the built-in rules."""
    original_cache = app.state.rule_cache
    original_sessions = app.state.sessions
    app.state.rule_cache = RuleCache.with_defaults()
    app.state.sessions = SessionStore()

    yield TestClient(app)

    app.state.rule_cache = original_cache
    app.state.sessions = original_sessions


@pytest.fixture
def sample_pnl_text():
    """Pasted P&L in label: amount form."""
    return """Total Income: $450,000
Cost of Goods Sold: $120,000
Owner's Pay: $85,000
Rent: $24,000
Net Income: $85,000"""


@pytest.fixture
def quickbooks_csv():
    """QuickBooks-style CSV export with month columns and sections."""
    return """Acme Plumbing LLC,,,,
Profit and Loss,,,,
January - March 2025,,,,
Account,Jan 2025,Feb 2025,Mar 2025,Total
Income,,,,
Service Revenue,"40,000.00","42,000.00","45,000.00","127,000.00"
Total Income,"40,000.00","42,000.00","45,000.00","127,000.00"
Cost of Goods Sold,,,,
Job Materials,"8,000.00","9,000.00","9,500.00","26,500.00"
Total Cost of Goods Sold,"8,000.00","9,000.00","9,500.00","26,500.00"
Gross Profit,"32,000.00","33,000.00","35,500.00","100,500.00"
Expenses,,,,
Rent,"2,000.00","2,000.00","2,000.00","6,000.00"
Officer Compensation,"10,000.00","10,000.00","10,000.00","30,000.00"
Total Expenses,"12,000.00","12,000.00","12,000.00","36,000.00"
Net Income,"20,000.00","21,000.00","23,500.00","64,500.00"
"""


@pytest.fixture
def make_workbook():
    """Build an in-memory .xlsx from a list of rows."""

    def _make(rows):
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(row)
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _make
