"""
Global pytest fixtures for the costboard test suite.

Provides:
- Test environment (TESTING=true, no ambient AWS credentials)
- A scriptable in-memory Cost Explorer source
- The FastAPI app and an async HTTP client bound to it
"""
import asyncio
import os
from datetime import date
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "development"
for _name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN"):
    os.environ.pop(_name, None)

from costboard.shared.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

FIXED_TODAY = date(2025, 3, 15)


def ce_total(amount: Any, start: str = "2025-02-01", end: str = "2025-03-01") -> List[Dict[str, Any]]:
    """ResultsByTime for an ungrouped query."""
    return [
        {
            "TimePeriod": {"Start": start, "End": end},
            "Total": {"UnblendedCost": {"Amount": amount, "Unit": "USD"}},
            "Groups": [],
            "Estimated": False,
        }
    ]


def ce_groups(services: List[tuple], start: str = "2025-02-01", end: str = "2025-03-01") -> List[Dict[str, Any]]:
    """ResultsByTime for a SERVICE-grouped query."""
    return [
        {
            "TimePeriod": {"Start": start, "End": end},
            "Total": {},
            "Groups": [
                {
                    "Keys": [name],
                    "Metrics": {"UnblendedCost": {"Amount": amount, "Unit": "USD"}},
                }
                for name, amount in services
            ],
            "Estimated": False,
        }
    ]


class FakeCostExplorer:
    """
    In-memory stand-in for CostExplorerAdapter.

    totals:   period start (YYYY-MM-DD) -> amount returned by the total query
    services: (name, amount) pairs returned by the breakdown query
    errors:   (period start, "total" | "breakdown") -> exception to raise
    delays:   period start -> seconds to sleep before answering
    """

    def __init__(
        self,
        totals: Optional[Dict[str, Any]] = None,
        services: Optional[List[tuple]] = None,
        errors: Optional[Dict[tuple, Exception]] = None,
        delays: Optional[Dict[str, float]] = None,
        default_total: Any = "0",
    ):
        self.totals = totals or {}
        self.services = services or []
        self.errors = errors or {}
        self.delays = delays or {}
        self.default_total = default_total
        self.calls: List[tuple] = []
        self.completed: List[str] = []

    async def get_cost_and_usage(
        self,
        time_period: Dict[str, str],
        *,
        group_by: Optional[List[Dict[str, str]]] = None,
    ) -> List[Dict[str, Any]]:
        start = time_period["Start"]
        kind = "breakdown" if group_by else "total"
        self.calls.append((start, time_period["End"], kind))
        await asyncio.sleep(self.delays.get(start, 0))
        error = self.errors.get((start, kind))
        if error is not None:
            raise error
        self.completed.append(start)
        if group_by:
            return ce_groups(self.services, start, time_period["End"])
        return ce_total(self.totals.get(start, self.default_total), start, time_period["End"])


@pytest.fixture
def fake_cost_explorer():
    """Factory for FakeCostExplorer instances."""
    return FakeCostExplorer


@pytest.fixture
def ce_payloads():
    """Builders for raw Cost Explorer ResultsByTime payloads."""
    return ce_total, ce_groups


@pytest.fixture
def today() -> date:
    return FIXED_TODAY


@pytest.fixture
def app():
    """Use the real costboard app for API tests."""
    from costboard.main import app as costboard_app

    yield costboard_app
    costboard_app.dependency_overrides.clear()


@pytest.fixture
def use_cost_explorer(app, today):
    """Route the API through a FakeCostExplorer and pin today's date."""
    from costboard.modules.billing.api.v1.costs import get_cost_aggregator, get_today
    from costboard.modules.billing.domain.aggregator import CostAggregator

    def _install(source: FakeCostExplorer) -> FakeCostExplorer:
        app.dependency_overrides[get_cost_aggregator] = lambda: CostAggregator(source)
        app.dependency_overrides[get_today] = lambda: today
        return source

    return _install


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator:
    """Async test client for FastAPI."""
    from httpx import ASGITransport, AsyncClient

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
