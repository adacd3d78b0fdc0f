import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from costboard.shared.adapters.aws_utils import AWSClientConfig
from costboard.shared.adapters.cost_explorer import (
    GROUP_BY_SERVICE,
    CostExplorerAdapter,
    with_aws_retry,
)
from costboard.shared.core.exceptions import AdapterError

TIME_PERIOD = {"Start": "2025-02-01", "End": "2025-03-01"}


def _session_for(client: MagicMock) -> MagicMock:
    session = MagicMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=client)
    context.__aexit__ = AsyncMock(return_value=False)
    session.client.return_value = context
    return session


def _page(start: str, token: str | None = None) -> dict:
    page = {
        "ResultsByTime": [
            {"TimePeriod": {"Start": start}, "Total": {"UnblendedCost": {"Amount": "1"}}}
        ]
    }
    if token:
        page["NextPageToken"] = token
    return page


def _adapter(client: MagicMock, **kwargs) -> tuple[CostExplorerAdapter, MagicMock]:
    session = _session_for(client)
    return CostExplorerAdapter(AWSClientConfig(), session=session, **kwargs), session


@pytest.mark.asyncio
async def test_total_query_request_shape():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(return_value=_page("2025-02-01"))
    adapter, session = _adapter(client)

    results = await adapter.get_cost_and_usage(TIME_PERIOD)

    assert len(results) == 1
    session.client.assert_called_once()
    assert session.client.call_args.kwargs["service_name"] == "ce"
    client.get_cost_and_usage.assert_awaited_once_with(
        TimePeriod=TIME_PERIOD, Granularity="MONTHLY", Metrics=["UnblendedCost"]
    )


@pytest.mark.asyncio
async def test_breakdown_query_groups_by_service():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(return_value=_page("2025-02-01"))
    adapter, _ = _adapter(client)

    await adapter.get_cost_and_usage(TIME_PERIOD, group_by=GROUP_BY_SERVICE)

    assert client.get_cost_and_usage.call_args.kwargs["GroupBy"] == [
        {"Type": "DIMENSION", "Key": "SERVICE"}
    ]


@pytest.mark.asyncio
async def test_follows_next_page_token():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(
        side_effect=[_page("a", token="t1"), _page("b", token="t2"), _page("c")]
    )
    adapter, _ = _adapter(client)

    results = await adapter.get_cost_and_usage(TIME_PERIOD)

    assert [r["TimePeriod"]["Start"] for r in results] == ["a", "b", "c"]
    assert client.get_cost_and_usage.await_count == 3
    assert client.get_cost_and_usage.call_args.kwargs["NextPageToken"] == "t2"


@pytest.mark.asyncio
async def test_page_limit_fails_instead_of_truncating():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(return_value=_page("x", token="again"))
    adapter, _ = _adapter(client, max_pages=2)

    with pytest.raises(AdapterError) as exc_info:
        await adapter.get_cost_and_usage(TIME_PERIOD)

    assert exc_info.value.code == "page_limit_exceeded"
    assert client.get_cost_and_usage.await_count == 2


@pytest.mark.asyncio
async def test_last_page_within_limit_is_returned():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(side_effect=[_page("a", token="t1"), _page("b")])
    adapter, _ = _adapter(client, max_pages=2)

    results = await adapter.get_cost_and_usage(TIME_PERIOD)

    assert [r["TimePeriod"]["Start"] for r in results] == ["a", "b"]


@pytest.mark.asyncio
async def test_client_error_becomes_adapter_error_with_aws_code():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(
        side_effect=ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "User is not authorized"}},
            "GetCostAndUsage",
        )
    )
    adapter, _ = _adapter(client)

    with pytest.raises(AdapterError) as exc_info:
        await adapter.get_cost_and_usage(TIME_PERIOD)

    assert exc_info.value.code == "AccessDeniedException"
    assert exc_info.value.message == "User is not authorized"
    # Permission errors are not retried.
    assert client.get_cost_and_usage.await_count == 1


@pytest.mark.asyncio
async def test_transient_connection_errors_are_retried():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(
        side_effect=[
            EndpointConnectionError(endpoint_url="https://ce.us-east-1.amazonaws.com"),
            _page("2025-02-01"),
        ]
    )
    adapter, _ = _adapter(client)

    results = await adapter.get_cost_and_usage(TIME_PERIOD)

    assert len(results) == 1
    assert client.get_cost_and_usage.await_count == 2


@pytest.mark.asyncio
async def test_exhausted_retries_become_connection_error():
    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(
        side_effect=EndpointConnectionError(endpoint_url="https://ce.us-east-1.amazonaws.com")
    )
    adapter, _ = _adapter(client)

    with pytest.raises(AdapterError) as exc_info:
        await adapter.get_cost_and_usage(TIME_PERIOD)

    assert exc_info.value.code == "connection_error"
    assert client.get_cost_and_usage.await_count == 4


@pytest.mark.asyncio
async def test_query_deadline():
    async def never_answers(**_kwargs):
        await asyncio.sleep(5)

    client = MagicMock()
    client.get_cost_and_usage = AsyncMock(side_effect=never_answers)
    adapter, _ = _adapter(client, timeout_seconds=0.01)

    with pytest.raises(AdapterError) as exc_info:
        await adapter.get_cost_and_usage(TIME_PERIOD)

    assert exc_info.value.code == "timeout_error"


def test_retry_decorator_rejects_sync_functions():
    with pytest.raises(TypeError):
        with_aws_retry(lambda: None)
