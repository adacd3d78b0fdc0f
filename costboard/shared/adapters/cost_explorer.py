"""
AWS Cost Explorer Adapter (Native Async)

Issues ce:GetCostAndUsage queries with aioboto3 and returns the raw
`ResultsByTime` entries, following NextPageToken until exhausted.
Response shaping happens in the billing aggregator.
"""

import asyncio
import inspect
import time
from functools import wraps
from typing import Any, Dict, List, Optional

import structlog
import tenacity
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from costboard.shared.adapters.aws_utils import AWSClientConfig, get_boto_session
from costboard.shared.core.config import get_settings
from costboard.shared.core.exceptions import AdapterError
from costboard.shared.core.ops_metrics import (
    UPSTREAM_QUERIES_TOTAL,
    UPSTREAM_QUERY_DURATION,
)

logger = structlog.get_logger()

GRANULARITY_MONTHLY = "MONTHLY"
METRIC_UNBLENDED_COST = "UnblendedCost"
GROUP_BY_SERVICE = [{"Type": "DIMENSION", "Key": "SERVICE"}]


def with_aws_retry(func: Any) -> Any:
    """
    Exponential backoff retry decorator for AWS API calls.
    Targets transient network failures (ConnectTimeout, EndpointConnectionError).
    """

    def _before_sleep(retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else None
        logger.debug(
            "aws_retrying",
            attempt=retry_state.attempt_number,
            wait_seconds=wait,
            error=str(exc) if exc else None,
            function=getattr(retry_state.fn, "__name__", "unknown"),
        )

    def _build_retry_config() -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "retry": tenacity.retry_if_exception_type(
                (ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError)
            ),
            "wait": tenacity.wait_exponential(multiplier=1, min=2, max=10),
            "stop": tenacity.stop_after_attempt(4),
            "before_sleep": _before_sleep,
            "reraise": True,
        }
        if get_settings().TESTING:
            # Avoid real sleeps during tests while preserving retry semantics.
            async def _no_sleep(_seconds: float) -> None:
                return None

            config["sleep"] = _no_sleep
            config["wait"] = tenacity.wait_none()
        return config

    if not inspect.iscoroutinefunction(func):
        raise TypeError("with_aws_retry only wraps coroutine functions")

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        retrying = tenacity.AsyncRetrying(**_build_retry_config())
        async for attempt in retrying:
            with attempt:
                return await func(*args, **kwargs)

    return wrapper


class CostExplorerAdapter:
    """Thin async wrapper around ce:GetCostAndUsage."""

    def __init__(
        self,
        config: AWSClientConfig,
        *,
        timeout_seconds: Optional[float] = None,
        max_pages: Optional[int] = None,
        session: Any = None,
    ):
        settings = get_settings()
        self.config = config
        self.timeout_seconds = timeout_seconds or settings.UPSTREAM_TIMEOUT_SECONDS
        self.max_pages = max_pages or settings.MAX_COST_EXPLORER_PAGES
        self.session = session or get_boto_session()

    async def get_cost_and_usage(
        self,
        time_period: Dict[str, str],
        *,
        group_by: Optional[List[Dict[str, str]]] = None,
        granularity: str = GRANULARITY_MONTHLY,
        metrics: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run one Cost Explorer query under the configured deadline.

        Returns the ResultsByTime entries of every page in upstream order.
        Raises AdapterError carrying the AWS error code on failure.
        """
        request_params: Dict[str, Any] = {
            "TimePeriod": dict(time_period),
            "Granularity": granularity,
            "Metrics": list(metrics or [METRIC_UNBLENDED_COST]),
        }
        if group_by:
            request_params["GroupBy"] = [dict(g) for g in group_by]

        query_kind = "breakdown" if group_by else "total"
        started = time.perf_counter()
        try:
            results = await asyncio.wait_for(
                self._query(request_params), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            UPSTREAM_QUERIES_TOTAL.labels(query=query_kind, outcome="timeout").inc()
            logger.warning(
                "cost_explorer_query_timed_out",
                time_period=time_period,
                query=query_kind,
                timeout_seconds=self.timeout_seconds,
            )
            raise AdapterError(
                message=f"Cost Explorer query timed out after {self.timeout_seconds} seconds",
                code="timeout_error",
                details={"time_period": time_period},
            ) from e
        except BotoCoreError as e:
            # Transport failures that outlived the retry budget.
            UPSTREAM_QUERIES_TOTAL.labels(query=query_kind, outcome="error").inc()
            logger.error(
                "cost_explorer_transport_failed",
                time_period=time_period,
                query=query_kind,
                error=str(e),
            )
            raise AdapterError(
                message=f"Could not reach Cost Explorer: {e}",
                code="connection_error",
                details={"time_period": time_period},
            ) from e
        except AdapterError:
            UPSTREAM_QUERIES_TOTAL.labels(query=query_kind, outcome="error").inc()
            raise
        finally:
            UPSTREAM_QUERY_DURATION.labels(query=query_kind).observe(
                time.perf_counter() - started
            )

        UPSTREAM_QUERIES_TOTAL.labels(query=query_kind, outcome="success").inc()
        return results

    @with_aws_retry
    async def _query(self, request_params: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = dict(request_params)
        results: List[Dict[str, Any]] = []

        async with self.session.client(**self.config.client_kwargs("ce")) as client:
            try:
                pages_fetched = 0
                while True:
                    response = await client.get_cost_and_usage(**params)
                    results.extend(response.get("ResultsByTime", []))
                    pages_fetched += 1

                    next_token = response.get("NextPageToken")
                    if not next_token:
                        break
                    if pages_fetched >= self.max_pages:
                        # A truncated result set would understate costs.
                        logger.error(
                            "cost_explorer_page_limit_reached",
                            pages=pages_fetched,
                            time_period=params["TimePeriod"],
                        )
                        raise AdapterError(
                            message=(
                                f"Cost Explorer returned more than {self.max_pages} pages"
                            ),
                            code="page_limit_exceeded",
                            details={"time_period": params["TimePeriod"]},
                        )
                    params["NextPageToken"] = next_token
            except ClientError as e:
                error = e.response.get("Error", {})
                error_code = error.get("Code", "Unknown")
                logger.error(
                    "cost_explorer_query_failed",
                    error_code=error_code,
                    error=str(e),
                    time_period=params["TimePeriod"],
                )
                raise AdapterError(
                    message=error.get("Message") or str(e),
                    code=error_code,
                    details={"time_period": params["TimePeriod"]},
                ) from e

        logger.debug(
            "cost_explorer_query_completed",
            time_period=params["TimePeriod"],
            grouped="GroupBy" in params,
            periods=len(results),
        )
        return results
