"""
Cost aggregation over AWS Cost Explorer.

Issues the upstream queries for a month (or a trend window) and normalizes
the Cost Explorer response shape into `CostReport` / `TrendPoint` values.

Amounts are rounded to cents exactly once, here, when they are ingested.
Every upstream failure leaves this module classified (see error_classifier);
no report is ever built from partial data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Protocol, Sequence, TypeVar

import structlog

from costboard.modules.billing.domain.error_classifier import classify
from costboard.modules.billing.domain.periods import CalendarMonth, DateRange
from costboard.shared.adapters.cost_explorer import (
    GROUP_BY_SERVICE,
    METRIC_UNBLENDED_COST,
)
from costboard.shared.core.async_utils import gather_in_order
from costboard.shared.core.currency import (
    Unavailable,
    ValidAmount,
    parse_cost_amount,
)
from costboard.shared.core.exceptions import CostboardException, UpstreamFailure

logger = structlog.get_logger()

T = TypeVar("T")


class CostAndUsageSource(Protocol):
    async def get_cost_and_usage(
        self,
        time_period: Dict[str, str],
        *,
        group_by: List[Dict[str, str]] | None = None,
    ) -> List[Dict[str, Any]]: ...


@dataclass(frozen=True, slots=True)
class ServiceCostEntry:
    name: str
    cost: ValidAmount


@dataclass(frozen=True, slots=True)
class CostReport:
    month: CalendarMonth
    total_cost: ValidAmount
    services: tuple[ServiceCostEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class TrendPoint:
    month: CalendarMonth
    total_cost: ValidAmount

    @property
    def formatted_month(self) -> str:
        return self.month.label


def _ingest_amount(raw: Any, *, context: str) -> ValidAmount:
    parsed = parse_cost_amount(raw)
    if isinstance(parsed, Unavailable):
        raise UpstreamFailure(
            "Cost Explorer returned a non-numeric amount",
            details={"context": context, "amount": repr(raw)},
        )
    return parsed.rounded()


def _metric_amount(container: Dict[str, Any], *, context: str) -> ValidAmount:
    try:
        raw = container[METRIC_UNBLENDED_COST]["Amount"]
    except (KeyError, TypeError) as e:
        raise UpstreamFailure(
            f"Cost Explorer response is missing {METRIC_UNBLENDED_COST}",
            details={"context": context},
        ) from e
    return _ingest_amount(raw, context=context)


def normalize_total(results: Sequence[Dict[str, Any]], month: CalendarMonth) -> ValidAmount:
    """Total cost from an ungrouped query's ResultsByTime."""
    if not results:
        raise UpstreamFailure(
            f"Cost Explorer returned no results for {month}",
            details={"month": str(month)},
        )
    return _metric_amount(results[0].get("Total") or {}, context=f"total:{month}")


def normalize_services(
    results: Sequence[Dict[str, Any]], month: CalendarMonth
) -> tuple[ServiceCostEntry, ...]:
    """Per-service entries from a SERVICE-grouped query, in upstream order."""
    if not results:
        raise UpstreamFailure(
            f"Cost Explorer returned no results for {month}",
            details={"month": str(month)},
        )

    services: list[ServiceCostEntry] = []
    for result in results:
        for group in result.get("Groups") or []:
            keys = group.get("Keys") or []
            name = str(keys[0]).strip() if keys else ""
            if not name:
                logger.warning("cost_explorer_group_without_key", month=str(month))
                continue
            cost = _metric_amount(group.get("Metrics") or {}, context=f"service:{name}")
            services.append(ServiceCostEntry(name=name, cost=cost))
    return tuple(services)


class CostAggregator:
    """Builds cost reports from an injected Cost Explorer source."""

    def __init__(self, source: CostAndUsageSource):
        self.source = source

    async def _classified(self, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except Exception as exc:
            classification = classify(exc)
            logger.warning(
                "billing_upstream_failed",
                kind=classification.kind.value,
                status_code=classification.http_status,
                upstream_code=classification.upstream_code,
                error=str(exc),
            )
            if isinstance(exc, CostboardException) and exc.status_code == classification.http_status:
                raise
            raise classification.to_exception() from exc

    async def _total_for(self, date_range: DateRange) -> ValidAmount:
        results = await self.source.get_cost_and_usage(date_range.to_time_period())
        return normalize_total(results, date_range.month)

    async def _services_for(self, date_range: DateRange) -> tuple[ServiceCostEntry, ...]:
        results = await self.source.get_cost_and_usage(
            date_range.to_time_period(), group_by=GROUP_BY_SERVICE
        )
        return normalize_services(results, date_range.month)

    async def fetch_cost_report(self, date_range: DateRange) -> CostReport:
        """
        Total and per-service breakdown for one month.

        Both queries run concurrently; either failing fails the report.
        """
        total, services = await self._classified(
            gather_in_order([self._total_for(date_range), self._services_for(date_range)])
        )
        report = CostReport(month=date_range.month, total_cost=total, services=services)
        logger.info(
            "cost_report_fetched",
            month=str(report.month),
            total_cost=str(report.total_cost.value),
            service_count=len(report.services),
        )
        return report

    async def fetch_trend_report(self, ranges: Sequence[DateRange]) -> list[TrendPoint]:
        """
        One total per range, queried concurrently and returned in input order.
        A single failing month aborts the whole report.
        """
        totals = await self._classified(
            gather_in_order([self._total_for(r) for r in ranges])
        )
        points = [
            TrendPoint(month=r.month, total_cost=total) for r, total in zip(ranges, totals)
        ]
        logger.info(
            "trend_report_fetched",
            months=len(points),
            first=str(points[0].month) if points else None,
            last=str(points[-1].month) if points else None,
        )
        return points
