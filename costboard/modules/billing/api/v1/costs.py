from datetime import date
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Response

from costboard.modules.billing.api.v1.costs_models import (
    CostReportResponse,
    ErrorResponse,
    TrendPointResponse,
)
from costboard.modules.billing.domain.aggregator import CostAggregator
from costboard.modules.billing.domain.export import (
    export_filename,
    render_cost_report_csv,
)
from costboard.modules.billing.domain.periods import resolve_period, trend_window
from costboard.shared.adapters.aws_utils import AWSClientConfig
from costboard.shared.adapters.cost_explorer import CostExplorerAdapter
from costboard.shared.core.config import Settings, get_settings

router = APIRouter(tags=["Costs"])
logger = structlog.get_logger()

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse, "description": "Malformed month parameter"},
    401: {"model": ErrorResponse, "description": "AWS credentials rejected"},
    403: {"model": ErrorResponse, "description": "No Cost Explorer permission"},
    500: {"model": ErrorResponse, "description": "Upstream billing API failure"},
}


def get_today() -> date:
    """Current date; overridden in tests."""
    return date.today()


def get_cost_aggregator(
    settings: Annotated[Settings, Depends(get_settings)],
) -> CostAggregator:
    """Fresh aggregator per request over an immutable client config."""
    adapter = CostExplorerAdapter(AWSClientConfig.from_settings(settings))
    return CostAggregator(adapter)


@router.get("", response_model=CostReportResponse, responses=ERROR_RESPONSES)
async def get_costs(
    aggregator: Annotated[CostAggregator, Depends(get_cost_aggregator)],
    settings: Annotated[Settings, Depends(get_settings)],
    today: Annotated[date, Depends(get_today)],
    month: Optional[str] = Query(default=None, description="Month as YYYY-MM"),
) -> CostReportResponse:
    """Total cost and per-service breakdown for one month."""
    date_range = resolve_period(month, today)
    logger.info(
        "cost_report_requested",
        requested_month=month,
        resolved_month=str(date_range.month),
    )
    report = await aggregator.fetch_cost_report(date_range)
    return CostReportResponse.from_report(
        report,
        secondary_currency=settings.SECONDARY_CURRENCY,
        rate=settings.SECONDARY_CURRENCY_RATE,
    )


@router.get(
    "/trend", response_model=list[TrendPointResponse], responses=ERROR_RESPONSES
)
async def get_cost_trend(
    aggregator: Annotated[CostAggregator, Depends(get_cost_aggregator)],
    settings: Annotated[Settings, Depends(get_settings)],
    today: Annotated[date, Depends(get_today)],
    months: Optional[str] = Query(
        default=None,
        description="Number of months (default TREND_DEFAULT_MONTHS, clamped to 2..12)",
    ),
) -> list[TrendPointResponse]:
    """Monthly totals for the trailing window, oldest first."""
    ranges = trend_window(months, today, default=settings.TREND_DEFAULT_MONTHS)
    logger.info(
        "cost_trend_requested",
        requested_months=months,
        resolved_months=len(ranges),
    )
    points = await aggregator.fetch_trend_report(ranges)
    return [TrendPointResponse.from_point(p) for p in points]


@router.get(
    "/export",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}, **ERROR_RESPONSES},
)
async def export_costs(
    aggregator: Annotated[CostAggregator, Depends(get_cost_aggregator)],
    settings: Annotated[Settings, Depends(get_settings)],
    today: Annotated[date, Depends(get_today)],
    month: Optional[str] = Query(default=None, description="Month as YYYY-MM"),
) -> Response:
    """Per-service costs with secondary-currency column as a CSV download."""
    date_range = resolve_period(month, today)
    report = await aggregator.fetch_cost_report(date_range)
    csv_data = render_cost_report_csv(
        report,
        settings.SECONDARY_CURRENCY,
        settings.SECONDARY_CURRENCY_RATE,
    )
    filename = export_filename(report)
    return Response(
        content=csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
