from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from costboard.modules.billing.domain.aggregator import CostReport, TrendPoint
from costboard.shared.core.currency import format_amount, to_secondary_currency


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServiceCostResponse(CamelModel):
    name: str
    cost: str
    cost_secondary: str


class CostReportResponse(CamelModel):
    month: str
    total_cost: str
    services: list[ServiceCostResponse]
    currency: str = "USD"
    secondary_currency: str
    exchange_rate: str
    total_cost_secondary: str

    @classmethod
    def from_report(
        cls, report: CostReport, *, secondary_currency: str, rate: Decimal
    ) -> "CostReportResponse":
        return cls(
            month=str(report.month),
            total_cost=format_amount(report.total_cost),
            services=[
                ServiceCostResponse(
                    name=entry.name,
                    cost=format_amount(entry.cost),
                    cost_secondary=format_amount(to_secondary_currency(entry.cost, rate)),
                )
                for entry in report.services
            ],
            secondary_currency=secondary_currency,
            exchange_rate=str(rate),
            total_cost_secondary=format_amount(
                to_secondary_currency(report.total_cost, rate)
            ),
        )


class TrendPointResponse(CamelModel):
    month: str
    formatted_month: str
    total_cost: str

    @classmethod
    def from_point(cls, point: TrendPoint) -> "TrendPointResponse":
        return cls(
            month=str(point.month),
            formatted_month=point.formatted_month,
            total_cost=format_amount(point.total_cost),
        )


class ErrorResponse(BaseModel):
    error: str
    message: str
    code: Optional[str] = None
