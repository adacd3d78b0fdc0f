import csv
import io
from decimal import Decimal
from typing import Any, Optional

from costboard.modules.billing.domain.aggregator import CostReport
from costboard.shared.core.currency import (
    format_amount,
    get_secondary_rate,
    to_secondary_currency,
)


CSV_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def sanitize_csv_cell(value: Any) -> str:
    """Prevent spreadsheet formula injection for untrusted strings."""
    if value is None:
        return ""
    text = str(value)
    if not text:
        return ""
    if text.startswith(CSV_FORMULA_PREFIXES):
        return "'" + text
    return text


def export_filename(report: CostReport) -> str:
    return f"aws-cost-data-{report.month}.csv"


def export_rows(
    report: CostReport,
    secondary_currency: str,
    rate: Optional[Decimal] = None,
) -> list[dict[str, str]]:
    """One row per service with USD and secondary-currency costs."""
    secondary_column = f"Cost ({secondary_currency})"
    return [
        {
            "Service Name": sanitize_csv_cell(entry.name),
            "Cost (USD)": format_amount(entry.cost),
            secondary_column: format_amount(to_secondary_currency(entry.cost, rate)),
        }
        for entry in report.services
    ]


def render_cost_report_csv(
    report: CostReport,
    secondary_currency: str,
    rate: Optional[Decimal] = None,
) -> str:
    effective_rate = rate if rate is not None else get_secondary_rate()
    secondary_column = f"Cost ({secondary_currency})"

    out = io.StringIO()
    writer = csv.DictWriter(
        out, fieldnames=["Service Name", "Cost (USD)", secondary_column]
    )
    writer.writeheader()
    writer.writerows(export_rows(report, secondary_currency, effective_rate))
    writer.writerow(
        {
            "Service Name": "Total",
            "Cost (USD)": format_amount(report.total_cost),
            secondary_column: format_amount(
                to_secondary_currency(report.total_cost, effective_rate)
            ),
        }
    )
    return out.getvalue()
