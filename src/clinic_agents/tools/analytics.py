"""Clinic metrics tool.

API endpoints used:
- GET /claims/summary?from=YYYY-MM-DD  — Claim count and paid amount per status

All three metrics are derived from the same per-status summary, so one
request answers any of them.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

from clinic_agents.clinic_client import get_client
from clinic_agents.tools.common import as_number

SUPPORTED_METRICS = ("denial_rate", "revenue", "claims_count")


def period_start(period: str, today: date | None = None) -> date:
    """First service date included in a reporting period.

    "today" is the current day, "this_week" the trailing seven days, and
    anything else (including the default "this_month") the calendar month.
    """
    today = today or datetime.now().date()
    if period == "today":
        return today
    if period == "this_week":
        return today - timedelta(days=7)
    return today.replace(day=1)


async def metrics_query(metric: str, period: str = "this_month") -> dict[str, Any]:
    """Run analytics queries for clinic metrics like denial rate, revenue, and claims count.

    Args:
        metric: denial_rate, revenue, or claims_count.
        period: today, this_week, or this_month (default).
    """
    metric = str(metric).strip()
    period = str(period or "this_month").strip()
    if metric not in SUPPORTED_METRICS:
        return {
            "error": f'Unknown metric "{metric}". Supported: {", ".join(SUPPORTED_METRICS)}'
        }

    client = await get_client()
    data = await client.get(
        "/claims/summary", params={"from": period_start(period).isoformat()}
    )
    rows = data.get("data", [])
    counts = {r.get("status"): int(r.get("count", 0)) for r in rows}
    total = sum(counts.values())

    if metric == "denial_rate":
        denied = counts.get("DENIED", 0)
        return {
            "metric": metric,
            "period": period,
            "value": f"{denied / total * 100:.1f}%" if total else "0%",
            "denied": denied,
            "total": total,
        }

    if metric == "revenue":
        paid = next((r for r in rows if r.get("status") == "PAID"), {})
        amount = as_number(paid.get("paidAmount"))
        return {
            "metric": metric,
            "period": period,
            "value": f"${amount:,.2f}",
            "claimCount": counts.get("PAID", 0),
        }

    return {
        "metric": metric,
        "period": period,
        "total": total,
        "breakdown": [{"status": status, "count": count} for status, count in counts.items()],
    }
