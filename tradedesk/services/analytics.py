from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

import pandas as pd

from tradedesk.errors import ValidationError
from tradedesk.models import Sale, UNKNOWN
from tradedesk.services.costing import final_nlc
from tradedesk.services.inventory import location_name, stock_count, stock_value
from tradedesk.store import AppState
from tradedesk.utils import as_utc, safe_div, utcnow

# Calendar periods used on the dashboard.
DAY = "DAY"
WEEK = "WEEK"
MONTH = "MONTH"
CUSTOM = "CUSTOM"
# Rolling window used by the store analytics view.
QUARTER = "QUARTER"

PERIOD_LABELS = {DAY: "Today", WEEK: "Last 7 Days", MONTH: "This Month", CUSTOM: "Custom Range"}

SALES_COLUMNS = ["date", "day", "sale_id", "invoice_number", "retailer_id", "retailer", "brand", "model",
                 "revenue", "cost", "gm"]


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def filter_sales_by_period(
    sales: Iterable[Sale],
    period: str,
    now: Optional[datetime] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    *,
    rolling: bool = False,
) -> list[Sale]:
    """
    Calendar filter (rolling=False):
      DAY    same calendar day as `now`
      WEEK   from 00:00 seven days ago
      MONTH  same calendar month and year
      CUSTOM start 00:00 through end 23:59:59, both inclusive; no bounds keeps all
    Rolling filter (rolling=True): everything since now minus one WEEK, MONTH or QUARTER.
    """
    now = as_utc(now or utcnow())
    sales = list(sales)

    if rolling:
        offsets = {WEEK: pd.DateOffset(days=7), MONTH: pd.DateOffset(months=1), QUARTER: pd.DateOffset(months=3)}
        if period not in offsets:
            raise ValidationError(f"Unknown analytics window: {period}.")
        since = (pd.Timestamp(now) - offsets[period]).to_pydatetime()
        return [s for s in sales if as_utc(s.date) >= since]

    if period == DAY:
        return [s for s in sales if as_utc(s.date).date() == now.date()]
    if period == WEEK:
        since = _day_start(now.date() - timedelta(days=7))
        return [s for s in sales if as_utc(s.date) >= since]
    if period == MONTH:
        return [s for s in sales if (as_utc(s.date).year, as_utc(s.date).month) == (now.year, now.month)]
    if period == CUSTOM:
        if start is None or end is None:
            return sales
        lo = _day_start(start)
        hi = _day_start(end) + timedelta(days=1)
        return [s for s in sales if lo <= as_utc(s.date) < hi]
    raise ValidationError(f"Unknown period: {period}.")


def kpis(state: AppState, sales: Iterable[Sale], retailer_id: Optional[str] = None) -> dict:
    revenue = 0.0
    cost = 0.0
    for sale in sales:
        revenue += sale.total_amount
        for item in sale.items:
            unit = state.unit(item.inventory_id)
            if unit is not None:
                cost += final_nlc(state.price_item(unit.price_item_id))
    gross = revenue - cost
    return {
        "revenue": revenue,
        "cost": cost,
        "gross_profit": gross,
        "margin_percent": safe_div(gross, revenue) * 100.0,
        "stock_count": stock_count(state, retailer_id),
        "stock_value": stock_value(state, retailer_id),
    }


def sales_frame(state: AppState, sales: Iterable[Sale]) -> pd.DataFrame:
    """One row per sold line. Lines whose price item is gone are left out."""
    rows = []
    for sale in sales:
        when = as_utc(sale.date)
        for item in sale.items:
            unit = state.unit(item.inventory_id)
            p = state.price_item(unit.price_item_id) if unit else None
            if p is None:
                continue
            revenue = item.net_price
            cost = final_nlc(p)
            rows.append(
                {
                    "date": when,
                    "day": when.date(),
                    "sale_id": sale.id,
                    "invoice_number": sale.invoice_number,
                    "retailer_id": sale.retailer_id,
                    "retailer": location_name(state, sale.retailer_id),
                    "brand": p.manufacturer,
                    "model": p.model,
                    "revenue": revenue,
                    "cost": cost,
                    "gm": revenue - cost,
                }
            )
    return pd.DataFrame(rows, columns=SALES_COLUMNS)


def revenue_by_date(frame: pd.DataFrame) -> pd.DataFrame:
    if frame.empty:
        return pd.DataFrame(columns=["day", "revenue", "gm"])
    out = frame.groupby("day", as_index=False)[["revenue", "gm"]].sum()
    return out.sort_values("day").reset_index(drop=True)


def revenue_by_brand(frame: pd.DataFrame) -> pd.DataFrame:
    if frame.empty:
        return pd.DataFrame(columns=["brand", "revenue", "gm", "gm_percent"])
    out = frame.groupby("brand", as_index=False)[["revenue", "gm"]].sum()
    out["gm_percent"] = (out["gm"] / out["revenue"].where(out["revenue"] != 0)).fillna(0) * 100.0
    return out.sort_values("revenue", ascending=False).reset_index(drop=True)


def recent_sales(
    state: AppState,
    sales: Iterable[Sale],
    date_text: str = "",
    retailer_text: str = "",
    model_text: str = "",
    *,
    limit: int = 30,
) -> list[dict]:
    """
    Newest sales first, filtered by substring on the ISO date, the store name
    and the model of the first line.
    """
    date_q = (date_text or "").strip()
    retailer_q = (retailer_text or "").strip().lower()
    model_q = (model_text or "").strip().lower()

    rows = []
    for sale in sorted(sales, key=lambda s: as_utc(s.date), reverse=True):
        first = sale.items[0] if sale.items else None
        unit = state.unit(first.inventory_id) if first else None
        p = state.price_item(unit.price_item_id) if unit else None
        model = p.model if p else UNKNOWN
        retailer = location_name(state, sale.retailer_id)
        day = as_utc(sale.date).date().isoformat()

        if date_q and date_q not in day:
            continue
        if retailer_q and retailer_q not in retailer.lower():
            continue
        if model_q and model_q not in model.lower():
            continue

        cost = sum(
            final_nlc(state.price_item(u.price_item_id))
            for u in (state.unit(i.inventory_id) for i in sale.items)
            if u is not None
        )
        rows.append(
            {
                "date": day,
                "invoice_number": sale.invoice_number,
                "customer_name": sale.customer_name,
                "retailer": retailer,
                "model": model,
                "units": len(sale.items),
                "total_amount": sale.total_amount,
                "margin_percent": safe_div(sale.total_amount - cost, sale.total_amount) * 100.0,
            }
        )
        if len(rows) >= limit:
            break
    return rows


def retailer_performance(
    state: AppState,
    sales: Iterable[Sale],
    *,
    city: str = "ALL",
    area: str = "ALL",
) -> list[dict]:
    """Revenue, margin and stock per store for the admin dashboard."""
    sales = list(sales)
    rows = []
    for r in state.retailers():
        if (city != "ALL" and r.city != city) or (area != "ALL" and r.area != area):
            continue
        metrics = kpis(state, [s for s in sales if s.retailer_id == r.id], r.id)
        rows.append(
            {
                "retailer_id": r.id,
                "name": r.name,
                "city": r.city,
                "area": r.area,
                "revenue": metrics["revenue"],
                "gm_percent": metrics["margin_percent"],
                "stock_count": metrics["stock_count"],
            }
        )
    return rows
