from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional

import pandas as pd

from tradedesk.errors import ValidationError
from tradedesk.models import DiscountScheme, PriceItem, UNKNOWN
from tradedesk.services.costing import cost_breakdown, msp
from tradedesk.store import AppState
from tradedesk.utils import as_utc, sort_records, utcnow

logger = logging.getLogger(__name__)

DEFAULT_GST_RATE = 18.0
DEFAULT_MIN_MARGIN = 10.0

DECK_COLUMNS = [
    "manufacturer",
    "model",
    "category",
    "mrp",
    "basic_price",
    "gst_rate",
    "min_margin_percent",
    "upfront_discounts",
    "backend_discounts",
]
REQUIRED_DECK_COLUMNS = {"manufacturer", "model", "basic_price"}


def _num(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if f != f:  # NaN from pandas
        return default
    return f


def _text(value: Any, default: str) -> str:
    if value is None or (isinstance(value, float) and value != value):
        return default
    s = str(value).strip()
    return s if s else default


def parse_discounts(cell: Any, *, is_backend: bool) -> list[DiscountScheme]:
    """
    Parse "Trade:5000; Target:3000" into discount schemes.
    A bare number is accepted as an unnamed scheme.
    """
    text = _text(cell, "")
    if not text:
        return []
    out: list[DiscountScheme] = []
    for part in text.split(";"):
        part = part.strip()
        if not part:
            continue
        if ":" in part:
            name, _, amount = part.rpartition(":")
        else:
            name, amount = ("Backend" if is_backend else "Upfront"), part
        try:
            amt = float(amount)
        except ValueError:
            raise ValidationError(f"Invalid discount amount in '{part}'.")
        out.append(DiscountScheme(name=name.strip() or "Scheme", amount=amt, is_backend=is_backend))
    return out


def _schemes_from_record(rec: dict) -> tuple[DiscountScheme, ...]:
    raw = rec.get("discount_schemes")
    if raw:
        schemes = []
        for d in raw:
            if isinstance(d, DiscountScheme):
                schemes.append(d)
            else:
                schemes.append(
                    DiscountScheme(
                        name=_text(d.get("name"), "Scheme"),
                        amount=_num(d.get("amount"), 0.0),
                        is_backend=bool(d.get("is_backend", False)),
                    )
                )
        return tuple(schemes)
    return tuple(
        parse_discounts(rec.get("upfront_discounts"), is_backend=False)
        + parse_discounts(rec.get("backend_discounts"), is_backend=True)
    )


def ingest_price_items(
    state: AppState,
    records: Iterable[dict],
    *,
    batch_date: Optional[datetime] = None,
) -> list[PriceItem]:
    """
    Every record becomes a NEW price item stamped with `batch_date`.
    Earlier batches of the same model are left untouched.
    """
    batch_date = as_utc(batch_date or utcnow())
    created: list[PriceItem] = []
    for rec in records:
        model = _text(rec.get("model"), UNKNOWN)
        margin = _check_margin(_num(rec.get("min_margin_percent"), DEFAULT_MIN_MARGIN), model)
        created.append(
            PriceItem(
                id=state.next_id("NLC"),
                manufacturer=_text(rec.get("manufacturer"), UNKNOWN),
                model=model,
                category=_text(rec.get("category"), "General"),
                mrp=_num(rec.get("mrp"), 0.0),
                basic_price=_num(rec.get("basic_price"), 0.0),
                discount_schemes=_schemes_from_record(rec),
                gst_rate=_num(rec.get("gst_rate"), DEFAULT_GST_RATE) or DEFAULT_GST_RATE,
                batch_date=batch_date,
                min_margin_percent=margin,
            )
        )

    if not created:
        raise ValidationError("The price deck has no rows.")
    for item in created:
        state.add_price_item(item)
    logger.info("Ingested %d price items (batch %s)", len(created), batch_date.date().isoformat())
    return created


def read_price_deck(source: Any) -> list[dict]:
    """Read a CSV price deck (path or file-like) into ingestible records."""
    try:
        df = pd.read_csv(source)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ValidationError(f"Could not read price deck: {e}")

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    missing = REQUIRED_DECK_COLUMNS - set(df.columns)
    if missing:
        raise ValidationError(f"Price deck is missing column(s): {', '.join(sorted(missing))}.")

    for col in ["mrp", "basic_price", "gst_rate", "min_margin_percent"]:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    df = df.dropna(subset=["basic_price"])
    cols = [c for c in DECK_COLUMNS if c in df.columns]
    return df[cols].to_dict(orient="records")


def _check_margin(margin: float, label: str) -> float:
    if margin < 0 or margin >= 100:
        raise ValidationError(f"Minimum margin for {label} must be between 0 and 100 (exclusive).")
    return margin


def set_min_margin(state: AppState, item_id: str, margin_percent: float) -> PriceItem:
    margin = _check_margin(float(margin_percent), item_id)
    item = state.require_price_item(item_id)
    updated = state.replace_price_item(replace(item, min_margin_percent=margin))
    logger.info("Min margin for %s set to %.2f%%", item_id, margin)
    return updated


def latest_for_model(state: AppState, model: str) -> Optional[PriceItem]:
    candidates = [p for p in state.price_items() if p.model == model]
    if not candidates:
        return None
    return max(candidates, key=lambda p: as_utc(p.batch_date))


def brands(state: AppState) -> list[str]:
    return list(dict.fromkeys(p.manufacturer for p in state.price_items()))


def models_for_brand(state: AppState, brand: str) -> list[str]:
    return list(dict.fromkeys(p.model for p in state.price_items() if p.manufacturer == brand))


def price_deck(
    state: AppState,
    *,
    brand: str = "ALL",
    search: str = "",
    sort_key: str = "batch_date",
    descending: bool = True,
) -> list[dict]:
    q = (search or "").strip().lower()
    rows: list[dict] = []
    for p in state.price_items():
        if brand != "ALL" and p.manufacturer != brand:
            continue
        if q and q not in p.model.lower() and q not in p.manufacturer.lower():
            continue
        cb = cost_breakdown(p)
        try:
            msp_value: Optional[float] = msp(p)
        except ValueError:
            msp_value = None
        rows.append(
            {
                "id": p.id,
                "manufacturer": p.manufacturer,
                "model": p.model,
                "category": p.category,
                "mrp": p.mrp,
                "basic_price": p.basic_price,
                "upfront_total": cb.upfront_total,
                "net_basic": cb.net_basic,
                "gst_rate": p.gst_rate,
                "invoice_amount": cb.invoice_amount,
                "backend_total": cb.backend_total,
                "final_nlc": cb.final,
                "min_margin_percent": p.min_margin_percent,
                "msp": msp_value,
                "batch_date": as_utc(p.batch_date),
            }
        )
    return sort_records(rows, sort_key, descending)
