"""
AI insights: prompt building, the LLM call, and the local report history.

The model runs behind an Ollama-compatible HTTP API. The call is an explicit
async task that can be cancelled or time out; it is never retried.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import random
import string
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Optional

import httpx

from tradedesk.config import Settings
from tradedesk.errors import DomainError, ExternalCallError
from tradedesk.models import AIReport, InventoryStatus, RetailerProfile, TaskResult, UNKNOWN
from tradedesk.services.costing import final_nlc, msp
from tradedesk.store import AppState
from tradedesk.utils import age_in_days, as_utc, utcnow

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a procurement analyst for a consumer electronics distributor. "
    "You are given the current price deck (net landing cost and minimum selling price), "
    "stock on hand with ageing, and recent sales. Recommend what to BUY and what "
    "NOT to buy next, flag slow-moving stock and credit risk. "
    "Use ### headings, one bullet per recommendation, and follow each bullet "
    "with a line starting 'Reasoning:'."
)


# -------------------------
# Health check
# -------------------------

def check_backend(base_url: Optional[str], client: Optional[httpx.Client] = None) -> bool:
    """GET <base>/ and report whether anything answered. The body is not inspected."""
    base = str(base_url or "").strip().rstrip("/")
    if not base:
        logger.error("Backend health check skipped: no API base URL configured")
        return False

    own_client = client is None
    client = client or httpx.Client(timeout=5.0)
    try:
        resp = client.get(f"{base}/")
        logger.info("Backend health check %s -> %s", base, resp.status_code)
        return resp.is_success
    except httpx.HTTPError as e:
        logger.error("Backend health check failed for %s: %s", base, e)
        return False
    finally:
        if own_client:
            client.close()


# -------------------------
# Prompt
# -------------------------

def _scoped(state: AppState, retailer: Optional[RetailerProfile]):
    units = [u for u in state.inventory() if retailer is None or u.retailer_id == retailer.id]
    sales = [s for s in state.sales() if retailer is None or s.retailer_id == retailer.id]
    return units, sales


def build_insight_prompt(
    state: AppState,
    retailer: Optional[RetailerProfile] = None,
    *,
    now: Optional[datetime] = None,
) -> str:
    now = now or utcnow()
    units, sales = _scoped(state, retailer)

    lines = []
    if retailer is not None:
        lines.append(
            f"Store: {retailer.name} ({retailer.area}, {retailer.city}). "
            f"Credit limit {retailer.credit_limit:,.0f}, used {retailer.used_credit:,.0f}."
        )
    else:
        lines.append("Scope: whole network (hub and all stores).")

    lines.append("\nPrice deck (brand | model | batch | final NLC | MSP):")
    for p in state.price_items():
        try:
            msp_text = f"{msp(p):,.0f}"
        except DomainError:
            msp_text = "n/a"
        lines.append(f"- {p.manufacturer} | {p.model} | {p.batch_date:%b %Y} | {final_nlc(p):,.0f} | {msp_text}")

    stock = Counter()
    oldest: dict[str, int] = {}
    for u in units:
        if u.status != InventoryStatus.IN_STOCK:
            continue
        p = state.price_item(u.price_item_id)
        model = p.model if p else UNKNOWN
        stock[model] += 1
        oldest[model] = max(oldest.get(model, 0), age_in_days(u.date_received, now))
    lines.append("\nStock on hand (model | units | oldest unit age in days):")
    for model, qty in stock.most_common():
        lines.append(f"- {model} | {qty} | {oldest[model]}")
    if not stock:
        lines.append("- none")

    sold = Counter()
    revenue: dict[str, float] = {}
    for s in sales:
        for item in s.items:
            u = state.unit(item.inventory_id)
            p = state.price_item(u.price_item_id) if u else None
            model = p.model if p else UNKNOWN
            sold[model] += 1
            revenue[model] = revenue.get(model, 0.0) + item.net_price
    lines.append("\nSales to date (model | units sold | revenue):")
    for model, qty in sold.most_common():
        lines.append(f"- {model} | {qty} | {revenue[model]:,.0f}")
    if not sold:
        lines.append("- none")

    return "\n".join(lines)


# -------------------------
# LLM client
# -------------------------

class InsightsClient:
    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "InsightsClient":
        return cls(settings.ai_base_url, settings.ai_model, timeout=settings.ai_timeout_s)

    async def generate(self, prompt: str, system: Optional[str] = None) -> str:
        """Non-streaming generation; waits for the full response."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "system": system or SYSTEM_PROMPT,
            "stream": False,
            "options": {"temperature": 0.3, "num_predict": 2048},
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(f"{self.base_url}/api/generate", json=payload)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error("AI service returned %s", e.response.status_code)
                raise ExternalCallError(f"AI service returned HTTP {e.response.status_code}.") from e
            except httpx.HTTPError as e:
                logger.error("AI service unreachable at %s: %s", self.base_url, e)
                raise ExternalCallError(f"Could not reach the AI service at {self.base_url}.") from e

        try:
            content = str(resp.json().get("response", "")).strip()
        except ValueError as e:
            raise ExternalCallError("AI service sent a response that is not JSON.") from e
        if not content:
            raise ExternalCallError("AI service returned an empty report.")
        return content


async def run_cancellable(
    coro: Awaitable,
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
) -> TaskResult:
    """
    Await `coro` until it finishes, `cancel_event` is set, or `timeout` passes.
    Failures come back as a TaskResult; nothing is retried.
    """
    task = asyncio.ensure_future(coro)
    cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
    waiters = {task} if cancel_waiter is None else {task, cancel_waiter}
    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        try:
            return TaskResult(ok=True, value=task.result())
        except ExternalCallError as e:
            return TaskResult(ok=False, error=str(e))
        except Exception as e:
            logger.exception("Background task failed")
            return TaskResult(ok=False, error=str(e))

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    if cancel_waiter is not None and cancel_waiter in done:
        logger.info("Background task cancelled")
        return TaskResult(ok=False, cancelled=True, error="Cancelled.")
    logger.warning("Background task timed out after %ss", timeout)
    return TaskResult(ok=False, error=f"Timed out after {timeout:g}s.")


# -------------------------
# Report history
# -------------------------

class ReportHistory:
    """Generated reports as a JSON array on disk, newest first, capped at `limit`."""

    def __init__(self, path: Path, limit: int = 15):
        self.path = Path(path)
        self.limit = int(limit)

    def load(self) -> list[AIReport]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [
                AIReport(id=r["id"], timestamp=r["timestamp"], content=r["content"], meta=dict(r.get("meta") or {}))
                for r in raw
            ]
        except (OSError, ValueError, TypeError, KeyError):
            logger.warning("Report history at %s is unreadable; starting empty", self.path)
            return []

    def save(self, reports: list[AIReport]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [{"id": r.id, "timestamp": r.timestamp, "content": r.content, "meta": r.meta} for r in reports]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def add(self, report: AIReport) -> list[AIReport]:
        reports = [report, *self.load()][: self.limit]
        self.save(reports)
        return reports

    def get(self, report_id: str) -> Optional[AIReport]:
        return next((r for r in self.load() if r.id == report_id), None)

    def new_id(self, rng: Optional[random.Random] = None) -> str:
        rng = rng or random.Random()
        taken = {r.id for r in self.load()}
        while True:
            candidate = "REP-" + "".join(rng.choices(string.ascii_uppercase + string.digits, k=5))
            if candidate not in taken:
                return candidate


async def generate_report(
    state: AppState,
    client: InsightsClient,
    history: ReportHistory,
    retailer: Optional[RetailerProfile] = None,
    *,
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> TaskResult:
    """Ask the model for a report; on success the report is stored and returned as the value."""
    prompt = build_insight_prompt(state, retailer, now=now)
    result = await run_cancellable(client.generate(prompt), cancel_event, timeout)
    if not result.ok:
        logger.warning("AI report not generated: %s", result.error)
        return result

    units, sales = _scoped(state, retailer)
    report = AIReport(
        id=history.new_id(),
        timestamp=as_utc(now or utcnow()).isoformat(),
        content=result.value,
        meta={"stock_count": len(units), "revenue": sum(s.total_amount for s in sales)},
    )
    history.add(report)
    logger.info("AI report %s stored", report.id)
    return TaskResult(ok=True, value=report)
