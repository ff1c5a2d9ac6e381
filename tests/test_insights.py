import asyncio
import json
import random

import httpx
import pytest

from tradedesk.errors import ExternalCallError
from tradedesk.models import AIReport
from tradedesk.services.insights import (
    InsightsClient,
    ReportHistory,
    build_insight_prompt,
    check_backend,
    generate_report,
    run_cancellable,
)


def _client(handler):
    return InsightsClient("http://ai.local/", "test-model", transport=httpx.MockTransport(handler))


def _report(i):
    return AIReport(id=f"REP-{i:05d}", timestamp="2026-10-19T12:00:00+00:00", content=f"report {i}")


def test_prompt_covers_deck_stock_and_sales(state, now):
    prompt = build_insight_prompt(state, state.retailer("r1"), now=now)
    assert "Ravi Corporation" in prompt
    assert "650L Side-by-Side Ref" in prompt
    assert "Bravia 55\" 4K OLED | 2 | 40" in prompt

    network = build_insight_prompt(state, now=now)
    assert network.startswith("Scope: whole network")


def test_generate_posts_non_streaming_request():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "  ### Buy\n- LG  "})

    text = asyncio.run(_client(handler).generate("prompt"))
    assert text == "### Buy\n- LG"
    assert seen["url"] == "http://ai.local/api/generate"
    assert seen["body"]["stream"] is False
    assert seen["body"]["model"] == "test-model"


@pytest.mark.parametrize(
    "response,message",
    [
        (httpx.Response(503), "HTTP 503"),
        (httpx.Response(200, json={"response": "  "}), "empty report"),
        (httpx.Response(200, text="not json"), "not JSON"),
    ],
)
def test_generate_failures(response, message):
    with pytest.raises(ExternalCallError, match=message):
        asyncio.run(_client(lambda request: response).generate("prompt"))


def test_generate_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ExternalCallError, match="Could not reach"):
        asyncio.run(_client(handler).generate("prompt"))


def test_run_cancellable_success_and_failure():
    async def ok():
        return 42

    async def boom():
        raise ExternalCallError("AI service returned HTTP 500.")

    assert asyncio.run(run_cancellable(ok())).value == 42
    failed = asyncio.run(run_cancellable(boom()))
    assert not failed.ok and failed.error == "AI service returned HTTP 500."


def test_run_cancellable_timeout():
    result = asyncio.run(run_cancellable(asyncio.sleep(10), timeout=0.01))
    assert not result.ok and not result.cancelled
    assert result.error == "Timed out after 0.01s."


def test_run_cancellable_cancel():
    async def scenario():
        event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, event.set)
        return await run_cancellable(asyncio.sleep(10), event)

    result = asyncio.run(scenario())
    assert result.cancelled and result.error == "Cancelled."


def test_history_is_newest_first_and_capped(tmp_path):
    history = ReportHistory(tmp_path / "history.json", limit=15)
    for i in range(20):
        history.add(_report(i))

    reports = history.load()
    assert len(reports) == 15
    assert reports[0].id == "REP-00019"
    assert history.get("REP-00005").content == "report 5"
    assert history.get("REP-00004") is None


def test_corrupt_history_starts_empty(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{oops", encoding="utf-8")
    assert ReportHistory(path).load() == []


def test_new_id_format(tmp_path):
    new_id = ReportHistory(tmp_path / "h.json").new_id(random.Random(3))
    assert new_id.startswith("REP-") and len(new_id) == 9


def test_generate_report_stores_history(state, tmp_path, now):
    history = ReportHistory(tmp_path / "h.json")
    client = _client(lambda request: httpx.Response(200, json={"response": "### Buy LG"}))

    result = asyncio.run(generate_report(state, client, history, state.retailer("r1"), now=now))

    assert result.ok
    assert result.value.content == "### Buy LG"
    assert result.value.meta == {"stock_count": 20, "revenue": pytest.approx(1072380)}
    assert history.load()[0].id == result.value.id


def test_generate_report_failure_keeps_history(state, tmp_path, now):
    history = ReportHistory(tmp_path / "h.json")
    client = _client(lambda request: httpx.Response(500))
    result = asyncio.run(generate_report(state, client, history, now=now))
    assert not result.ok and "HTTP 500" in result.error
    assert history.load() == []


def test_check_backend():
    assert check_backend("") is False

    ok = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="up")))
    assert check_backend("http://api.local/", ok) is True

    down = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(502)))
    assert check_backend("http://api.local", down) is False

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    assert check_backend("http://api.local", httpx.Client(transport=httpx.MockTransport(refuse))) is False
