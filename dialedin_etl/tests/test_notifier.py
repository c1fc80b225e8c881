from __future__ import annotations

import asyncio
import json
from datetime import date

import httpx

from conftest import agent_rows, load_fixture

from dialedin_etl.kpi import process_day
from dialedin_etl.parsing import MergedRows, ParsedReport
from dialedin_etl.registry import ReportType
from dialedin_etl.services import notifier as notifier_module
from dialedin_etl.services.notifier import SlackNotifier


REPORT_DATE = date(2025, 2, 1)


def _result():
    merged = MergedRows()
    merged.add(ParsedReport(ReportType.AGENT_SUMMARY, agent_rows(40)))
    merged.add(ParsedReport(ReportType.CAMPAIGN_SUMMARY, load_fixture("campaign_summary")))
    return process_day(merged, REPORT_DATE)


def test_render_partial_message():
    text = SlackNotifier(token="x", channel_id="c").render(REPORT_DATE, _result(), is_partial=True)
    assert "Agent Summary processed" in text
    assert "All 12 reports received and processed" not in text
    assert "Feb 1, 2025" in text
    assert "40 agents" in text
    assert "*Campaigns:*" not in text


def test_render_complete_message():
    text = SlackNotifier(token="x", channel_id="c").render(REPORT_DATE, _result(), is_partial=False)
    assert "All 12 reports received and processed" in text
    assert "Agent Summary processed" not in text
    assert "Complete" in text
    assert "4,000 sys dials" in text


def test_notify_disabled_without_credentials():
    notifier = SlackNotifier(token="", channel_id="")
    assert not notifier.enabled
    asyncio.run(notifier.notify(REPORT_DATE, _result(), is_partial=True))


def _patch_client(monkeypatch, handler):
    def fake_client(token):
        return httpx.AsyncClient(
            base_url="https://slack.test/api",
            transport=httpx.MockTransport(handler),
            headers={"Authorization": f"Bearer {token}"},
        )

    monkeypatch.setattr(notifier_module, "get_slack_client", fake_client)


def test_notify_posts_to_channel(monkeypatch):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append((request.url.path, request.headers["Authorization"], json.loads(request.content)))
        return httpx.Response(200, json={"ok": True})

    _patch_client(monkeypatch, handler)
    asyncio.run(SlackNotifier(token="xoxb-1", channel_id="C123").notify(REPORT_DATE, _result(), is_partial=False))

    assert len(sent) == 1
    path, auth, body = sent[0]
    assert path.endswith("/chat.postMessage")
    assert auth == "Bearer xoxb-1"
    assert body["channel"] == "C123"
    assert "All 12 reports received and processed" in body["text"]


def test_notify_swallows_transport_errors(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"ok": False})

    _patch_client(monkeypatch, handler)
    asyncio.run(SlackNotifier(token="xoxb-1", channel_id="C123").notify(REPORT_DATE, _result(), is_partial=True))
