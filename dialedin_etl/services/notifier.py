from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader

from dialedin_etl.config import settings
from dialedin_etl.kpi import ETLResult
from dialedin_etl.services.http import get_slack_client


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


class SlackNotifier:
    def __init__(self, token: Optional[str] = None, channel_id: Optional[str] = None) -> None:
        self.token = token if token is not None else settings.slack_bot_token
        self.channel_id = channel_id if channel_id is not None else settings.slack_channel_id
        self.env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=False)

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.channel_id)

    def render(self, report_date: date, result: ETLResult, is_partial: bool) -> str:
        template = self.env.get_template("daily_summary.txt.j2")
        context: Dict[str, Any] = {
            "is_partial": is_partial,
            "date_label": report_date.strftime("%b %d, %Y").replace(" 0", " "),
            "kpis": result.daily_kpis,
            "campaigns": result.raw_data.get("campaign_aggregate") or {},
            "sources": result.raw_data.get("report_sources") or {},
            "sections": len(result.raw_data),
            "dashboard_url": f"{settings.app_url.rstrip('/')}/executive/dialedin",
        }
        return template.render(**context).strip()

    async def notify(self, report_date: date, result: ETLResult, is_partial: bool) -> None:
        if not self.enabled:
            return
        text = self.render(report_date, result, is_partial)
        try:
            async with get_slack_client(self.token) as client:
                resp = await client.post("/chat.postMessage", json={"channel": self.channel_id, "text": text})
                resp.raise_for_status()
                body = resp.json()
                if not body.get("ok"):
                    logger.error(
                        "slack notification rejected",
                        extra={"report_date": report_date.isoformat(), "error": body.get("error")},
                    )
        except Exception:
            logger.exception("slack notification failed", extra={"report_date": report_date.isoformat()})
