from __future__ import annotations

import httpx


SLACK_API_BASE = "https://slack.com/api"


def get_slack_client(token: str) -> httpx.AsyncClient:
    timeout = httpx.Timeout(connect=5.0, read=10.0, write=5.0, pool=5.0)
    return httpx.AsyncClient(
        base_url=SLACK_API_BASE,
        timeout=timeout,
        headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json; charset=utf-8"},
    )
