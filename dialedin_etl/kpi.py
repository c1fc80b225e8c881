from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from dialedin_etl.parsing import MergedRows, Row
from dialedin_etl.registry import ReportType


THRESHOLDS = {
    "dead_air_ratio_warning": 30.0,
    "dead_air_ratio_critical": 50.0,
    "hung_up_ratio_warning": 10.0,
    "hung_up_ratio_critical": 30.0,
    "min_hours_qualified": 2.0,
    "min_hours_coaching": 4.0,
    "min_connects_anomaly": 50,
    "zero_transfer_min_hours": 4.0,
}

WASTE_DISPOSITIONS = ["Not Interested", "Dead Air", "DNC", "Wrong Number", "Ans. Machine", "Robo"]

_NON_AGENT = re.compile(r"\b(QA|HR)\b", re.IGNORECASE)


class ComputationError(Exception):
    pass


@dataclass
class ETLResult:
    daily_kpis: Dict[str, Any]
    agent_performance: List[Dict[str, Any]] = field(default_factory=list)
    skill_summary: List[Dict[str, Any]] = field(default_factory=list)
    anomalies: List[Dict[str, Any]] = field(default_factory=list)
    raw_data: Dict[str, Any] = field(default_factory=dict)


# Pure function over one day's merged rows.
KpiComputation = Callable[[MergedRows, date], ETLResult]


def _div(n: float, d: float) -> float:
    return 0.0 if d == 0 else n / d


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _std(values: List[float]) -> float:
    if len(values) <= 1:
        return 0.0
    m = _mean(values)
    return math.sqrt(sum((v - m) ** 2 for v in values) / len(values))


def _quantile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        return 0.0
    pos = (len(sorted_values) - 1) * q
    low, high = math.floor(pos), math.ceil(pos)
    if low == high:
        return sorted_values[low]
    return sorted_values[low] + (sorted_values[high] - sorted_values[low]) * (pos - low)


def disposition_key(column: str) -> str:
    key = column.lower().replace(".", "")
    key = re.sub(r"\s+", "_", key)
    return key.replace("-", "_").replace("/", "_")


def _sum_dispositions(rows: List[Row]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for row in rows:
        for column, value in (row.get("dispositions") or {}).items():
            key = disposition_key(column)
            totals[key] = totals.get(key, 0) + value
    return totals


def _disposition_rates(kpis: Dict[str, Any]) -> None:
    disps = kpis["dispositions"]
    connects = kpis["total_connects"]
    dead_air = disps.get("dead_air", 0)
    hung_up = disps.get("hung_up_transfer", 0)
    waste = sum(disps.get(disposition_key(d), 0) for d in WASTE_DISPOSITIONS)
    transfer = disps.get("transfer", 0)
    kpis["dead_air_ratio"] = round(_div(dead_air, connects) * 100, 2)
    kpis["hung_up_ratio"] = round(_div(hung_up, connects) * 100, 2)
    kpis["waste_rate"] = round(_div(waste, connects) * 100, 1)
    kpis["transfer_success_rate"] = round(_div(transfer, transfer + hung_up) * 100, 1)


def compute_daily_kpis(agents: List[Row], production: List[Row]) -> Dict[str, Any]:
    dials = sum(a["dialed"] for a in agents)
    connects = sum(a["connects"] for a in agents)
    contacts = sum(a["contacts"] for a in agents)
    transfers = sum(a["transfers"] for a in agents)
    hours = sum(a["hours_worked"] for a in agents)

    qualified = sorted(
        _div(a["transfers"], a["hours_worked"])
        for a in agents
        if a["hours_worked"] >= THRESHOLDS["min_hours_qualified"]
    )
    distribution = None
    if qualified:
        distribution = {
            "count": len(qualified),
            "p10": round(_quantile(qualified, 0.1), 2),
            "p25": round(_quantile(qualified, 0.25), 2),
            "p50": round(_quantile(qualified, 0.5), 2),
            "p75": round(_quantile(qualified, 0.75), 2),
            "p90": round(_quantile(qualified, 0.9), 2),
            "mean": round(_mean(qualified), 2),
            "std": round(_std(qualified), 2),
        }

    kpis: Dict[str, Any] = {
        "total_agents": len(agents),
        "agents_with_transfers": sum(1 for a in agents if a["transfers"] > 0),
        "total_dials": int(dials),
        "total_connects": int(connects),
        "total_contacts": int(contacts),
        "total_transfers": int(transfers),
        "total_man_hours": round(hours, 1),
        "total_talk_time_min": round(sum(a["talk_time_min"] for a in agents), 1),
        "total_wait_time_min": round(sum(a["wait_time_min"] for a in agents), 1),
        "total_wrap_time_min": round(sum(a["wrap_time_min"] for a in agents), 1),
        "connect_rate": round(_div(connects, dials) * 100, 2),
        "contact_rate": round(_div(contacts, connects) * 100, 2),
        "conversion_rate": round(_div(transfers, contacts) * 100, 2),
        "transfers_per_hour": round(_div(transfers, hours), 2),
        "dials_per_hour": round(_div(dials, hours), 1),
        "dispositions": _sum_dispositions(production),
        "distribution": distribution,
    }
    _disposition_rates(kpis)
    return kpis


def compute_agent_performance(agents: List[Row], production: List[Row]) -> List[Dict[str, Any]]:
    production_by_rep: Dict[str, List[Row]] = {}
    for row in production:
        production_by_rep.setdefault(row["rep"].lower(), []).append(row)

    results: List[Dict[str, Any]] = []
    for a in agents:
        prod_rows = production_by_rep.get(a["rep"].lower(), [])
        dispositions = _sum_dispositions(prod_rows)
        results.append(
            {
                "agent_name": a["rep"],
                "team": a.get("team") or None,
                "skill": prod_rows[0]["skill"] if prod_rows else None,
                "subcampaign": None,
                "dials": int(a["dialed"]),
                "connects": int(a["connects"]),
                "contacts": int(a["contacts"]),
                "transfers": int(a["transfers"]),
                "hours_worked": round(a["hours_worked"], 2),
                "talk_time_min": round(a["talk_time_min"], 2),
                "wait_time_min": round(a["wait_time_min"], 2),
                "wrap_time_min": round(a["wrap_time_min"], 2),
                "logged_in_time_min": round(a["logged_in_time_min"], 2),
                "tph": round(_div(a["transfers"], a["hours_worked"]), 2),
                "connects_per_hour": round(a["connects_per_hour"], 2),
                "connect_rate": round(_div(a["connects"], a["dialed"]) * 100, 2),
                "conversion_rate": round(_div(a["transfers"], a["contacts"]) * 100, 2),
                "dead_air_ratio": round(_div(dispositions.get("dead_air", 0), a["connects"]) * 100, 2),
                "dispositions": dispositions,
                "tph_rank": None,
                "conversion_rank": None,
                "dials_rank": None,
            }
        )

    qualified = [r for r in results if r["hours_worked"] >= THRESHOLDS["min_hours_qualified"]]
    for rank_field, metric in (("tph_rank", "tph"), ("conversion_rank", "conversion_rate"), ("dials_rank", "dials")):
        for idx, row in enumerate(sorted(qualified, key=lambda r: r[metric], reverse=True)):
            row[rank_field] = idx + 1
    return results


def compute_skill_summary(production: List[Row]) -> List[Dict[str, Any]]:
    skills: Dict[str, Dict[str, Any]] = {}
    for row in production:
        skill = row.get("skill") or "Unknown"
        s = skills.setdefault(
            skill,
            {"agents": set(), "connects": 0, "contacts": 0, "transfers": 0, "man_hours": 0.0, "rows": []},
        )
        s["agents"].add(row["rep"])
        s["connects"] += row["connects"]
        s["contacts"] += row["contacts"]
        s["transfers"] += row["transfers"]
        s["man_hours"] += row["man_hours"]
        s["rows"].append(row)

    summary = [
        {
            "skill": skill,
            "subcampaign": None,
            "agent_count": len(s["agents"]),
            "total_dials": 0,
            "total_connects": int(s["connects"]),
            "total_contacts": int(s["contacts"]),
            "total_transfers": int(s["transfers"]),
            "total_man_hours": round(s["man_hours"], 1),
            "avg_tph": round(_div(s["transfers"], s["man_hours"]), 2),
            # ProductionReport carries no dial counts.
            "connect_rate": None,
            "conversion_rate": round(_div(s["transfers"], s["contacts"] or 1) * 100, 2),
            "dispositions": _sum_dispositions(s["rows"]),
        }
        for skill, s in skills.items()
        if skill not in ("Unknown", "")
    ]
    return sorted(summary, key=lambda r: r["total_transfers"], reverse=True)


def detect_anomalies(agents: List[Row], production: List[Row]) -> List[Dict[str, Any]]:
    anomalies: List[Dict[str, Any]] = []

    for a in agents:
        if (
            a["hours_worked"] >= THRESHOLDS["zero_transfer_min_hours"]
            and a["transfers"] == 0
            and not _NON_AGENT.search(a["rep"])
        ):
            anomalies.append(
                _anomaly(
                    "zero_transfers",
                    "warning",
                    a["rep"],
                    None,
                    "hours_worked",
                    a["hours_worked"],
                    THRESHOLDS["zero_transfer_min_hours"],
                    {"dials": a["dialed"], "contacts": a["contacts"]},
                )
            )

    busy = [p for p in production if p["connects"] >= THRESHOLDS["min_connects_anomaly"]]
    for anomaly_type, column, metric, warn_key, crit_key in (
        ("high_dead_air", "Dead Air", "dead_air_ratio", "dead_air_ratio_warning", "dead_air_ratio_critical"),
        ("high_hung_up", "Hung Up Transfer", "hung_up_ratio", "hung_up_ratio_warning", "hung_up_ratio_critical"),
    ):
        flagged = []
        for p in busy:
            count = (p.get("dispositions") or {}).get(column, 0)
            ratio = _div(count, p["connects"]) * 100
            if count > 0 and ratio >= THRESHOLDS[warn_key]:
                flagged.append((ratio, count, p))
        flagged.sort(key=lambda item: item[0], reverse=True)
        for ratio, count, p in flagged[:10]:
            severity = "critical" if ratio >= THRESHOLDS[crit_key] else "warning"
            anomalies.append(
                _anomaly(
                    anomaly_type,
                    severity,
                    p["rep"],
                    p.get("skill"),
                    metric,
                    round(ratio, 1),
                    THRESHOLDS[warn_key],
                    {"count": count, "connects": p["connects"]},
                )
            )

    coaching = [a for a in agents if a["hours_worked"] >= THRESHOLDS["min_hours_coaching"]]
    if len(coaching) > 5:
        tph_values = [_div(a["transfers"], a["hours_worked"]) for a in coaching]
        m, s = _mean(tph_values), _std(tph_values)
        if s > 0:
            for a, tph in zip(coaching, tph_values):
                z_score = (tph - m) / s
                if z_score < -2:
                    anomalies.append(
                        _anomaly(
                            "low_tph",
                            "critical" if z_score < -3 else "warning",
                            a["rep"],
                            None,
                            "tph",
                            round(tph, 2),
                            round(m - 2 * s, 2),
                            {"z_score": round(z_score, 2), "mean_tph": round(m, 2), "hours": a["hours_worked"]},
                        )
                    )
    return anomalies


def _anomaly(
    anomaly_type: str,
    severity: str,
    agent_name: Optional[str],
    skill: Optional[str],
    metric_name: str,
    metric_value: float,
    threshold_value: float,
    details: Dict[str, Any],
) -> Dict[str, Any]:
    return {
        "anomaly_type": anomaly_type,
        "severity": severity,
        "agent_name": agent_name,
        "skill": skill,
        "metric_name": metric_name,
        "metric_value": metric_value,
        "threshold_value": threshold_value,
        "details": details,
    }


def _subcampaign_kpis(subcampaign: List[Row]) -> Dict[str, Any]:
    dials = sum(r["dialed"] for r in subcampaign)
    connects = sum(r["connects"] for r in subcampaign)
    contacts = sum(r["contacts"] for r in subcampaign)
    transfers = sum(r["transfers"] for r in subcampaign)
    hours = sum(r["man_hours"] for r in subcampaign)
    return {
        "total_agents": 0,
        "agents_with_transfers": 0,
        "total_dials": int(dials),
        "total_connects": int(connects),
        "total_contacts": int(contacts),
        "total_transfers": int(transfers),
        "total_man_hours": round(hours, 1),
        "total_talk_time_min": 0.0,
        "total_wait_time_min": 0.0,
        "total_wrap_time_min": 0.0,
        "connect_rate": round(_div(connects, dials) * 100, 2),
        "contact_rate": round(_div(contacts, connects) * 100, 2),
        "conversion_rate": round(_div(transfers, contacts) * 100, 2),
        "transfers_per_hour": round(_div(transfers, hours), 2),
        "dials_per_hour": round(_div(dials, hours), 1),
        "dead_air_ratio": 0.0,
        "hung_up_ratio": 0.0,
        "waste_rate": 0.0,
        "transfer_success_rate": 0.0,
        "dispositions": {},
        "distribution": None,
    }


def _raw_data(merged: MergedRows, agent_performance: List[Dict[str, Any]]) -> Dict[str, Any]:
    raw: Dict[str, Any] = {}

    def _agent_card(a: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": a["agent_name"],
            "tph": a["tph"],
            "transfers": a["transfers"],
            "hours": a["hours_worked"],
            "skill": a["skill"],
            "connects": a["connects"],
            "conversion_rate": a["conversion_rate"],
        }

    if agent_performance:
        top = sorted(
            (a for a in agent_performance if a["hours_worked"] >= THRESHOLDS["min_hours_qualified"]),
            key=lambda a: a["tph"],
            reverse=True,
        )
        bottom = sorted(
            (
                a
                for a in agent_performance
                if a["hours_worked"] >= THRESHOLDS["min_hours_coaching"] and not _NON_AGENT.search(a["agent_name"])
            ),
            key=lambda a: a["tph"],
        )
        raw["top_agents"] = [_agent_card(a) for a in top[:15]]
        raw["bottom_agents"] = [_agent_card(a) for a in bottom[:15]]

    campaigns = merged.get(ReportType.CAMPAIGN_SUMMARY)
    if campaigns:
        dialing = [c for c in campaigns if c["dialed"] > 0]
        raw["campaign_aggregate"] = {
            "total_campaigns": len(campaigns),
            "total_system_connects": int(sum(c["connects"] for c in campaigns)),
            "total_system_dials": int(sum(c["dialed"] for c in campaigns)),
            "total_hangups": int(sum(c["hangups"] for c in campaigns)),
            "total_leads": int(sum(c["total_leads"] for c in campaigns)),
            "total_transfers": int(sum(c["transfers"] for c in campaigns)),
            "total_man_hours": round(sum(c["man_hours"] for c in campaigns), 1),
            "avg_drop_rate": round(_mean([c["drop_rate_pct"] for c in campaigns]), 2),
            "avg_connect_rate": round(_mean([c["connect_pct"] for c in dialing]), 2),
        }
        raw["campaigns"] = sorted(
            (c for c in campaigns if c["connects"] > 0), key=lambda c: c["connects"], reverse=True
        )

    hourly = [h for h in merged.get(ReportType.CALLS_PER_HOUR) if h["hour"] != "TOTAL" and h["total_calls"] > 0]
    if hourly:
        raw["hourly"] = hourly

    call_log = [c for c in merged.get(ReportType.CAMPAIGN_CALL_LOG) if c["calls"] > 0]
    if call_log:
        raw["call_log"] = sorted(call_log, key=lambda c: c["calls"], reverse=True)

    sources = {t.value: len(merged.get(t)) for t in ReportType}
    sources["total_source_rows"] = merged.total_rows
    raw["report_sources"] = sources
    return raw


def process_day(merged: MergedRows, report_date: date) -> ETLResult:
    """Default KPI computation for one day's merged rows.

    AgentSummary (every logged-in agent) is preferred over
    AgentSummaryCampaign (active agents only) when both are present.
    """
    agents = merged.get(ReportType.AGENT_SUMMARY) or merged.get(ReportType.AGENT_SUMMARY_CAMPAIGN)
    production = merged.get(ReportType.PRODUCTION_REPORT)
    subcampaign = merged.get(ReportType.SUBCAMPAIGN_SUMMARY)

    if not agents and not production and not subcampaign and not merged.get(ReportType.CAMPAIGN_SUMMARY):
        raise ComputationError(f"No parseable report data found for {report_date.isoformat()}")

    agent_performance: List[Dict[str, Any]] = []
    anomalies: List[Dict[str, Any]] = []
    if agents:
        daily = compute_daily_kpis(agents, production)
        agent_performance = compute_agent_performance(agents, production)
        anomalies = detect_anomalies(agents, production)
        shift = merged.get(ReportType.SHIFT_REPORT)
        if shift:
            shift_totals: Dict[str, float] = {}
            for row in shift:
                if row["calls"] > 0 and row["call_status"]:
                    key = disposition_key(row["call_status"])
                    shift_totals[key] = shift_totals.get(key, 0) + row["calls"]
            # ShiftReport only fills keys production did not report.
            for key, value in shift_totals.items():
                daily["dispositions"].setdefault(key, value)
            if daily["total_connects"] > 0:
                _disposition_rates(daily)
    else:
        daily = _subcampaign_kpis(subcampaign)

    daily.update(prev_day_transfers=None, prev_day_tph=None, delta_transfers=None, delta_tph=None)
    return ETLResult(
        daily_kpis=daily,
        agent_performance=agent_performance,
        skill_summary=compute_skill_summary(production) if production else [],
        anomalies=anomalies,
        raw_data=_raw_data(merged, agent_performance),
    )
