from __future__ import annotations

from datetime import date

from dialedin_etl.db.models import DailyKpi
from dialedin_etl.delta import enrich_with_delta, find_previous_kpis


def test_enrich_without_previous_day():
    kpis = {"total_transfers": 120, "transfers_per_hour": 3.0}
    enriched = enrich_with_delta(kpis, None)
    assert enriched["prev_day_transfers"] is None
    assert enriched["delta_tph"] is None
    assert "prev_day_transfers" not in kpis


def test_enrich_with_previous_day():
    previous = DailyKpi(report_date=date(2025, 1, 31), total_transfers=100, transfers_per_hour=2.5)
    enriched = enrich_with_delta({"total_transfers": 120, "transfers_per_hour": 3.0}, previous)
    assert enriched["prev_day_transfers"] == 100
    assert enriched["prev_day_tph"] == 2.5
    assert enriched["delta_transfers"] == 20
    assert enriched["delta_tph"] == 0.5


def test_find_previous_uses_nearest_earlier_date(session_factory):
    with session_factory() as db:
        for day, transfers in ((date(2025, 1, 28), 80), (date(2025, 1, 30), 90), (date(2025, 2, 3), 150)):
            db.add(DailyKpi(report_date=day, total_transfers=transfers, transfers_per_hour=2.0))
        db.commit()

        previous = find_previous_kpis(db, date(2025, 2, 1))
        assert previous.report_date == date(2025, 1, 30)
        assert previous.total_transfers == 90
        assert find_previous_kpis(db, date(2025, 1, 28)) is None
