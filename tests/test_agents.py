import asyncio
from datetime import date, timedelta

import pytest

from agents.inventory import InventoryAgent, ProductRecord, records_from_frame
from agents.reorder_prediction_agent import (
    AnalysisInProgressError,
    AnalysisState,
    ReorderPredictionAgent,
)
from agents.stock_alert_agent import StockAlertAgent
from services.reorder_service import ReorderService
from services.settings_service import ReplenishmentPolicy

import pandas as pd


TODAY = date(2024, 3, 1)


# --------------------------------------------------
# Inventory records
# --------------------------------------------------

def test_sample_data_loads(sample_records):
    assert len(sample_records) == 6
    mask = next(r for r in sample_records if r.code == "MED-001")
    assert mask.current_stock == 50
    assert mask.safety_stock == 200
    assert mask.last_order_date == date(2024, 1, 10)


def test_negative_stock_is_rejected():
    with pytest.raises(ValueError):
        ProductRecord(code="X", name="x", current_stock=-1, safety_stock=0)


def test_records_from_frame_fills_missing_columns():
    df = pd.DataFrame([{"code": "A", "name": "Alpha", "current_stock": "5"}])
    record = records_from_frame(df)[0]

    assert record.current_stock == 5
    assert record.safety_stock == 0
    assert record.average_daily_usage == 0.0
    assert record.supplier == ""


def test_inventory_agent_update_stock(sample_records):
    agent = InventoryAgent(data_path="unused")
    agent.replace(sample_records)

    agent.update_stock("MED-001", 500)
    assert agent.get("MED-001").current_stock == 500

    with pytest.raises(KeyError):
        agent.get("NOPE")
    with pytest.raises(ValueError):
        agent.update_stock("MED-001", -1)
    assert agent.get("MED-001").current_stock == 500


# --------------------------------------------------
# Stock alerts
# --------------------------------------------------

def test_low_stock_scan_reports_new_alerts_once(reorder_service, sample_records):
    agent = StockAlertAgent(reorder_service)

    first = agent.scan(sample_records)
    assert {a["code"] for a in first["low_stock"]} == {"MED-001", "MED-002", "MED-003", "SUP-010"}
    assert len(first["new_alerts"]) == 4
    assert first["all_clear"] is False

    second = agent.scan(sample_records)
    assert second["new_alerts"] == []
    assert len(second["low_stock"]) == 4


def test_order_proposal(reorder_service, make_record):
    agent = StockAlertAgent(reorder_service)
    proposal = agent.propose_order(make_record(current_stock=50, safety_stock=200, unit_price=1500))

    assert proposal.shortage == 150
    assert proposal.recommended_order == 225
    assert proposal.total_cost == 225 * 1500


def test_dismissed_and_muted_alerts(reorder_service, sample_records):
    agent = StockAlertAgent(reorder_service)
    agent.dismiss("MED-001")
    agent.set_notifications(False)

    result = agent.scan(sample_records)
    assert "MED-001" not in {a["code"] for a in result["low_stock"]}
    assert result["new_alerts"] == []

    agent.set_notifications(True)
    assert agent.scan(sample_records)["new_alerts"] == []


def test_all_clear(reorder_service, make_record):
    agent = StockAlertAgent(reorder_service)
    result = agent.scan([make_record(current_stock=10, safety_stock=10)])
    assert result["all_clear"] is True


# --------------------------------------------------
# Reorder prediction
# --------------------------------------------------

def _agent(policy=None):
    service = ReorderService(policy or ReplenishmentPolicy(analysis_delay_seconds=0))
    return ReorderPredictionAgent(service, clock=lambda: TODAY)


def test_predictions_sorted_and_filtered(sample_records):
    predictions = _agent().predict(sample_records)

    assert [p.code for p in predictions] == ["SUP-010", "MED-001", "MED-003", "MED-002", "SUP-011"]
    assert "SUP-012" not in {p.code for p in predictions}


def test_prediction_fields(sample_records):
    by_code = {p.code: p for p in _agent().predict(sample_records)}

    gauze = by_code["SUP-010"]
    assert gauze.days_until_stockout == -138
    assert gauze.priority == "high"
    assert gauze.recommended_order_quantity == 10240
    assert gauze.predicted_stockout_date == TODAY - timedelta(days=138)
    assert gauze.recommended_order_date == TODAY

    syringe = by_code["SUP-011"]
    assert syringe.days_until_stockout == 20
    assert syringe.priority == "low"
    assert syringe.recommended_order_date == TODAY + timedelta(days=13)
    assert "confidence" not in syringe.to_dict()


def test_analyze_moves_to_done(sample_records):
    agent = _agent()
    assert agent.state == AnalysisState.IDLE

    predictions = asyncio.run(agent.analyze(sample_records))

    assert agent.state == AnalysisState.DONE
    assert len(predictions) == 5
    assert agent.snapshot()["state"] == "done"
    assert agent.last_run_at is not None


def test_cancel_returns_to_idle_and_keeps_previous(sample_records):
    agent = _agent(ReplenishmentPolicy(analysis_delay_seconds=5))

    async def scenario():
        agent.predictions = ["previous"]
        task = agent.start(sample_records)
        await asyncio.sleep(0)
        assert agent.state == AnalysisState.ANALYZING
        assert agent.cancel() is True
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert agent.state == AnalysisState.IDLE
    assert agent.predictions == ["previous"]


def test_second_run_while_analyzing_is_rejected(sample_records):
    agent = _agent(ReplenishmentPolicy(analysis_delay_seconds=5))

    async def scenario():
        task = agent.start(sample_records)
        await asyncio.sleep(0)
        with pytest.raises(AnalysisInProgressError):
            await agent.analyze(sample_records)
        agent.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())


def test_back_to_back_start_keeps_first_run_cancellable(sample_records):
    agent = _agent(ReplenishmentPolicy(analysis_delay_seconds=5))

    async def scenario():
        first = agent.start(sample_records)
        with pytest.raises(AnalysisInProgressError):
            agent.start(sample_records)

        await asyncio.sleep(0)
        assert agent.cancel() is True
        with pytest.raises(asyncio.CancelledError):
            await first
        return first

    first = asyncio.run(scenario())
    assert first.cancelled()
    assert agent.state == AnalysisState.IDLE
    assert agent.predictions == []


def test_cancel_before_first_step_returns_to_idle(sample_records):
    agent = _agent()

    async def scenario():
        task = agent.start(sample_records)
        assert agent.cancel() is True
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert agent.state == AnalysisState.IDLE
    assert agent.predictions == []


def test_run_periodic(sample_records):
    agent = _agent()
    calls = []

    def get_records():
        calls.append(1)
        return sample_records

    runs = asyncio.run(agent.run_periodic(get_records, interval_seconds=0, max_runs=3))

    assert runs == 3
    assert len(calls) == 3
    assert agent.state == AnalysisState.DONE


def test_auto_analysis_interval_validation(sample_records):
    agent = _agent()

    async def scenario():
        with pytest.raises(ValueError):
            agent.start_auto_analysis(lambda: sample_records, 2)
        assert agent.start_auto_analysis(lambda: sample_records, 0) is None
        task = agent.start_auto_analysis(lambda: sample_records, 24)
        await asyncio.sleep(0)
        assert agent.stop_auto_analysis() is True
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert agent.state == AnalysisState.DONE
