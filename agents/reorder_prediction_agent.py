"""
reorder_prediction_agent.py — Reorder prediction run

Architecture:
    predict()        →  synchronous projection over product records
    analyze()        →  awaitable run wrapping predict() (IDLE → ANALYZING → DONE)
    start() / cancel()  →  run as a cancellable asyncio task
    run_periodic()   →  optional auto-analysis loop

Design Rules:
    - Projection is deterministic; no confidence score is produced
    - A cancelled run returns to IDLE and keeps the previous predictions
    - Only one run may be ANALYZING at a time
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from agents.inventory import ProductRecord
from services.reorder_service import ReorderService, COVERAGE

logger = logging.getLogger("ERP.ReorderPrediction")


class AnalysisInProgressError(RuntimeError):
    """Raised when a run is requested while another is analyzing."""
    pass


class AnalysisState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    DONE = "done"


@dataclass
class Prediction:
    code: str
    name: str
    current_stock: int
    days_until_stockout: int
    predicted_stockout_date: date
    recommended_order_quantity: int
    recommended_order_date: date
    priority: str

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.__dict__)
        payload["predicted_stockout_date"] = self.predicted_stockout_date.isoformat()
        payload["recommended_order_date"] = self.recommended_order_date.isoformat()
        return payload


class ReorderPredictionAgent:

    # 0 = manual
    AUTO_INTERVAL_HOURS = (0, 1, 3, 6, 24)

    def __init__(self, reorder_service: ReorderService, clock: Callable[[], date] = date.today):
        self.reorder_service = reorder_service
        self.clock = clock
        self.state = AnalysisState.IDLE
        self.predictions: List[Prediction] = []
        self.last_run_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None
        self._auto_task: Optional[asyncio.Task] = None

    @property
    def policy(self):
        return self.reorder_service.policy

    # ──────────────────────────────────────────────────
    # PROJECTION
    # ──────────────────────────────────────────────────

    def predict(self, records: List[ProductRecord], today: Optional[date] = None) -> List[Prediction]:
        today = today or self.clock()
        results = []
        for record in records:
            days = self.reorder_service.calculate_days_until_stockout(record)
            if days >= self.policy.prediction_horizon_days:
                continue
            results.append(Prediction(
                code=record.code,
                name=record.name,
                current_stock=record.current_stock,
                days_until_stockout=days,
                predicted_stockout_date=today + timedelta(days=days),
                recommended_order_quantity=self.reorder_service.calculate_order_quantity(record, COVERAGE),
                recommended_order_date=today + timedelta(days=max(0, days - self.policy.order_lead_days)),
                priority=self.reorder_service.classify_priority(days),
            ))

        results.sort(key=lambda p: p.days_until_stockout)
        return results

    # ──────────────────────────────────────────────────
    # ASYNC RUN
    # ──────────────────────────────────────────────────

    async def analyze(self, records: List[ProductRecord]) -> List[Prediction]:
        if self.state == AnalysisState.ANALYZING:
            raise AnalysisInProgressError("Reorder analysis is already running.")

        self.state = AnalysisState.ANALYZING
        logger.info(f"Reorder analysis started for {len(records)} products")
        try:
            if self.policy.analysis_delay_seconds > 0:
                await asyncio.sleep(self.policy.analysis_delay_seconds)
            predictions = self.predict(records)
        except asyncio.CancelledError:
            self.state = AnalysisState.IDLE
            logger.info("Reorder analysis cancelled")
            raise
        except Exception:
            self.state = AnalysisState.IDLE
            raise

        self.predictions = predictions
        self.last_run_at = datetime.now()
        self.state = AnalysisState.DONE
        logger.info(f"Reorder analysis complete: {len(predictions)} products need attention")
        return predictions

    def start(self, records: List[ProductRecord]) -> asyncio.Task:
        """Schedule analyze() on the running loop and return its task."""
        if self.state == AnalysisState.ANALYZING or (self._task is not None and not self._task.done()):
            raise AnalysisInProgressError("Reorder analysis is already running.")
        self._task = asyncio.get_running_loop().create_task(self.analyze(records))
        return self._task

    def cancel(self) -> bool:
        if self._task is None or self._task.done():
            return False
        cancelled = self._task.cancel()
        # a task cancelled before its first step never reaches analyze()
        self.state = AnalysisState.IDLE
        return cancelled

    # ──────────────────────────────────────────────────
    # AUTO-ANALYSIS
    # ──────────────────────────────────────────────────

    async def run_periodic(
        self,
        get_records: Callable[[], List[ProductRecord]],
        interval_seconds: float,
        max_runs: Optional[int] = None,
    ) -> int:
        runs = 0
        while max_runs is None or runs < max_runs:
            try:
                await self.analyze(get_records())
            except AnalysisInProgressError:
                logger.info("Skipping scheduled analysis, previous run still active")
            runs += 1
            if max_runs is not None and runs >= max_runs:
                break
            await asyncio.sleep(interval_seconds)
        return runs

    def start_auto_analysis(
        self,
        get_records: Callable[[], List[ProductRecord]],
        interval_hours: int,
    ) -> Optional[asyncio.Task]:
        if interval_hours not in self.AUTO_INTERVAL_HOURS:
            raise ValueError(f"interval_hours must be one of {self.AUTO_INTERVAL_HOURS}")

        self.stop_auto_analysis()
        if interval_hours == 0:
            return None

        logger.info(f"Auto analysis every {interval_hours}h")
        self._auto_task = asyncio.get_running_loop().create_task(
            self.run_periodic(get_records, interval_hours * 3600)
        )
        return self._auto_task

    def stop_auto_analysis(self) -> bool:
        if self._auto_task is None or self._auto_task.done():
            return False
        return self._auto_task.cancel()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "predictions": [p.to_dict() for p in self.predictions],
        }
