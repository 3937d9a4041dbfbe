"""
activity_logger.py
──────────────────
Appends completed bulk actions to activity_log.csv.
"""

import csv
import json
import os
import uuid
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

_HEADERS = [
    "request_id",
    "timestamp",
    "action",
    "product_codes",
    "outcome",
    "detail",
]


class ActivityLogger:
    def __init__(self, log_path: str):
        self.log_path = log_path
        directory = os.path.dirname(log_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(log_path):
            with open(log_path, "w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(_HEADERS)
            logger.info(f"[ActivityLogger] Created log file: {log_path}")

    def log(self, action: str, product_codes: list, outcome: str, detail: str = "") -> str:
        request_id = str(uuid.uuid4())
        row = [
            request_id,
            datetime.now().isoformat(timespec="seconds"),
            action,
            json.dumps(product_codes),
            outcome,
            detail,
        ]
        with open(self.log_path, "a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(row)

        logger.info(f"[ActivityLogger] {action} {outcome} request_id={request_id}")
        return request_id

    def read(self, limit: int = 100) -> list:
        with open(self.log_path, "r", newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        return rows[-limit:]
