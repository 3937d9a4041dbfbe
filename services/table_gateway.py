"""
table_gateway.py
────────────────
Row storage on the hosted backend.

TableGateway          →  interface the entity services depend on
RestTableGateway      →  PostgREST over HTTP (/rest/v1/<table>)
InMemoryTableGateway  →  dict-backed rows for local sessions and tests

Backend calls are never retried. A failed call raises BackendError with
the raw message from the backend.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 10


class BackendError(Exception):
    """Raised when a backend call fails (network or storage error)."""
    pass


class TableGateway(ABC):

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, table: str, row_id: str) -> None:
        raise NotImplementedError


# ──────────────────────────────────────────────────────
# REST (PostgREST)
# ──────────────────────────────────────────────────────

class RestTableGateway(TableGateway):

    def __init__(self, base_url: str, api_key: str, timeout: float = _DEFAULT_TIMEOUT_S, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, **kwargs) -> Any:
        try:
            resp = self.session.request(method, self._url(table), timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.HTTPError as e:
            message = e.response.text if e.response is not None else str(e)
            logger.error(f"[Backend] {method} {table} failed: {message}")
            raise BackendError(message) from e
        except requests.RequestException as e:
            logger.error(f"[Backend] {method} {table} failed: {e}")
            raise BackendError(str(e)) from e

        if not resp.content:
            return None
        return resp.json()

    def select(self, table, filters=None, order=None, descending=False):
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        return self._request("GET", table, params=params) or []

    def insert(self, table, rows):
        return self._request(
            "POST", table, json=rows, headers={"Prefer": "return=representation"}
        ) or []

    def update(self, table, row_id, changes):
        rows = self._request(
            "PATCH", table,
            params={"id": f"eq.{row_id}"},
            json=changes,
            headers={"Prefer": "return=representation"},
        ) or []
        if not rows:
            raise BackendError(f"{table} row {row_id} not found")
        return rows[0]

    def delete(self, table, row_id):
        self._request("DELETE", table, params={"id": f"eq.{row_id}"})


# ──────────────────────────────────────────────────────
# IN-MEMORY
# ──────────────────────────────────────────────────────

class InMemoryTableGateway(TableGateway):

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        for table, rows in (tables or {}).items():
            self.insert(table, rows)

    def select(self, table, filters=None, order=None, descending=False):
        rows = [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order:
            rows.sort(key=lambda r: (r.get(order) is None, r.get(order)), reverse=descending)
        return copy.deepcopy(rows)

    def insert(self, table, rows):
        now = datetime.now().isoformat()
        created = []
        for row in rows:
            stored = {"id": str(uuid.uuid4()), "created_at": now, **row}
            self.tables.setdefault(table, []).append(stored)
            created.append(copy.deepcopy(stored))
        return created

    def update(self, table, row_id, changes):
        for row in self.tables.get(table, []):
            if row.get("id") == row_id:
                row.update(changes)
                row["updated_at"] = datetime.now().isoformat()
                return copy.deepcopy(row)
        raise BackendError(f"{table} row {row_id} not found")

    def delete(self, table, row_id):
        rows = self.tables.get(table, [])
        remaining = [r for r in rows if r.get("id") != row_id]
        if len(remaining) == len(rows):
            raise BackendError(f"{table} row {row_id} not found")
        self.tables[table] = remaining


def build_gateway(config) -> TableGateway:
    """RestTableGateway when BACKEND_URL is configured, in-memory otherwise."""
    base_url = config.get("BACKEND_URL")
    if base_url:
        logger.info(f"[Backend] Using REST backend at {base_url}")
        return RestTableGateway(
            base_url,
            api_key=config.get("BACKEND_API_KEY", ""),
            timeout=float(config.get("BACKEND_TIMEOUT_S", _DEFAULT_TIMEOUT_S)),
        )

    logger.warning("[Backend] BACKEND_URL not set, using in-memory tables.")
    return InMemoryTableGateway()
