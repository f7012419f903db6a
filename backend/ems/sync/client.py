from __future__ import annotations
"""HTTP client used by offline-capable callers to push reports to the API."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ems.errors import PersistenceError, ValidationError
from ems.services.records import Report

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)
RETRYABLE_STATUS = {408, 425, 429}


class HttpClient:
    """Thin wrapper around httpx; pass ``transport`` to mock it in tests."""

    def __init__(self, base_url: str, token: Optional[str] = None, transport: Optional[httpx.BaseTransport] = None,
                 timeout: httpx.Timeout = DEFAULT_TIMEOUT) -> None:
        headers = {"User-Agent": "ems-sync/0.1"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(base_url=base_url, timeout=timeout, headers=headers, transport=transport)

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        r = self._client.get(path, params=params)
        r.raise_for_status()
        return r.json()

    def put_json(self, path: str, payload: Dict[str, Any]) -> Any:
        r = self._client.put(path, json=payload)
        r.raise_for_status()
        return r.json()

    def close(self) -> None:
        self._client.close()


def _translate(exc: httpx.HTTPError, what: str):
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status >= 500 or status in RETRYABLE_STATUS:
            return PersistenceError(f'{what}: server returned {status}')
        try:
            detail = exc.response.json().get('error', {}).get('detail')
        except (ValueError, AttributeError):
            detail = None
        return ValidationError(f'{what}: rejected with {status}' + (f' ({detail})' if detail else ''))
    return PersistenceError(f'{what}: {type(exc).__name__}')


class ReportSyncClient:
    def __init__(self, http: HttpClient):
        self.http = http

    def save_report(self, report: Report) -> Report:
        """Idempotent upsert; raises PersistenceError when the save may succeed later."""
        try:
            data = self.http.put_json(f"/reports/{report.id}", report.to_dict())
        except httpx.HTTPError as exc:
            raise _translate(exc, f'save of report {report.id} failed')
        return Report.from_dict(data)

    def fetch_reports(self, **filters: Any) -> List[Report]:
        params = {"limit": 200, **filters}
        try:
            payload = self.http.get_json("/reports", params=params)
        except httpx.HTTPError as exc:
            raise _translate(exc, 'fetching reports failed')
        return [Report.from_dict(r) for r in payload.get("data", [])]


__all__ = ['HttpClient', 'ReportSyncClient', 'DEFAULT_TIMEOUT']
