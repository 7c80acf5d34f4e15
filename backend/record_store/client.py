from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

import requests
from requests.utils import quote

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.airtable.com/v0"
PAGE_SIZE = 100


class RecordStoreError(Exception):
    """Base exception for record store failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RecordStoreConfigError(RecordStoreError):
    """Credentials or base id missing."""


class RecordNotFound(RecordStoreError):
    """The store answered 404 for a record or table."""


class RecordStoreUnavailable(RecordStoreError):
    """Timeout or connection failure talking to the store."""


class AirtableClient:
    """Thin REST client for one Airtable base. Every call carries a timeout."""

    def __init__(
        self,
        api_key: str,
        base_id: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key or not base_id:
            raise RecordStoreConfigError("AIRTABLE_API_KEY and AIRTABLE_BASE_ID must be set")
        self.base_id = base_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def _table_url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.api_url}/{self.base_id}/{quote(table, safe='')}"
        if record_id:
            url = f"{url}/{record_id}"
        return url

    def _meta_url(self) -> str:
        return f"{self.api_url}/meta/bases/{self.base_id}/tables"

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("Record store %s %s failed: %s", method, url, exc)
            raise RecordStoreUnavailable(f"Record store unreachable: {exc}") from exc

        if resp.status_code == 404:
            raise RecordNotFound(f"Not found: {url}", status_code=404)
        if resp.status_code >= 400:
            body = resp.text[:500]
            logger.error("Record store %s %s -> %s %s", method, url, resp.status_code, body)
            raise RecordStoreError(f"Record store error {resp.status_code}: {body}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise RecordStoreError("Record store returned a non-JSON body", status_code=resp.status_code) from exc

    # ---------- records ----------

    def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        return self._request("GET", self._table_url(table, record_id))

    def iter_records(
        self,
        table: str,
        filter_by_formula: Optional[str] = None,
        max_records: Optional[int] = None,
        fields: Optional[List[str]] = None,
    ) -> Iterator[Dict[str, Any]]:
        params: Dict[str, Any] = {"pageSize": PAGE_SIZE}
        if filter_by_formula:
            params["filterByFormula"] = filter_by_formula
        if max_records:
            params["maxRecords"] = max_records
            params["pageSize"] = min(PAGE_SIZE, max_records)
        if fields:
            params["fields[]"] = fields

        offset = None
        while True:
            if offset:
                params["offset"] = offset
            page = self._request("GET", self._table_url(table), params=dict(params))
            for record in page.get("records", []):
                yield record
            offset = page.get("offset")
            if not offset:
                break

    def list_records(self, table: str, **kwargs) -> List[Dict[str, Any]]:
        return list(self.iter_records(table, **kwargs))

    def create_record(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", self._table_url(table), json={"fields": fields})

    def update_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", self._table_url(table, record_id), json={"fields": fields})

    # ---------- schema ----------

    def list_tables(self) -> List[Dict[str, Any]]:
        data = self._request("GET", self._meta_url())
        return [
            {"id": t.get("id"), "name": t.get("name"), "fields_count": len(t.get("fields") or [])}
            for t in data.get("tables", [])
        ]
