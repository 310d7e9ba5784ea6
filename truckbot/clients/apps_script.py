"""Client for the spreadsheet backend published as a Google Apps Script web app."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from truckbot.core.config import AppsScriptSettings
from truckbot.schemas.records import SheetEntry
from truckbot.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class AppsScriptError(RuntimeError):
    """Raised when the backend cannot be reached or answers with garbage."""


class AppsScriptResult:
    """Normalized ``{success, message, data, rowLink}`` reply."""

    def __init__(self, payload: Dict[str, Any]) -> None:
        self.success = bool(payload.get("success"))
        self.message: str = payload.get("message") or ""
        data = payload.get("data") or []
        self.rows: List[Dict[str, Any]] = data if isinstance(data, list) else [data]
        self.row_link: Optional[str] = payload.get("rowLink")


class AppsScriptClient:
    """Query and append truck rows on the TRANSIT and SCT sheets."""

    def __init__(
        self,
        settings: AppsScriptSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = str(settings.script_url)
        self._timeout = settings.timeout_seconds
        self._retry = RetryConfig(attempts=settings.retry_attempts)
        self._transport = transport

    async def get_truck_status(self, query: str, *, sheet: str = "TRANSIT") -> AppsScriptResult:
        return await self._get("getTruckStatus", query=query, sheet=sheet)

    async def get_row_details(self, row: str, *, sheet: str = "TRANSIT") -> AppsScriptResult:
        return await self._get("getRowDetails", query=row, sheet=sheet)

    async def create_entry(self, entry: SheetEntry) -> AppsScriptResult:
        """Append ``entry`` to its target sheet."""
        body = {"action": entry.script_action, "data": entry.to_script_payload()}
        return await self._send("POST", json=body)

    async def _get(self, action: str, *, query: str, sheet: str) -> AppsScriptResult:
        params = {"action": action, "query": query, "sheet": sheet}
        return await self._send("GET", params=params)

    async def _send(self, method: str, **kwargs: Any) -> AppsScriptResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await request_with_retry(
                    client.request,
                    method,
                    self._url,
                    retry_config=self._retry,
                    **kwargs,
                )
        except httpx.HTTPError as exc:
            raise AppsScriptError(f"Apps Script request failed: {exc}") from exc

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise AppsScriptError(
                "Apps Script returned a non-JSON response "
                f"({content_type or 'no content type'}): {response.text[:300]}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AppsScriptError("Apps Script returned malformed JSON") from exc
        if not isinstance(payload, dict):
            raise AppsScriptError("Apps Script returned an unexpected JSON shape")
        return AppsScriptResult(payload)


__all__ = ["AppsScriptClient", "AppsScriptError", "AppsScriptResult"]
