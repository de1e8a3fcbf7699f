"""
Vietnam eVisa Portal — Record Service Gateways

How the wizard reaches the Application Record Service. Both gateways expose
the same four awaitable operations and raise the same ApplicationError
subclasses:

  InProcessRecordGateway  calls an ApplicationRecordService directly
  HttpRecordGateway       talks to the /applications routes over HTTP
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Protocol

import httpx

from evisa.config import settings
from evisa.errors import (
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from evisa.models.record import ApplicationRecord
from evisa.record_service import ApplicationRecordService

logger = logging.getLogger(__name__)


class RecordGateway(Protocol):
    async def create_draft(self, fields: Mapping[str, Any]) -> ApplicationRecord: ...

    async def get_by_id(self, record_id: str) -> ApplicationRecord: ...

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord: ...

    async def submit(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord: ...


class InProcessRecordGateway:
    """Gateway for a record service living in the same process."""

    def __init__(self, service: ApplicationRecordService):
        self._service = service

    async def create_draft(self, fields: Mapping[str, Any]) -> ApplicationRecord:
        return self._service.create_draft(fields)

    async def get_by_id(self, record_id: str) -> ApplicationRecord:
        return self._service.get_by_id(record_id)

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord:
        return self._service.update(record_id, fields)

    async def submit(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord:
        return self._service.submit(record_id, fields)


def _jsonable(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, date) else value
        for key, value in fields.items()
    }


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    try:
        body = resp.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body.get("detail"), str) else None

    if resp.status_code == 404:
        raise NotFoundError(detail)
    if resp.status_code == 409:
        raise ConflictError(detail)
    if resp.status_code in (400, 422):
        raise ValidationError(body.get("errors") or {}, detail)
    logger.warning("Record service returned HTTP %s", resp.status_code)
    raise TransportError(detail)


class HttpRecordGateway:
    """
    Gateway over HTTP. Every call carries a finite timeout; timeouts and
    connection failures surface as TransportError. No retries.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or settings.record_service_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport

    async def _request(self, method: str, path: str, payload: Mapping[str, Any] | None = None) -> ApplicationRecord:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.request(
                    method, path, json=_jsonable(payload) if payload is not None else None,
                )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError() from exc

        _raise_for_status(resp)
        try:
            return ApplicationRecord.model_validate(resp.json())
        except ValueError as exc:
            raise TransportError("Unexpected response from server") from exc

    async def create_draft(self, fields: Mapping[str, Any]) -> ApplicationRecord:
        return await self._request("POST", "/applications", fields)

    async def get_by_id(self, record_id: str) -> ApplicationRecord:
        return await self._request("GET", f"/applications/{record_id}")

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord:
        return await self._request("PATCH", f"/applications/{record_id}", fields)

    async def submit(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord:
        return await self._request("POST", f"/applications/{record_id}/submit", fields)

