"""
Tests for the record gateways. The HTTP gateway runs against the real app
through httpx.ASGITransport.
"""
import asyncio
from datetime import date

import httpx
import pytest

from conftest import TODAY

from evisa.errors import ConflictError, NotFoundError, TransportError, ValidationError
from evisa.models.record import ApplicationStatus
from evisa.record_client import HttpRecordGateway, InProcessRecordGateway
from evisa.record_service import ApplicationRecordService, get_record_service
from evisa.server import app

from test_record_service import SUBMISSION


@pytest.fixture
def service():
    service = ApplicationRecordService(clock=lambda: TODAY)
    app.dependency_overrides[get_record_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def gateway(service):
    return HttpRecordGateway("http://testserver", transport=httpx.ASGITransport(app=app))


def test_http_gateway_full_lifecycle(gateway, service):
    async def scenario():
        created = await gateway.create_draft({"full_name": "Alex", "entry_date": date(2026, 4, 1)})
        fetched = await gateway.get_by_id(created.id)
        updated = await gateway.update(created.id, {"nationality": "Canada"})
        submitted = await gateway.submit(created.id, SUBMISSION)
        return created, fetched, updated, submitted

    created, fetched, updated, submitted = asyncio.run(scenario())

    assert created.status == ApplicationStatus.DRAFT
    assert created.entry_date == date(2026, 4, 1)
    assert fetched.id == created.id
    assert updated.nationality == "Canada"
    assert submitted.status == ApplicationStatus.SUBMITTED
    assert service.get_by_id(created.id).status == ApplicationStatus.SUBMITTED


def test_http_gateway_maps_not_found(gateway):
    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(gateway.get_by_id("missing"))
    assert exc_info.value.message == "Application not found"


def test_http_gateway_maps_conflict(gateway, service):
    record = service.create_draft()
    service.submit(record.id, SUBMISSION)
    with pytest.raises(ConflictError):
        asyncio.run(gateway.submit(record.id, SUBMISSION))


def test_http_gateway_maps_validation_errors(gateway):
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(gateway.create_draft({"number_of_applicants": 25}))
    assert "number_of_applicants" in exc_info.value.errors


def test_http_gateway_connection_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = HttpRecordGateway("http://records.invalid", transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError):
        asyncio.run(gateway.get_by_id("abc"))


def test_http_gateway_server_error():
    gateway = HttpRecordGateway(
        "http://records.invalid",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    with pytest.raises(TransportError):
        asyncio.run(gateway.create_draft({}))


def test_in_process_gateway_delegates():
    service = ApplicationRecordService()
    gateway = InProcessRecordGateway(service)

    created = asyncio.run(gateway.create_draft({"full_name": "Alex"}))
    assert asyncio.run(gateway.get_by_id(created.id)).full_name == "Alex"
    with pytest.raises(NotFoundError):
        asyncio.run(gateway.update("missing", {}))
