import orjson
import pytest
from starlette.requests import Request

from autopecas.config.exceptions import ErpNotConfiguredError, ServiceError, UpstreamError, ValidationError
from autopecas.server import error_handlers


pytestmark = pytest.mark.unit


def _request(path: str = "/api/test") -> Request:
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "server": ("testserver", 80),
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_exception_handler_uses_warning_for_4xx(monkeypatch):
    calls = []
    monkeypatch.setattr(error_handlers.logger, "warning", lambda msg: calls.append(("warning", msg)))
    monkeypatch.setattr(error_handlers.logger, "error", lambda msg: calls.append(("error", msg)))

    exc = ValidationError("invalid", field="skus")
    response = await error_handlers.autopecas_exception_handler(_request("/api/produtos/match-skus"), exc)

    payload = orjson.loads(response.body)
    assert response.status_code == 400
    assert payload == {
        "success": False,
        "error": {"code": "VALIDATION_ERROR", "message": "invalid", "details": {"field": "skus"}},
    }
    assert calls and calls[0][0] == "warning"


@pytest.mark.asyncio
async def test_exception_handler_uses_error_for_5xx(monkeypatch):
    calls = []
    monkeypatch.setattr(error_handlers.logger, "warning", lambda msg: calls.append(("warning", msg)))
    monkeypatch.setattr(error_handlers.logger, "error", lambda msg: calls.append(("error", msg)))

    exc = UpstreamError("HTTP 503", service="catalog", upstream_status=503)
    response = await error_handlers.autopecas_exception_handler(_request("/api/produtos"), exc)

    payload = orjson.loads(response.body)
    assert response.status_code == 502
    assert payload["error"]["details"] == {"service": "catalog", "upstream_status": 503}
    assert calls and calls[0][0] == "error"


@pytest.mark.asyncio
async def test_kv_write_failure_maps_to_service_error():
    exc = ServiceError("Armazenamento indisponivel (Redis).", service="kv")
    response = await error_handlers.autopecas_exception_handler(_request("/api/sige/save-config"), exc)

    payload = orjson.loads(response.body)
    assert response.status_code == 500
    assert payload["error"]["code"] == "SERVICE_ERROR"
    assert payload["error"]["details"] == {"service": "kv"}


@pytest.mark.asyncio
async def test_erp_not_configured_reports_service(monkeypatch):
    monkeypatch.setattr(error_handlers.logger, "warning", lambda msg: None)

    response = await error_handlers.autopecas_exception_handler(_request("/api/sige/connect"), ErpNotConfiguredError())

    payload = orjson.loads(response.body)
    assert response.status_code == 400
    assert payload["error"]["code"] == "ERP_NOT_CONFIGURED"
    assert payload["error"]["details"] == {"service": "sige"}


@pytest.mark.asyncio
async def test_generic_exception_handler_returns_sanitized_payload(monkeypatch):
    captured = []
    monkeypatch.setattr(error_handlers.logger, "exception", lambda msg: captured.append(msg))

    response = await error_handlers.generic_exception_handler(
        _request("/api/unknown"),
        RuntimeError("internal stack"),
    )

    payload = response.body.decode("utf-8")
    assert response.status_code == 500
    assert '"code":"INTERNAL_ERROR"' in payload
    assert '"details":null' in payload
    assert "internal stack" not in payload
    assert captured
