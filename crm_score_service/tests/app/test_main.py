import pytest
from unittest.mock import patch, AsyncMock, MagicMock
from fastapi import FastAPI
# Bound before any @patch of httpx.AsyncClient so spec= sees the real class.
from httpx import AsyncClient

from crm_score_service.app.main import startup_event, shutdown_event
from crm_score_service.app.config import settings
from crm_score_service.app.service.orchestrator import ScoreUpdateOrchestrator
from crm_score_service.infrastructure.crm_client import CrmRecordClient


@pytest.fixture
def mock_app():
    """Provides a bare FastAPI app whose state starts empty."""
    return FastAPI()


@pytest.mark.asyncio
@patch('crm_score_service.app.main.httpx.AsyncClient')
@patch('crm_score_service.app.main.HTTPXClientInstrumentor')
@patch('crm_score_service.app.main.logger')
async def test_startup_event_success(
    mock_logger,
    mock_httpx_instrumentor,
    mock_async_client_constructor,
    mock_app
):
    mock_async_client_instance = AsyncMock(spec=AsyncClient)
    mock_async_client_constructor.return_value = mock_async_client_instance

    with patch('crm_score_service.app.main.app', mock_app):
        await startup_event()

    mock_async_client_constructor.assert_called_once_with(timeout=settings.DEFAULT_HTTP_TIMEOUT)
    mock_httpx_instrumentor.return_value.instrument.assert_called_once()
    assert mock_app.state.http_client == mock_async_client_instance

    record_client = mock_app.state.record_client
    assert isinstance(record_client, CrmRecordClient)
    assert record_client.http_client is mock_async_client_instance
    assert record_client.config.base_url == settings.CRM_BASE_URL

    orchestrator = mock_app.state.orchestrator
    assert isinstance(orchestrator, ScoreUpdateOrchestrator)
    assert orchestrator.record_client is record_client
    assert orchestrator.delay_seconds == settings.ASYNC_PROCESSING_DELAY_SECONDS
    assert orchestrator.score_field == settings.SCORE_FIELD_NAME

    mock_logger.info.assert_any_call("Credentials loaded successfully")
    logged = " ".join(str(call.args[0]) for call in mock_logger.info.call_args_list)
    assert settings.CRM_PASSWORD not in logged


@pytest.mark.asyncio
@patch('crm_score_service.app.main.httpx.AsyncClient')
@patch('crm_score_service.app.main.HTTPXClientInstrumentor')
@patch('crm_score_service.app.main.CrmConnectionConfig.from_settings')
@patch('crm_score_service.app.main.logger')
async def test_startup_event_failure_is_raised(
    mock_logger,
    mock_from_settings,
    mock_httpx_instrumentor,
    mock_async_client_constructor,
    mock_app
):
    mock_from_settings.side_effect = ValueError("bad config")

    with patch('crm_score_service.app.main.app', mock_app):
        with pytest.raises(ValueError):
            await startup_event()

    mock_logger.error.assert_called_once()


@pytest.mark.asyncio
@patch('crm_score_service.app.main.logger')
async def test_shutdown_event_closes_client_and_reports_pending(mock_logger, mock_app):
    mock_http_client = AsyncMock(spec=AsyncClient)
    mock_orchestrator = MagicMock(spec=ScoreUpdateOrchestrator)
    mock_orchestrator.in_flight = 2
    mock_app.state.http_client = mock_http_client
    mock_app.state.orchestrator = mock_orchestrator

    with patch('crm_score_service.app.main.app', mock_app), \
            patch('crm_score_service.app.main.settings.SHUTDOWN_DRAIN_TIMEOUT_SECONDS', 0.0):
        await shutdown_event()

    mock_http_client.aclose.assert_awaited_once()
    mock_orchestrator.wait_for_pending.assert_not_called()
    mock_logger.warning.assert_called_once_with(
        "2 background score updates still pending at shutdown will be lost."
    )


@pytest.mark.asyncio
@patch('crm_score_service.app.main.logger')
async def test_shutdown_event_drains_when_configured(mock_logger, mock_app):
    mock_orchestrator = MagicMock(spec=ScoreUpdateOrchestrator)
    mock_orchestrator.in_flight = 1
    mock_orchestrator.wait_for_pending = AsyncMock(return_value=0)
    mock_app.state.orchestrator = mock_orchestrator

    with patch('crm_score_service.app.main.app', mock_app), \
            patch('crm_score_service.app.main.settings.SHUTDOWN_DRAIN_TIMEOUT_SECONDS', 5.0):
        await shutdown_event()

    mock_orchestrator.wait_for_pending.assert_awaited_once_with(timeout=5.0)
    mock_logger.warning.assert_not_called()


@patch('crm_score_service.app.main.uvicorn.run')
def test_run_serves_on_configured_port(mock_uvicorn_run):
    from crm_score_service.app import main

    main.run()

    mock_uvicorn_run.assert_called_once_with(
        main.app, host=settings.HOST, port=settings.PORT, log_config=None
    )
