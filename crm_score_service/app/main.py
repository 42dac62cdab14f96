# FastAPI Application Entry Point
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import httpx
import uvicorn

# Configuration and Observability
from crm_score_service.app.config import settings
from crm_score_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

# CRM client and background orchestration
from crm_score_service.infrastructure.crm_client import CrmConnectionConfig, CrmRecordClient
from crm_score_service.app.service.orchestrator import ScoreUpdateOrchestrator

# API Routers
from crm_score_service.app.api.v1.endpoints import health as health_router
from crm_score_service.app.api.v1.endpoints import webhooks as webhooks_router

# --- FastAPI Application Instance ---
app = FastAPI(
    title=settings.SERVICE_NAME,
    description="Calculates the CRM account CustomScore from its ABC classification, inline or in the background.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
)

# --- Event Handlers for HTTP client, CRM client & OTel Instrumentation ---
@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    try:
        HTTPXClientInstrumentor().instrument()
        app.state.http_client = httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT)
        logger.info(f"HTTPX AsyncClient initialized with timeout {settings.DEFAULT_HTTP_TIMEOUT} and instrumented.")

        crm_config = CrmConnectionConfig.from_settings(settings)
        app.state.record_client = CrmRecordClient(http_client=app.state.http_client, config=crm_config)
        app.state.orchestrator = ScoreUpdateOrchestrator(
            record_client=app.state.record_client,
            delay_seconds=settings.ASYNC_PROCESSING_DELAY_SECONDS,
            score_field=settings.SCORE_FIELD_NAME,
        )
        logger.info(f"CRM API configured: {crm_config.base_url}")
        logger.info(f"Username: {crm_config.username}")
        logger.info("Credentials loaded successfully")
    except Exception as e:
        logger.error(f"Failed during startup: {e}", exc_info=True)
        raise

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")

    orchestrator = getattr(app.state, "orchestrator", None)
    if orchestrator is not None and orchestrator.in_flight:
        timeout = settings.SHUTDOWN_DRAIN_TIMEOUT_SECONDS
        pending = orchestrator.in_flight
        if timeout > 0:
            pending = await orchestrator.wait_for_pending(timeout=timeout)
        if pending:
            logger.warning(f"{pending} background score updates still pending at shutdown will be lost.")

    if hasattr(app.state, 'http_client') and app.state.http_client:
        await app.state.http_client.aclose()
        logger.info("HTTPX AsyncClient closed.")

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API routers
app.include_router(health_router.router)
app.include_router(webhooks_router.router)

logger.info("API routers included. Application setup complete.")


def run():
    """Console entry point: serve the app with uvicorn on HOST:PORT."""
    base = f"http://localhost:{settings.PORT}"
    logger.info(f"{settings.SERVICE_NAME} running on port {settings.PORT}")
    logger.info(f"Health check: {base}/health")
    logger.info(f"Sync webhook: {base}/webhooks/calculate-score-sync")
    logger.info(f"Async webhook: {base}/webhooks/calculate-score-async")
    # log_config=None keeps the JSON logging configured in observability.py
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()

# To run: crm-score-service, or uvicorn crm_score_service.app.main:app --port 3000
