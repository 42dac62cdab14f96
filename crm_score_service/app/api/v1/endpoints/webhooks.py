# API Router for CRM account webhooks
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from crm_score_service.app.dependencies.services import OrchestratorDep, SettingsDep
from crm_score_service.app.observability import webhook_events_received_counter
from crm_score_service.app.service.exceptions import PayloadValidationError
from crm_score_service.app.service.orchestrator import ScoreUpdateOrchestrator
from crm_score_service.app.service.payload import CrmEvent, parse_event_body
from crm_score_service.app.service.sync_handler import build_scored_record

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

ASYNC_ACCEPTED_MESSAGE = "Processing in background"


def _validation_error_response(mode: str, error: PayloadValidationError) -> JSONResponse:
    logger.error(f"Validation failed ({mode}): {error.message} [field={error.field}]")
    webhook_events_received_counter.add(1, {"mode": mode, "outcome": "invalid"})
    return JSONResponse(status_code=400, content={"error": error.message})


async def _schedule_update(orchestrator: ScoreUpdateOrchestrator, event: CrmEvent) -> None:
    # Runs once the 202 has been sent.
    orchestrator.schedule(event)


@router.post("/calculate-score-sync", summary="Calculate CustomScore and return the updated account")
async def calculate_score_sync(request: Request, settings: SettingsDep):
    try:
        event = parse_event_body(await request.body())
    except PayloadValidationError as e:
        return _validation_error_response("sync", e)

    try:
        record = build_scored_record(event, settings.SCORE_FIELD_NAME)
        response = JSONResponse(status_code=200, content={"data": record})
    except Exception as e:
        logger.error(f"Sync webhook error for account {event.record_id}: {e}", exc_info=True)
        webhook_events_received_counter.add(1, {"mode": "sync", "outcome": "error"})
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    webhook_events_received_counter.add(1, {"mode": "sync", "outcome": "scored"})
    logger.info(f"Returned updated account data for {event.record_id} with {settings.SCORE_FIELD_NAME}: "
                f"{record['extensions'][settings.SCORE_FIELD_NAME]}")
    return response


@router.post(
    "/calculate-score-async",
    status_code=202,
    summary="Accept an account change and update CustomScore in the background",
)
async def calculate_score_async(request: Request, orchestrator: OrchestratorDep):
    """
    Acknowledges the event immediately. The score is written back to the CRM
    later; failures of that background update are only logged, never
    reported to the caller.
    """
    try:
        event = parse_event_body(await request.body())
    except PayloadValidationError as e:
        return _validation_error_response("async", e)

    webhook_events_received_counter.add(1, {"mode": "async", "outcome": "accepted"})
    return JSONResponse(
        status_code=202,
        content={"accepted": True, "message": ASYNC_ACCEPTED_MESSAGE},
        background=BackgroundTask(_schedule_update, orchestrator, event),
    )
