# FastAPI dependency providers for the scoring services held on app.state
from typing import Annotated

from fastapi import Depends, Request

from crm_score_service.app.config import AppSettings, settings as app_settings
from crm_score_service.app.service.orchestrator import ScoreUpdateOrchestrator


async def get_settings() -> AppSettings:
    return app_settings


async def get_orchestrator(request: Request) -> ScoreUpdateOrchestrator:
    """The orchestrator built at startup (`request.app.state.orchestrator`)."""
    return request.app.state.orchestrator


SettingsDep = Annotated[AppSettings, Depends(get_settings)]
OrchestratorDep = Annotated[ScoreUpdateOrchestrator, Depends(get_orchestrator)]
