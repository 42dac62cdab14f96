# API Router for Health Checks
from datetime import datetime, timezone
import logging

from fastapi import APIRouter

from crm_score_service.app.dependencies.services import SettingsDep

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/health", tags=["Monitoring"])
async def health_check(settings: SettingsDep):
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {"status": "ok", "service": settings.SERVICE_NAME, "timestamp": timestamp}
