# Synchronous scoring: echo the account snapshot back with CustomScore set
import copy
import logging
from typing import Any, Dict

from crm_score_service.app.service.payload import CrmEvent
from crm_score_service.app.service.scoring import calculate_score

logger = logging.getLogger(__name__)


def build_scored_record(event: CrmEvent, score_field: str) -> Dict[str, Any]:
    """
    Returns a copy of the event's currentImage where only
    `extensions[score_field]` is overwritten with the calculated score.
    The event itself is left untouched, so repeated calls give equal output.
    """
    score = calculate_score(event.classification)
    logger.info(f"Calculated score: {score} (ABC: {event.classification}) for account {event.record_id}")

    record = copy.deepcopy(event.current_image)
    extensions = record.get("extensions")
    if not isinstance(extensions, dict):
        if extensions is not None:
            logger.warning(f"Replacing non-object extensions on account {event.record_id}")
        extensions = {}
    extensions[score_field] = score
    record["extensions"] = extensions
    return record
