# CustomScore calculation from the ABC classification
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

CLASSIFICATION_SCORES: Dict[str, int] = {
    "A": 90,
    "B": 70,
    "C": 50,
}
DEFAULT_SCORE = CLASSIFICATION_SCORES["C"]


def calculate_score(classification: Any) -> int:
    """
    Maps an ABC classification to a CustomScore (case-insensitive).

    Anything that is not A, B or C, including a missing classification,
    falls back to the C score. Never raises.
    """
    if classification is None or classification == "":
        logger.warning(f"No ABC classification provided, defaulting to C ({DEFAULT_SCORE})")
        return DEFAULT_SCORE

    if isinstance(classification, str):
        score = CLASSIFICATION_SCORES.get(classification.upper())
        if score is not None:
            return score

    logger.warning(f"Unknown ABC classification: {classification!r}, defaulting to C ({DEFAULT_SCORE})")
    return DEFAULT_SCORE
