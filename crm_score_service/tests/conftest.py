# Shared pytest configuration: required settings must exist before app modules load
import os

os.environ.setdefault("CRM_BASE_URL", "https://crm.example.test")
os.environ.setdefault("CRM_USERNAME", "webhook-user")
os.environ.setdefault("CRM_PASSWORD", "s3cret")
os.environ.setdefault("ASYNC_PROCESSING_DELAY_SECONDS", "0")

import pytest

from crm_score_service.app.service.payload import normalize


@pytest.fixture
def wrapped_body():
    return {
        "data": {
            "currentImage": {
                "id": "x1",
                "displayId": "1000123",
                "customerABCClassification": "A",
                "extensions": {"CustomScore": 10, "Region": "EMEA"},
                "adminData": {"updatedOn": "2024-05-01T10:00:00.000Z"},
            }
        }
    }


@pytest.fixture
def make_event():
    def _make(record_id="x1", classification="A", **extra):
        current_image = {"id": record_id, "customerABCClassification": classification, **extra}
        return normalize({"data": {"currentImage": current_image}})
    return _make
