# Client for the CRM account API (ETag guarded fetch and merge-patch update)
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from crm_score_service.app.config import AppSettings
from crm_score_service.app.service.exceptions import ApiErrorKind, CrmApiError
from crm_score_service.app.service.interfaces.record_client import AbstractRecordClient

logger = logging.getLogger(__name__)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"
CONFLICT_STATUSES = frozenset({409, 412})


@dataclass(frozen=True)
class CrmConnectionConfig:
    """Process-wide CRM connection details, built once at startup and read-only afterwards."""
    base_url: str
    username: str
    password: str = field(repr=False)
    accounts_path: str = "/sap/c4c/api/v1/account-service/accounts"

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "CrmConnectionConfig":
        return cls(
            base_url=settings.CRM_BASE_URL,
            username=settings.CRM_USERNAME,
            password=settings.CRM_PASSWORD,
            accounts_path=settings.CRM_ACCOUNTS_PATH,
        )

    @property
    def auth_header(self) -> str:
        credentials = f"{self.username}:{self.password}".encode("utf-8")
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    def account_url(self, record_id: str) -> str:
        return f"{self.base_url.rstrip('/')}{self.accounts_path}/{quote(record_id, safe='')}"


class CrmRecordClient(AbstractRecordClient):
    def __init__(self, http_client: httpx.AsyncClient, config: CrmConnectionConfig):
        self.http_client = http_client
        self.config = config
        self._auth_header = config.auth_header

    def _merge_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if extra:
            headers.update(extra)
        # Per-call headers never replace the credentials.
        headers["Authorization"] = self._auth_header
        return headers

    async def _request(
        self,
        method: str,
        record_id: str,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        url = self.config.account_url(record_id)
        logger.debug(f"CRM API call: {method} {url}")
        try:
            response = await self.http_client.request(
                method, url, headers=self._merge_headers(headers), json=json
            )
        except httpx.RequestError as e:
            logger.error(f"CRM API call failed: {method} {url}: {e}")
            raise CrmApiError(ApiErrorKind.REQUEST_FAILED, detail=f"CRM API request failed: {e}") from e

        if not response.is_success:
            kind = ApiErrorKind.CONFLICT if response.status_code in CONFLICT_STATUSES else ApiErrorKind.HTTP_STATUS
            error = CrmApiError(kind, status=response.status_code, body=response.text)
            logger.error(f"CRM API call failed: {error.detail}")
            raise error
        return response

    async def fetch_for_token(self, record_id: str) -> Tuple[Dict[str, Any], str]:
        response = await self._request("GET", record_id)
        etag = response.headers.get("ETag")
        if not etag:
            raise CrmApiError(ApiErrorKind.MISSING_TOKEN, detail="No ETag received from CRM")

        record: Dict[str, Any] = {}
        if response.content:
            try:
                record = response.json()
            except ValueError:
                logger.warning(f"CRM returned a non-JSON account body for {record_id}")
        return record, etag

    async def conditional_update(
        self,
        record_id: str,
        token: str,
        field_patch: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        response = await self._request(
            "PATCH",
            record_id,
            headers={"If-Match": token, "Content-Type": MERGE_PATCH_CONTENT_TYPE},
            json={"extensions": field_patch},
        )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

