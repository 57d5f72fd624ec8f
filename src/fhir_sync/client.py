"""HTTP client for the clinical-data backend.

Endpoints used (relative to ``Settings.server_url``):
    POST /api/healthkit/fhir    — submit a collection Bundle
    GET  /api/healthkit/status  — reachability probe

Every submission produces exactly one SyncOutcome.  Nothing here raises past
the public methods; transport and server failures become failed outcomes.
"""

from __future__ import annotations

import logging

import httpx

from fhir_sync.base import SyncOutcome
from fhir_sync.config import Settings, get_settings
from fhir_sync.models import FHIR_JSON_MEDIA_TYPE, Bundle
from fhir_sync.result_parser import ResultParser

logger = logging.getLogger("fhir_sync.client")

SUBMIT_PATH = "/api/healthkit/fhir"
STATUS_PATH = "/api/healthkit/status"
DEVICE_ID_HEADER = "X-Device-Id"

_PARTIAL_CONTENT = 206

# Failures raised while building or sending a request.
_REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError)


class SyncClient:
    """Submit bundles to the backend and probe its status.

    Args:
        settings:    Backend URL and timeout. Defaults to ``get_settings()``.
        http_client: Optional pre-configured httpx client (for testing).
        parser:      Acknowledgement parser.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        parser: ResultParser | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._parser = parser or ResultParser()

    @property
    def server_url(self) -> str:
        return self._settings.server_url.rstrip("/")

    async def submit(self, bundle: Bundle, device_id: str | None = None) -> SyncOutcome:
        """POST a bundle and classify the response.

        Args:
            bundle:    The collection Bundle to send.
            device_id: Value for the device header. Defaults to ``Settings.device_id``.

        Returns:
            SyncOutcome describing the attempt.
        """
        submitted = len(bundle.entry)
        url = f"{self.server_url}{SUBMIT_PATH}"
        headers = {
            "Content-Type": FHIR_JSON_MEDIA_TYPE,
            DEVICE_ID_HEADER: device_id or self._settings.device_id,
        }

        try:
            body = bundle.model_dump_json(by_alias=True, exclude_none=True)
            response = await self._request("POST", url, content=body, headers=headers)
        except _REQUEST_ERRORS as exc:
            logger.warning("Submission of %d resources to %s failed: %s", submitted, url, exc)
            return SyncOutcome(
                success=False,
                message=f"Network error: {exc}",
                accepted=0,
                rejected=submitted,
            )

        status = response.status_code
        if not 200 <= status < 300:
            logger.warning("Server rejected submission with status %d", status)
            return SyncOutcome(
                success=False,
                message=f"Server error ({status}): {response.text}",
                accepted=0,
                rejected=submitted,
            )

        parsed = self._parser.parse(response.content, submitted)
        if parsed is None:
            logger.info("Submission delivered (status %d); acknowledgement not parseable", status)
            return SyncOutcome(
                success=True,
                message="Sync completed",
                accepted=submitted,
                rejected=0,
            )

        logger.info(
            "Submission delivered (status %d): %d accepted, %d rejected",
            status, parsed.accepted, parsed.rejected,
        )
        return SyncOutcome(
            success=status != _PARTIAL_CONTENT,
            message=parsed.message,
            accepted=parsed.accepted,
            rejected=parsed.rejected,
        )

    async def check_status(self) -> bool:
        """Return True iff the status endpoint answers exactly 200, after redirects."""
        url = f"{self.server_url}{STATUS_PATH}"
        try:
            response = await self._request("GET", url, follow_redirects=True)
        except _REQUEST_ERRORS as exc:
            logger.debug("Status probe to %s failed: %s", url, exc)
            return False
        return response.status_code == 200

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue one request, using the injected client if there is one."""
        timeout = httpx.Timeout(self._settings.request_timeout_seconds)

        if self._http_client is not None:
            return await self._http_client.request(method, url, timeout=timeout, **kwargs)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.request(method, url, **kwargs)
