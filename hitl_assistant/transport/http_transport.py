"""HTTP transport for the HITL workflow API"""

import asyncio
import functools
import logging
from typing import Any, Optional

import requests

from hitl_assistant.models.configs import BackendSettings
from hitl_assistant.models.email import EmailContext
from hitl_assistant.transport.base import (
    TransportError,
    WireDecision,
    WorkflowAlreadyCompletedError,
    WorkflowTransport,
)

logger = logging.getLogger(__name__)


class HttpWorkflowTransport(WorkflowTransport):
    """
    Talks to the backend's /api/hitl endpoints with requests.

    The blocking calls run in the event loop's default executor so callers never
    block the loop. Any object with requests-style ``get``/``post`` methods can be
    passed as ``session`` (e.g. FastAPI's TestClient).
    """

    def __init__(self, settings: BackendSettings, session: Optional[Any] = None):
        self.base_url = settings.base_url.rstrip("/")
        self.user_id = settings.user_id
        self.timeout = settings.request_timeout_seconds
        self.session = session if session is not None else requests.Session()
        self.headers = {"Content-Type": "application/json", "Accept": "application/json"}

    async def start_workflow(self, email: EmailContext) -> dict:
        logger.info("Starting HITL workflow for user %s: %s", self.user_id, email.subject)
        payload = {"email": email.to_payload(), "user_id": self.user_id}
        response = await self._request("post", "/api/hitl/workflow", json=payload)
        self._raise_for_status(response)
        return self._parse_json(response)

    async def submit_decision(self, workflow_id: str, decision: WireDecision) -> dict:
        # Handle both string and envelope formats
        payload = {"decision": decision} if isinstance(decision, str) else dict(decision)
        logger.info("Submitting decision for %s: %s", workflow_id, payload.get("decision"))

        response = await self._request(
            "post", f"/api/hitl/workflow/{workflow_id}/decision", json=payload
        )

        if response.status_code == 400:
            error_data = self._parse_error(response)
            raise WorkflowAlreadyCompletedError(
                _error_message(error_data) or "Workflow already completed", details=error_data
            )

        self._raise_for_status(response)
        return self._parse_json(response)

    async def poll_status(self, workflow_id: str) -> dict:
        logger.debug("Getting workflow status: %s", workflow_id)
        response = await self._request("get", f"/api/hitl/workflow/{workflow_id}")
        self._raise_for_status(response)
        return self._parse_json(response)

    async def health_check(self) -> bool:
        try:
            response = await self._request("get", "/api/health")
        except TransportError as e:
            logger.warning("Health check failed: %s", e)
            return False
        return 200 <= response.status_code < 300

    async def _request(self, method: str, path: str, **kwargs):
        """Run a blocking HTTP call in the default executor"""
        url = f"{self.base_url}{path}"
        call = functools.partial(
            getattr(self.session, method), url, headers=self.headers, timeout=self.timeout, **kwargs
        )
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, call)
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

    def _raise_for_status(self, response) -> None:
        if 200 <= response.status_code < 300:
            return
        error_data = self._parse_error(response)
        message = _error_message(error_data) or "request failed"
        raise TransportError(
            f"API Error {response.status_code}: {message}",
            status_code=response.status_code,
            details=error_data,
            retryable=response.status_code >= 500 or response.status_code == 429,
        )

    @staticmethod
    def _parse_json(response) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                "Response body is not valid JSON", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise TransportError(
                "Response body is not a JSON object", status_code=response.status_code
            )
        return data

    @staticmethod
    def _parse_error(response) -> dict:
        """Parse error response from API calls"""
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data = response.json()
                if isinstance(data, dict):
                    return data
            except ValueError:
                pass
        return {"error": {"message": response.text, "code": "HTTP_ERROR"}}


def _error_message(error_data: dict) -> str:
    """Pick the most specific message out of the error shapes the backend uses"""
    detail = error_data.get("detail")
    if isinstance(detail, str):
        return detail
    error = error_data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return ""
