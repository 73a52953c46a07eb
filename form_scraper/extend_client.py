"""Client for the three Extend API calls behind one schema extraction.

Each method is a single HTTP exchange. Nothing here retries; polling policy
lives in poller.py.
"""

import logging
import threading
from typing import Optional, Tuple, Type

import httpx

from .config import ExtendConfig
from .errors import (JobFailedError, JobStartError, OperationCancelled, PollError, RemoteError,
                     TransportError, UploadError)
from .models import JobStatus, PollResult

logger = logging.getLogger("form_scraper")


class ExtendClient:
    def __init__(self, config: ExtendConfig, api_key: str,
                 transport: Optional[httpx.BaseTransport] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.config = config
        self.cancel_event = cancel_event
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout, connect=30),
            headers={
                "Authorization": f"Bearer {api_key}",
                "x-extend-api-version": config.api_version,
            },
            transport=transport,
        )

    def close(self):
        if not self._client.is_closed:
            self._client.close()

    def __enter__(self) -> "ExtendClient":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def upload_file(self, data: bytes, filename: str) -> str:
        """POST /files. Returns the file id."""
        resp = self._send("POST", "/files", UploadError,
                          files={"file": (filename, data, "application/pdf")})
        return self._require_id(resp, UploadError, "No file ID in response")

    def start_edit_run(self, file_id: str) -> str:
        """POST /files/{id}/edit-runs with an empty config. Returns the run id."""
        resp = self._send("POST", f"/files/{file_id}/edit-runs", JobStartError,
                          json={"config": {}})
        return self._require_id(resp, JobStartError, "No run ID in response")

    def get_edit_run(self, run_id: str) -> PollResult:
        """GET /edit-runs/{id}. One status read, no waiting."""
        resp = self._send("GET", f"/edit-runs/{run_id}", PollError)
        body = self._json(resp, PollError)
        schema = body.get("outputSchema")
        if schema is not None and not isinstance(schema, dict):
            raise PollError(resp.status_code, resp.text, "outputSchema was not a JSON object")
        return PollResult(status=body.get("status"), output_schema=schema,
                          http_status=resp.status_code, raw=resp.text)

    def poll_once(self, run_id: str) -> Tuple[JobStatus, Optional[dict]]:
        """Read the run status once; the schema is only returned on complete.

        Raises JobFailedError for any status outside pending/running/complete.
        """
        result = self.get_edit_run(run_id)
        status = JobStatus.parse(result.status)
        if status is None:
            raise JobFailedError(run_id, result.status, result.http_status, result.raw)
        if status is JobStatus.COMPLETE:
            return status, result.output_schema or {}
        return status, None

    def _send(self, method: str, path: str, error_cls: Type[RemoteError], **kwargs) -> httpx.Response:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelled(f"Cancelled before {method} {path}")

        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f"{self.config.base_url}{path}", e) from e

        if resp.is_error:
            raise error_cls(resp.status_code, resp.text)
        logger.debug(f"{method} {path} -> {resp.status_code}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response, error_cls: Type[RemoteError]) -> dict:
        try:
            body = resp.json()
        except ValueError:
            raise error_cls(resp.status_code, resp.text, "Response was not valid JSON") from None
        if not isinstance(body, dict):
            raise error_cls(resp.status_code, resp.text, "Response was not a JSON object")
        return body

    def _require_id(self, resp: httpx.Response, error_cls: Type[RemoteError], message: str) -> str:
        value = self._json(resp, error_cls).get("id")
        if not value:
            raise error_cls(resp.status_code, resp.text, message)
        return value
