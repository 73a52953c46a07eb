"""Exception hierarchy shared by the downloader, the Extend client and the pipeline."""

from typing import Optional


class FormScraperError(Exception):
    """Base exception for everything raised by form_scraper."""


class ConfigurationError(FormScraperError):
    """Missing credential, bad filter value or unusable input. Raised before any work."""


class UnsupportedSourceError(ConfigurationError):
    """No URL rule exists for a form's source category."""


class TransportError(FormScraperError):
    """DNS, connection or timeout failure below the HTTP layer."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Request to {url} failed: {cause}")


class RemoteError(FormScraperError):
    """Non-success HTTP status from a remote server."""

    action = "Request"

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"{self.action} failed ({status_code}): {body}")


class TransferError(RemoteError):
    action = "Download"


class UploadError(RemoteError):
    action = "Upload"


class JobStartError(RemoteError):
    action = "Edit run"


class PollError(RemoteError):
    action = "Status check"


class UnavailableError(FormScraperError):
    """A best-effort secondary document could not be fetched."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Not available: {url} ({cause})")


class JobFailedError(PollError):
    """The status read succeeded but reported something other than pending/running/complete."""

    def __init__(self, run_id: str, status: Optional[str], status_code: int = 200, body: str = ""):
        self.run_id = run_id
        self.status = status
        super().__init__(status_code, body, f"Edit run {run_id} failed with status: {status}")


class ExtractionTimeoutError(FormScraperError):
    """The poll budget ran out before the edit run reached a terminal status."""

    def __init__(self, run_id: str, attempts: int):
        self.run_id = run_id
        self.attempts = attempts
        super().__init__(f"Timeout waiting for edit run {run_id} after {attempts} polls")


class OperationCancelled(FormScraperError):
    """The caller set the cancel event while work was in flight."""


class PipelineError(FormScraperError):
    """A single-document pipeline stage failed.

    ``stage`` is one of resolve, transfer, upload, job_start, extraction, persist.
    """

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")

    @property
    def is_remote(self) -> bool:
        return self.stage in ("upload", "job_start", "extraction")
