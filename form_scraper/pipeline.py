"""Single-document pipeline: resolve -> transfer -> upload -> start -> poll -> persist."""

import logging
import os
import threading
from typing import Callable, Iterable, Optional, Union

import httpx

from .catalog import find_form
from .config import AppConfig, resolve_api_key
from .downloader import Downloader
from .errors import ConfigurationError, FormScraperError, PipelineError
from .extend_client import ExtendClient
from .models import BatchOutcome, ExtractionResult, FormInfo, ItemOutcome, JobHandle, JobStatus
from .poller import CompletionWaiter
from .sources import get_source

logger = logging.getLogger("form_scraper")

SCHEMA_SUFFIX = "_Extend_Schema.json"

EventCallback = Callable[[str, str], None]


def default_output_path(source_path: str) -> str:
    """<dir>/<name without extension>_Extend_Schema.json"""
    directory = os.path.dirname(source_path) or "."
    stem = os.path.splitext(os.path.basename(source_path))[0]
    return os.path.join(directory, f"{stem}{SCHEMA_SUFFIX}")


def save_result(result: ExtractionResult, output_path: str) -> str:
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(result.to_json())
    result.output_path = output_path
    return output_path


class SchemaPipeline:
    """Turns a PDF (bytes, a local file or a catalog form) into an Extend schema file.

    The API key is resolved at construction, so a missing credential fails
    before any request is made. Every later failure is raised as a
    PipelineError naming the stage that broke.
    """

    def __init__(self, config: AppConfig, api_key: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 cancel_event: Optional[threading.Event] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 on_event: Optional[EventCallback] = None):
        self.config = config
        self.api_key = resolve_api_key(api_key)
        self.cancel_event = cancel_event
        self._sleep = sleep
        self._on_event = on_event
        self.client = ExtendClient(config.extend, self.api_key, transport=transport,
                                   cancel_event=cancel_event)
        self.downloader = Downloader(config.download, transport=transport,
                                     cancel_event=cancel_event)

    def close(self):
        self.client.close()
        self.downloader.close()

    def __enter__(self) -> "SchemaPipeline":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _emit(self, stage: str, detail: str = ""):
        if self._on_event is not None:
            self._on_event(stage, detail)

    def generate(self, data: bytes, filename: str, output_path: str) -> ExtractionResult:
        """Run upload -> start -> poll -> persist on bytes already in memory."""
        logger.info(f"[pipeline] {filename}: uploading {len(data):,} bytes")
        self._emit("upload", filename)
        try:
            handle = JobHandle(file_id=self.client.upload_file(data, filename))
        except FormScraperError as e:
            raise PipelineError("upload", e) from e
        self._emit("uploaded", handle.file_id)

        try:
            handle.run_id = self.client.start_edit_run(handle.file_id)
        except FormScraperError as e:
            raise PipelineError("job_start", e) from e
        logger.info(f"[pipeline] {filename}: file {handle.file_id}, edit run {handle.run_id}")
        self._emit("started", handle.run_id)

        waiter = CompletionWaiter.from_config(self.client, self.config.extend,
                                              cancel_event=self.cancel_event, sleep=self._sleep)
        try:
            schema = waiter.wait(handle.require_run_id(), on_poll=self._on_poll)
        except FormScraperError as e:
            raise PipelineError("extraction", e) from e

        result = ExtractionResult(schema=schema)
        self._emit("extracted", str(result.field_count))

        try:
            save_result(result, output_path)
        except OSError as e:
            raise PipelineError("persist", e) from e

        logger.info(f"[pipeline] {filename}: {result.field_count} fields -> {output_path}")
        self._emit("saved", output_path)
        return result

    def _on_poll(self, attempt: int, status: JobStatus):
        self._emit("poll", status.value)

    def generate_from_file(self, pdf_path: str, output_path: Optional[str] = None) -> ExtractionResult:
        if not os.path.isfile(pdf_path):
            raise ConfigurationError(f"PDF file not found: {os.path.abspath(pdf_path)}")

        try:
            with open(pdf_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise PipelineError("resolve", e) from e

        return self.generate(data, os.path.basename(pdf_path),
                             output_path or default_output_path(pdf_path))

    def generate_from_form(self, form: Union[FormInfo, str], output_dir: Optional[str] = None,
                           output_path: Optional[str] = None) -> ExtractionResult:
        if isinstance(form, str):
            found = find_form(form)
            if found is None:
                raise ConfigurationError(f"Unknown form: {form}")
            form = found

        try:
            request = get_source(form.source).download_request(form)
        except FormScraperError as e:
            raise PipelineError("resolve", e) from e

        self._emit("transfer", request.url)
        try:
            data = self.downloader.fetch(request.url)
        except FormScraperError as e:
            raise PipelineError("transfer", e) from e
        logger.info(f"[pipeline] {form.form_number}: fetched {len(data):,} bytes from {request.url}")

        if output_path is None:
            directory = output_dir or self.config.output_dir
            output_path = default_output_path(os.path.join(directory, request.filename))
        return self.generate(data, request.filename, output_path)

    def generate_batch(self, forms: Iterable[FormInfo], output_dir: Optional[str] = None,
                       on_item: Optional[Callable[[ItemOutcome], None]] = None) -> BatchOutcome:
        """Schema for each form in turn. One form failing does not stop the rest."""
        outcome = BatchOutcome()
        for form in forms:
            try:
                result = self.generate_from_form(form, output_dir=output_dir)
                item = ItemOutcome(
                    form.form_number, success=True,
                    bytes_written=os.path.getsize(result.output_path),
                    path=result.output_path, field_count=result.field_count,
                )
            except Exception as e:
                logger.error(f"[pipeline] {form.form_number}: {e}")
                item = ItemOutcome(form.form_number, success=False, error=str(e))
            outcome.record(item)
            if on_item is not None:
                on_item(item)
        return outcome
