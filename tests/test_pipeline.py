import json
import os
import threading

import httpx
import pytest

from helpers import RecordingTransport, extend_handler, json_response

from form_scraper.catalog import find_form
from form_scraper.errors import (ConfigurationError, ExtractionTimeoutError, JobFailedError,
                                 OperationCancelled, PipelineError, TransferError, UploadError)
from form_scraper.models import ExtractionResult, FormInfo, FormSource
from form_scraper.pipeline import SchemaPipeline, default_output_path, save_result

COMPLETE = [
    {"status": "pending"},
    {"status": "running"},
    {"status": "complete", "outputSchema": {"a": 1, "b": 2}},
]


def _pipeline(app_config, delays, handler, **kwargs) -> tuple[SchemaPipeline, RecordingTransport]:
    transport = RecordingTransport(handler)
    pipeline = SchemaPipeline(app_config, api_key="key", transport=transport,
                              sleep=delays.append, **kwargs)
    return pipeline, transport


class TestEndToEnd:
    def test_form_to_schema(self, app_config, delays, tmp_path) -> None:
        form = FormInfo("X-1", "Example", FormSource.USCIS)
        pipeline, transport = _pipeline(app_config, delays, extend_handler(COMPLETE, pdf=b"%PDF" * 10))

        result = pipeline.generate_from_form(form, output_dir=str(tmp_path))

        assert result.field_count == 2
        assert result.output_path == str(tmp_path / "X-1_Extend_Schema.json")
        with open(result.output_path, encoding="utf-8") as f:
            assert json.load(f) == {"a": 1, "b": 2}

        calls = [(r.method, r.url.host, r.url.path) for r in transport.requests]
        assert calls == [
            ("GET", "www.uscis.gov", "/sites/default/files/document/forms/x-1.pdf"),
            ("POST", "api.extend.app", "/v1/files"),
            ("POST", "api.extend.app", "/v1/files/r1/edit-runs"),
            ("GET", "api.extend.app", "/v1/edit-runs/j1"),
            ("GET", "api.extend.app", "/v1/edit-runs/j1"),
            ("GET", "api.extend.app", "/v1/edit-runs/j1"),
        ]
        assert b"%PDF" * 10 in transport.requests[1].content

    def test_form_number_string(self, app_config, delays) -> None:
        pipeline, _ = _pipeline(app_config, delays, extend_handler(COMPLETE))
        result = pipeline.generate_from_form("i-130")
        assert result.output_path == os.path.join(app_config.output_dir, "I-130_Extend_Schema.json")

    def test_local_pdf_default_output(self, app_config, delays, tmp_path) -> None:
        pdf = tmp_path / "g-28.pdf"
        pdf.write_bytes(b"%PDF-local")
        pipeline, transport = _pipeline(app_config, delays, extend_handler(COMPLETE))

        result = pipeline.generate_from_file(str(pdf))

        assert result.output_path == str(tmp_path / "g-28_Extend_Schema.json")
        assert os.path.exists(result.output_path)
        assert transport.requests[0].url.path == "/v1/files"

    def test_explicit_output_path(self, app_config, delays, tmp_path) -> None:
        pdf = tmp_path / "form.pdf"
        pdf.write_bytes(b"%PDF")
        target = tmp_path / "schemas" / "custom.json"
        pipeline, _ = _pipeline(app_config, delays, extend_handler(COMPLETE))

        result = pipeline.generate_from_file(str(pdf), str(target))

        assert result.output_path == str(target)
        assert target.exists()

    def test_events_in_order(self, app_config, delays, tmp_path) -> None:
        events = []
        pipeline, _ = _pipeline(app_config, delays, extend_handler(COMPLETE),
                                on_event=lambda stage, detail: events.append(stage))
        pipeline.generate(b"%PDF", "a.pdf", str(tmp_path / "a.json"))
        assert events == ["upload", "uploaded", "started", "poll", "poll", "poll", "extracted", "saved"]


class TestConfiguration:
    def test_missing_credential_makes_no_calls(self, app_config, monkeypatch) -> None:
        monkeypatch.delenv("EXTEND_API_KEY", raising=False)
        transport = RecordingTransport(extend_handler(COMPLETE))

        with pytest.raises(ConfigurationError, match="API key required"):
            SchemaPipeline(app_config, api_key=None, transport=transport)

        assert transport.requests == []

    def test_credential_from_environment(self, app_config, monkeypatch) -> None:
        monkeypatch.setenv("EXTEND_API_KEY", "from-env")
        pipeline = SchemaPipeline(app_config, transport=RecordingTransport(extend_handler([])))
        assert pipeline.api_key == "from-env"

    def test_missing_pdf(self, app_config, delays, tmp_path) -> None:
        pipeline, transport = _pipeline(app_config, delays, extend_handler(COMPLETE))
        with pytest.raises(ConfigurationError, match="not found"):
            pipeline.generate_from_file(str(tmp_path / "missing.pdf"))
        assert transport.requests == []

    def test_unknown_form_number(self, app_config, delays) -> None:
        pipeline, transport = _pipeline(app_config, delays, extend_handler(COMPLETE))
        with pytest.raises(ConfigurationError):
            pipeline.generate_from_form("Z-999")
        assert transport.requests == []


class TestStageFailures:
    def test_resolve(self, app_config, delays) -> None:
        pipeline, _ = _pipeline(app_config, delays, extend_handler(COMPLETE))
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate_from_form(FormInfo("SF-1", "Other", FormSource.OTHER))
        assert exc_info.value.stage == "resolve"

    def test_transfer(self, app_config, delays) -> None:
        def handler(request):
            if request.url.host == "www.uscis.gov":
                return httpx.Response(404, text="gone")
            return extend_handler(COMPLETE)(request)

        pipeline, transport = _pipeline(app_config, delays, handler)
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate_from_form(find_form("I-130"))

        assert exc_info.value.stage == "transfer"
        assert isinstance(exc_info.value.cause, TransferError)
        assert not exc_info.value.is_remote
        assert len(transport.requests) == 1

    def test_upload(self, app_config, delays, tmp_path) -> None:
        pipeline, transport = _pipeline(app_config, delays,
                                        lambda r: httpx.Response(413, text="too big"))
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(b"%PDF", "a.pdf", str(tmp_path / "a.json"))

        assert exc_info.value.stage == "upload"
        assert isinstance(exc_info.value.cause, UploadError)
        assert exc_info.value.is_remote
        assert len(transport.requests) == 1

    def test_job_start(self, app_config, delays, tmp_path) -> None:
        def handler(request):
            if request.url.path.endswith("/edit-runs"):
                return httpx.Response(400, text="bad file")
            return json_response({"id": "r1"})

        pipeline, transport = _pipeline(app_config, delays, handler)
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(b"%PDF", "a.pdf", str(tmp_path / "a.json"))

        assert exc_info.value.stage == "job_start"
        assert len(transport.requests) == 2

    def test_remote_failure_status(self, app_config, delays, tmp_path) -> None:
        statuses = [{"status": "pending"}, {"status": "failed"}]
        pipeline, _ = _pipeline(app_config, delays, extend_handler(statuses))
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(b"%PDF", "a.pdf", str(tmp_path / "a.json"))

        assert exc_info.value.stage == "extraction"
        assert isinstance(exc_info.value.cause, JobFailedError)
        assert not (tmp_path / "a.json").exists()

    def test_timeout(self, app_config, delays, tmp_path) -> None:
        statuses = [{"status": "running"}] * app_config.extend.max_attempts
        pipeline, _ = _pipeline(app_config, delays, extend_handler(statuses))
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(b"%PDF", "a.pdf", str(tmp_path / "a.json"))

        assert exc_info.value.stage == "extraction"
        assert isinstance(exc_info.value.cause, ExtractionTimeoutError)

    def test_persist(self, app_config, delays, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        pipeline, _ = _pipeline(app_config, delays, extend_handler(COMPLETE))

        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(b"%PDF", "a.pdf", str(blocker / "a.json"))

        assert exc_info.value.stage == "persist"
        assert not exc_info.value.is_remote

    def test_cancelled(self, app_config, delays, tmp_path) -> None:
        event = threading.Event()
        event.set()
        pipeline, transport = _pipeline(app_config, delays, extend_handler(COMPLETE),
                                        cancel_event=event)
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(b"%PDF", "a.pdf", str(tmp_path / "a.json"))

        assert isinstance(exc_info.value.cause, OperationCancelled)
        assert transport.requests == []


class TestGenerateBatch:
    def test_failures_do_not_stop_batch(self, app_config, delays, tmp_path) -> None:
        good = extend_handler(COMPLETE)

        def handler(request):
            if "i-485" in str(request.url):
                return httpx.Response(404, text="gone")
            return good(request)

        pipeline, _ = _pipeline(app_config, delays, handler)
        outcome = pipeline.generate_batch([find_form("I-485"), find_form("I-130")], str(tmp_path))

        assert (outcome.succeeded, outcome.failed) == (1, 1)
        assert outcome.items[0].error.startswith("transfer failed")
        assert outcome.items[1].field_count == 2
        assert os.path.exists(outcome.items[1].path)

    def test_non_object_schema_fails_extraction_stage(self, app_config, delays, tmp_path) -> None:
        statuses = [
            {"status": "complete", "outputSchema": ["x"]},
            {"status": "complete", "outputSchema": {"a": 1}},
        ]
        pipeline, _ = _pipeline(app_config, delays, extend_handler(statuses))
        outcome = pipeline.generate_batch([find_form("I-130"), find_form("I-485")], str(tmp_path))

        assert (outcome.succeeded, outcome.failed) == (1, 1)
        assert outcome.items[0].error.startswith("extraction failed")
        assert outcome.items[1].field_count == 1

    def test_unexpected_exception_is_item_failure(self, app_config, delays, tmp_path) -> None:
        pipeline, _ = _pipeline(app_config, delays, extend_handler(COMPLETE))
        forms = [find_form("I-130"), find_form("I-485")]
        real = pipeline.generate_from_form

        def flaky(form, output_dir=None):
            if form.form_number == "I-130":
                raise RuntimeError("unexpected failure")
            return real(form, output_dir=output_dir)

        pipeline.generate_from_form = flaky
        outcome = pipeline.generate_batch(forms, str(tmp_path))

        assert (outcome.succeeded, outcome.failed) == (1, 1)
        assert outcome.items[0].error == "unexpected failure"


class TestPersistence:
    def test_round_trip_field_count(self, tmp_path) -> None:
        result = ExtractionResult(schema={"a": 1, "b": {"c": 2}, "d": [1, 2]})
        path = save_result(result, str(tmp_path / "out" / "x.json"))

        loaded = ExtractionResult.load(path)
        assert loaded.field_count == 3
        assert loaded.schema == result.schema

    def test_json_schema_counts_properties(self) -> None:
        schema = {"type": "object", "properties": {"name": {}, "dob": {}, "a_number": {}}}
        assert ExtractionResult(schema=schema).field_count == 3

    def test_indented_and_unicode(self, tmp_path) -> None:
        path = save_result(ExtractionResult(schema={"name": "Fiancé(e)"}), str(tmp_path / "x.json"))
        with open(path, encoding="utf-8") as f:
            text = f.read()
        assert text == '{\n  "name": "Fiancé(e)"\n}'

    def test_default_output_path(self) -> None:
        assert default_output_path("/data/i-130.pdf") == "/data/i-130_Extend_Schema.json"
        assert default_output_path("i-130.pdf") == os.path.join(".", "i-130_Extend_Schema.json")
