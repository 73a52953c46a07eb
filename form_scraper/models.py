"""Data models for forms, transfers, extraction jobs and batch results."""

import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FormSource(str, Enum):
    USCIS = "uscis"  # https://www.uscis.gov/sites/default/files/document/forms/{form}.pdf
    EOIR = "eoir"    # https://www.justice.gov/eoir/file/{id}/download
    OTHER = "other"


@dataclass(frozen=True)
class FormInfo:
    form_number: str
    display_name: str
    source: FormSource
    notes: Optional[str] = None


@dataclass(frozen=True)
class TransferRequest:
    url: str
    filename: str
    kind: str = "form"  # form, instructions


@dataclass
class JobHandle:
    file_id: str
    run_id: Optional[str] = None

    def require_run_id(self) -> str:
        if self.run_id is None:
            raise RuntimeError(f"Edit run not started for file {self.file_id}")
        return self.run_id


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["JobStatus"]:
        """Return the matching status, or None for anything unrecognised."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class PollResult:
    status: Optional[str]
    output_schema: Optional[dict] = None
    http_status: int = 200
    raw: str = ""


@dataclass
class ExtractionResult:
    schema: dict
    output_path: Optional[str] = None

    @property
    def field_count(self) -> int:
        # JSON-schema payloads describe their fields under "properties"
        props = self.schema.get("properties")
        if isinstance(props, dict):
            return len(props)
        return len(self.schema)

    def to_json(self) -> str:
        return json.dumps(self.schema, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: str) -> "ExtractionResult":
        with open(path, encoding="utf-8") as f:
            schema = json.load(f)
        return cls(schema=schema or {}, output_path=path)


@dataclass
class ItemOutcome:
    form_number: str
    success: bool
    bytes_written: int = 0
    path: Optional[str] = None
    error: Optional[str] = None
    instructions_status: str = "not_requested"  # not_requested, downloaded, not_available
    instructions_path: Optional[str] = None
    instructions_bytes: int = 0
    field_count: Optional[int] = None


@dataclass
class BatchOutcome:
    items: List[ItemOutcome] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def total_bytes(self) -> int:
        return sum(item.bytes_written + item.instructions_bytes for item in self.items)

    def record(self, outcome: ItemOutcome) -> None:
        with self._lock:
            self.items.append(outcome)
            if outcome.success:
                self.succeeded += 1
            else:
                self.failed += 1

    def failures(self) -> List[ItemOutcome]:
        return [item for item in self.items if not item.success]
