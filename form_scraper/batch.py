"""Batch download of catalog forms, one independent attempt per form.

A form that fails is recorded and the batch moves on. Instruction PDFs are
best-effort: their absence is noted on the item but never fails it.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from .downloader import Downloader
from .errors import OperationCancelled
from .models import BatchOutcome, FormInfo, ItemOutcome
from .sources import transfer_requests

logger = logging.getLogger("form_scraper")


class BatchDownloader:
    def __init__(self, downloader: Downloader, cancel_event: Optional[threading.Event] = None):
        self.downloader = downloader
        self.cancel_event = cancel_event

    def run(self, forms: Sequence[FormInfo], output_dir: str, include_instructions: bool = False,
            workers: int = 1,
            on_item: Optional[Callable[[ItemOutcome], None]] = None) -> BatchOutcome:
        """Download every form into output_dir and return the aggregate outcome."""
        outcome = BatchOutcome()
        if not forms:
            logger.info("[batch] Nothing to download")
            return outcome

        logger.info(f"[batch] Downloading {len(forms)} form(s) to {output_dir} "
                    f"(workers={workers}, instructions={include_instructions})")

        def process(form: FormInfo):
            item = self.download_one(form, output_dir, include_instructions)
            outcome.record(item)
            if on_item is not None:
                on_item(item)

        if workers <= 1:
            for form in forms:
                process(form)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                # list() re-raises anything process() let escape
                list(pool.map(process, forms))

            order = {form.form_number: i for i, form in enumerate(forms)}
            outcome.items.sort(key=lambda item: order.get(item.form_number, len(order)))

        logger.info(f"[batch] Done: {outcome.succeeded} downloaded, {outcome.failed} failed")
        return outcome

    def download_one(self, form: FormInfo, output_dir: str,
                     include_instructions: bool = False) -> ItemOutcome:
        """Attempt a single form. Never raises for per-item failures."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            return ItemOutcome(form.form_number, success=False, error="cancelled")

        try:
            requests = transfer_requests(form, include_instructions)
            primary = requests[0]
            data = self.downloader.fetch(primary.url)
            path = self.downloader.save(data, output_dir, primary.filename)
        except OperationCancelled:
            return ItemOutcome(form.form_number, success=False, error="cancelled")
        except Exception as e:
            logger.error(f"[batch] Failed: {form.form_number}: {e}")
            return ItemOutcome(form.form_number, success=False, error=str(e))

        item = ItemOutcome(form.form_number, success=True, bytes_written=len(data), path=path)
        logger.info(f"[batch] Downloaded: {form.form_number} ({len(data):,} bytes)")

        if include_instructions:
            self._download_instructions(form, requests[1:], output_dir, item)
        return item

    def _download_instructions(self, form: FormInfo, requests: List, output_dir: str,
                               item: ItemOutcome):
        if not requests:
            item.instructions_status = "not_available"
            return

        request = requests[0]
        try:
            data = self.downloader.fetch_optional(request.url)
            item.instructions_path = self.downloader.save(data, output_dir, request.filename)
        except Exception as e:
            item.instructions_status = "not_available"
            logger.warning(f"[batch] Instructions not available for {form.form_number}: {e}")
            return

        item.instructions_status = "downloaded"
        item.instructions_bytes = len(data)
        logger.info(f"[batch] Downloaded instructions: {form.form_number} ({len(data):,} bytes)")
