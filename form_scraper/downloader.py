"""HTTP download engine for form PDFs: shared client, size limits, best-effort fetches."""

import logging
import os
import threading
from typing import Optional

import httpx

from .config import DownloadConfig
from .errors import OperationCancelled, TransferError, TransportError, UnavailableError

logger = logging.getLogger("form_scraper")


class Downloader:
    def __init__(self, config: DownloadConfig, transport: Optional[httpx.BaseTransport] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.config = config
        self.cancel_event = cancel_event
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(self.config.timeout, connect=30),
                    follow_redirects=True,
                    headers={"User-Agent": self.config.user_agent},
                    transport=self._transport,
                )
            return self._client

    def close(self):
        if self._client and not self._client.is_closed:
            self._client.close()

    def __enter__(self) -> "Downloader":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def fetch(self, url: str) -> bytes:
        """GET a document and return its bytes.

        Raises TransferError on a non-success status (or an HTML page / oversized
        body where a PDF was expected) and TransportError when the request
        never got a response.
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelled(f"Cancelled before fetching {url}")

        try:
            with self.client.stream("GET", url) as resp:
                if resp.is_error:
                    body = resp.read().decode(resp.encoding or "utf-8", errors="replace")
                    raise TransferError(resp.status_code, body)

                # Error and consent pages come back as 200 text/html
                ct = resp.headers.get("content-type", "")
                if "text/html" in ct:
                    raise TransferError(resp.status_code, f"Expected PDF but got HTML (content-type: {ct})")

                declared = self._declared_length(resp)
                if declared is not None and declared > self.config.max_file_size:
                    raise TransferError(resp.status_code, f"File too large: {declared} bytes")

                data = bytearray()
                for chunk in resp.iter_bytes(chunk_size=65536):
                    data.extend(chunk)
                    if len(data) > self.config.max_file_size:
                        raise TransferError(
                            resp.status_code,
                            f"File exceeded max size during download: {len(data)} bytes",
                        )
        except httpx.RequestError as e:
            # also covers redirect loops and undecodable bodies
            raise TransportError(url, e) from e

        logger.debug(f"Fetched {url} ({len(data):,} bytes)")
        return bytes(data)

    @staticmethod
    def _declared_length(resp: httpx.Response) -> Optional[int]:
        value = resp.headers.get("content-length")
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            raise TransferError(resp.status_code, f"Invalid content-length header: {value!r}") from None

    def fetch_optional(self, url: str) -> bytes:
        """Like fetch, but every failure is reported as UnavailableError."""
        try:
            return self.fetch(url)
        except OperationCancelled:
            raise
        except (TransferError, TransportError) as e:
            raise UnavailableError(url, e) from e

    @staticmethod
    def save(data: bytes, dest_dir: str, filename: str) -> str:
        os.makedirs(dest_dir, exist_ok=True)
        local_path = os.path.join(dest_dir, filename)
        with open(local_path, "wb") as f:
            f.write(data)
        return local_path
