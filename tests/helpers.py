import json
from typing import Callable, List

import httpx


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it was handed."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def pdf_response(data: bytes = b"%PDF-1.7 test") -> httpx.Response:
    return httpx.Response(200, content=data, headers={"content-type": "application/pdf"})


def json_response(body: dict, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(body).encode(),
                          headers={"content-type": "application/json"})


def extend_handler(statuses: List[dict], file_id: str = "r1", run_id: str = "j1",
                   pdf: bytes = b"%PDF-1.7 test") -> Callable[[httpx.Request], httpx.Response]:
    """Routes form downloads and the three Extend endpoints; poll bodies come from ``statuses``."""
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.url.host != "api.extend.app":
            return pdf_response(pdf)
        if request.method == "POST" and path == "/v1/files":
            return json_response({"id": file_id})
        if request.method == "POST" and path == f"/v1/files/{file_id}/edit-runs":
            return json_response({"id": run_id})
        if request.method == "GET" and path == f"/v1/edit-runs/{run_id}":
            return json_response(remaining.pop(0))
        return json_response({"error": "not found"}, status=404)

    return handler
