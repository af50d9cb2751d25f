"""
Http seam.

The sample source and the sink publisher talk http through this narrow
interface so tests can swap in a fake client. The default implementation uses
urllib and has no third party deps.

Status codes are returned, not raised. Only failures that produce no response
at all become TransportError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from xen_telemetry.core.errors import TransportError


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpClient(Protocol):
    """Simple http client interface for testability."""

    def get_text(self, url: str, headers: dict[str, str]) -> HttpResponse:
        """GET the url and return the decoded body."""

    def post_json(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> HttpResponse:
        """POST payload as json and return the decoded body."""


@dataclass
class UrllibHttpClient(HttpClient):
    """Default http client using urllib."""

    timeout_seconds: int = 10

    def _send(self, req: Request) -> HttpResponse:
        try:
            with urlopen(req, timeout=self.timeout_seconds) as resp:
                body = resp.read().decode("utf-8", errors="replace")
                return HttpResponse(status=resp.status, body=body)
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            return HttpResponse(status=exc.code, body=body)
        except (URLError, OSError) as exc:
            raise TransportError(f"{req.get_method()} {req.full_url} failed: {exc}") from exc

    def get_text(self, url: str, headers: dict[str, str]) -> HttpResponse:
        req = Request(url, headers=headers, method="GET")
        return self._send(req)

    def post_json(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> HttpResponse:
        data = json.dumps(payload).encode("utf-8")
        req = Request(url, data=data, headers=headers, method="POST")
        return self._send(req)
