"""Local HTTP proxy relaying requests to the OpenAI API.

``ALL /openai/<path>`` is forwarded to ``https://api.openai.com/<path>`` with
the configured API key, so tools on the local network can call the API
without a key of their own. ``ALL /proxy/<url>`` forwards to any absolute URL.

The server runs on a daemon thread next to the interactive loop and shares
no state with it besides the ``on_request``/``on_error`` logging callbacks.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Callable, List, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from ..utils.system import lan_addresses

logger = logging.getLogger(__name__)

OPENAI_ORIGIN = "https://api.openai.com"
DEFAULT_PORT = 3000

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

# Headers that describe a single connection and must not be relayed.
HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}

# httpx decodes the body, so the encoding header no longer applies.
RESPONSE_EXCLUDED = HOP_BY_HOP | {"content-encoding"}


class ProxyError(Exception):
    """The proxy server could not be started or stopped."""


def _is_json(body: bytes) -> bool:
    try:
        return isinstance(json.loads(body), (dict, list))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return False


def _forward_headers(headers, exclude=HOP_BY_HOP) -> dict:
    return {k: v for k, v in headers.items() if k.lower() not in exclude}


def create_app(
    api_key: Optional[str] = None,
    organization: Optional[str] = None,
    *,
    upstream: str = OPENAI_ORIGIN,
    on_request: Optional[Callable[[Request], None]] = None,
    on_error: Optional[Callable[[Exception], None]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the proxy application."""
    app = FastAPI(title="chatgpt-terminal proxy", docs_url=None, redoc_url=None)

    async def relay(request: Request, target: str, inject_auth: bool) -> Response:
        if on_request:
            on_request(request)

        headers = _forward_headers(request.headers)
        if inject_auth:
            lowered = {k.lower() for k in headers}
            if api_key and "authorization" not in lowered:
                headers["Authorization"] = f"Bearer {api_key}"
            if organization and "openai-organization" not in lowered:
                headers["OpenAI-Organization"] = organization

        client = httpx.AsyncClient(timeout=None, transport=transport)
        upstream_request = client.build_request(
            request.method,
            target,
            params=list(request.query_params.multi_items()),
            headers=headers,
            content=await request.body(),
        )
        try:
            response = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            if on_error:
                on_error(exc)
            return PlainTextResponse(f"Internal Server Error: {exc}", status_code=500)

        if response.status_code >= 400:
            body = await response.aread()
            await response.aclose()
            await client.aclose()
            if on_error:
                on_error(ProxyError(f"{target} answered {response.status_code}"))
            if _is_json(body):
                return Response(body, status_code=response.status_code, media_type="application/json")
            return PlainTextResponse(
                f"Internal Server Error: {response.reason_phrase}({response.status_code})",
                status_code=response.status_code,
            )

        async def close() -> None:
            await response.aclose()
            await client.aclose()

        return StreamingResponse(
            response.aiter_bytes(),
            status_code=response.status_code,
            headers=_forward_headers(response.headers, RESPONSE_EXCLUDED),
            background=BackgroundTask(close),
        )

    @app.api_route("/openai/{path:path}", methods=METHODS)
    async def relay_openai(path: str, request: Request) -> Response:
        return await relay(request, f"{upstream.rstrip('/')}/{path}", inject_auth=True)

    @app.api_route("/proxy/{url:path}", methods=METHODS)
    async def relay_any(url: str, request: Request) -> Response:
        if not url.startswith(("http://", "https://")):
            return PlainTextResponse(f"Bad Request: '{url}' is not an absolute URL", status_code=400)
        return await relay(request, url, inject_auth=False)

    return app


class ProxyServer:
    """Run a uvicorn server for *app* on a background thread."""

    def __init__(self, app: FastAPI, port: int = DEFAULT_PORT, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        config = uvicorn.Config(app, host=host, port=port, log_level="warning", lifespan="off")
        self.server = uvicorn.Server(config)
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _serve(self) -> None:
        try:
            self.server.run()
        # uvicorn exits with SystemExit when the port cannot be bound
        except OSError as exc:
            self._error = str(exc)
        except SystemExit:
            self._error = "address already in use or not permitted"

    def start(self, timeout: float = 5.0) -> None:
        self._thread = threading.Thread(target=self._serve, name="proxy-server", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self.server.started:
            if not self._thread.is_alive():
                reason = self._error or "server stopped during startup"
                raise ProxyError(f"Cannot listen on port {self.port}: {reason}")
            if time.monotonic() > deadline:
                self.server.should_exit = True
                raise ProxyError(f"Timed out starting the proxy on port {self.port}")
            time.sleep(0.05)
        logger.info("proxy listening on %s:%d", self.host, self.port)

    def close(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self.server.should_exit = True
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise ProxyError(f"Proxy on port {self.port} did not shut down")
        self._thread = None
        logger.info("proxy on port %d closed", self.port)

    def urls(self) -> List[str]:
        hosts = lan_addresses()[:1] + ["localhost"]
        return [f"http://{host}:{self.port}" for host in hosts]
