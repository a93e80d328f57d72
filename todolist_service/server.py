from __future__ import annotations

from datetime import timedelta
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import json
import time
from typing import Any, Dict, Optional, Tuple, Type
from urllib.parse import urlsplit

import ulid

from . import APP_NAME, __version__
from .dao import BackendKind, Store, create_store
from .errors import StartupError
from .logs import get_logger
from .stats import Statistics, StatisticsReporter

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} must look like host:port")
    return host.strip("[]") or "0.0.0.0", int(port)


class WebServer:
    def __init__(self, store: Store, statistics_interval: timedelta) -> None:
        self.store = store
        self.statistics_interval = statistics_interval
        self.statistics = Statistics()
        self.reporter = StatisticsReporter(self.statistics, statistics_interval)
        self._httpd: Optional[ThreadingHTTPServer] = None

    @property
    def server_address(self) -> Tuple[str, int]:
        if self._httpd is None:
            raise RuntimeError("server is not bound")
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def bind(self, address: str) -> None:
        host, port = parse_address(address)
        try:
            self._httpd = ThreadingHTTPServer((host, port), _make_handler(self))
        except OSError as exc:
            self.store.close()
            raise StartupError(f"cannot listen on {address}: {exc}") from exc
        logger.info("listening", address=address, port=self.server_address[1], backend=self.store.kind.value)

    def serve_forever(self) -> None:
        if self._httpd is None:
            raise RuntimeError("server is not bound")
        self.reporter.start()
        try:
            self._httpd.serve_forever()
        finally:
            self.reporter.stop()
            self._httpd.server_close()
            self.store.close()

    def run(self, address: str) -> None:
        self.bind(address)
        self.serve_forever()

    def shutdown(self) -> None:
        # must be called from another thread than the one serving
        if self._httpd is not None:
            self._httpd.shutdown()


def _make_handler(web: WebServer) -> Type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        server_version = f"{APP_NAME}/{__version__}"
        sys_version = ""

        def log_message(self, format: str, *args: Any) -> None:
            return

        def _send_json(self, status: int, payload: Dict[str, Any], request_id: str) -> None:
            body = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.send_header(REQUEST_ID_HEADER, request_id)
            self.end_headers()
            self.wfile.write(body)

        def _route(self, path: str, request_id: str) -> int:
            if path == "/health":
                ok = web.store.ping()
                status = 200 if ok else 503
                self._send_json(status, {"ok": ok, "backend": web.store.kind.value}, request_id)
                return status
            if path == "/version":
                self._send_json(200, {"name": APP_NAME, "version": __version__}, request_id)
                return 200
            if path == "/stats":
                payload = {
                    "interval_seconds": web.statistics_interval.total_seconds(),
                    "last": web.reporter.last,
                }
                self._send_json(200, payload, request_id)
                return 200
            self._send_json(404, {"ok": False, "error": "not found"}, request_id)
            return 404

        def do_GET(self) -> None:
            start_ms = _now_ms()
            request_id = self.headers.get(REQUEST_ID_HEADER) or str(ulid.new())
            path = urlsplit(self.path).path
            status = 500
            try:
                status = self._route(path, request_id)
            except Exception:
                logger.exception("request_failed", request_id=request_id, path=path)
                status = 500
                self._send_json(500, {"ok": False, "error": "internal"}, request_id)
            finally:
                latency_ms = _now_ms() - start_ms
                web.statistics.record(status, latency_ms)
                logger.info(
                    "request",
                    request_id=request_id,
                    method=self.command,
                    path=path,
                    status=status,
                    latency_ms=latency_ms,
                )

    return Handler


def build_web_server(db: str, migration_path: str, kind: BackendKind, statistics_interval: timedelta) -> WebServer:
    store = create_store(kind, db, migration_path)
    logger.debug("store_ready", backend=kind.value)
    return WebServer(store, statistics_interval)
