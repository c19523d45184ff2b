"""Flask application factory and HTTP routes."""

from __future__ import annotations

import logging
import threading
from socketserver import ThreadingMixIn
from typing import Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST
from werkzeug.middleware.proxy_fix import ProxyFix

from ..config import AppConfig
from ..metrics import MetricSink
from ..runner import Runner

LOGGER = logging.getLogger(__name__)

INDEX_TEMPLATE = """<html>
<head><title>ndt7 exporter</title></head>
<body>
<h1>ndt7 exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def create_web_app(config: AppConfig, sink: MetricSink, runner: Optional[Runner] = None) -> Flask:
    app = Flask(__name__)

    if config.web.reverse_proxy_headers:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    metrics_path = config.web.metrics_path

    @app.route("/")
    def index():
        return Response(INDEX_TEMPLATE.format(path=metrics_path), mimetype="text/html")

    @app.get(metrics_path)
    def metrics():
        return Response(sink.render(), content_type=CONTENT_TYPE_LATEST)

    @app.get("/api/status")
    def api_status():
        if runner is None:
            return jsonify({"running": False})
        next_run = runner.scheduler.next_run_time
        return jsonify(
            {
                "running": runner.scheduler.started,
                "directions": [direction.value for direction in runner.directions],
                "target": runner.config.target_kind,
                "scheme": runner.config.scheme,
                "timeout_seconds": runner.config.timeout,
                "next_run": next_run.isoformat() if next_run else None,
            }
        )

    return app


class ThreadedWSGIServer(ThreadingMixIn, WSGIServer):
    """WSGI server handling each scrape in its own thread."""

    daemon_threads = True
    allow_reuse_address = True


class LoggingRequestHandler(WSGIRequestHandler):
    def log_message(self, format, *args):  # pylint: disable=redefined-builtin
        LOGGER.debug("%s - %s", self.address_string(), format % args)


class MetricsServer:
    """Serves the Flask app from a daemon thread, independent of the test loop."""

    def __init__(self, app: Flask, host: str, port: int) -> None:
        # Binding happens here so an unusable address fails at startup
        self.server = make_server(
            host,
            port,
            app,
            server_class=ThreadedWSGIServer,
            handler_class=LoggingRequestHandler,
        )
        self.host = host
        self.thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.server_port

    def start(self) -> None:
        self.thread = threading.Thread(
            target=self.server.serve_forever,
            name="metrics-server",
            daemon=True,
        )
        self.thread.start()
        LOGGER.info("Serving metrics on http://%s:%s", self.host, self.port)

    def shutdown(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        if self.thread is not None and self.thread.is_alive():
            self.thread.join(timeout=1.0)
        self.thread = None
