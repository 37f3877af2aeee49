"""Liveness endpoint: GET /health answers 200 with an empty body."""

import threading

from flask import Flask
from werkzeug.serving import make_server

from .scaler_logger import ScalerLogger


logger = ScalerLogger("health").logger


def create_app() -> Flask:
    app = Flask(__name__)

    @app.route("/health")
    def health():
        return "", 200

    return app


class HealthServer:
    def __init__(self, port: int, host: str = "0.0.0.0"):
        self.server = make_server(host, port, create_app(), threaded=True)
        self._thread = threading.Thread(target=self.server.serve_forever, name="health", daemon=True)

    @property
    def port(self) -> int:
        return self.server.server_port

    def start(self):
        self._thread.start()
        logger.info(f"Health endpoint listening on :{self.port}/health")

    def stop(self):
        self.server.shutdown()
