"""Worker entrypoint for Cloud Run.

Runs a health check server next to the polling render worker. The health
endpoint reports the worker's own state, so a worker that has been asked to
stop answers 503 and stops receiving traffic while it finishes its phase.
"""

import json
import logging
import signal
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

from reelestate.config import get_settings
from reelestate.models.database import init_db
from reelestate.services.job_store import JobStore
from reelestate.worker.loop import Worker

logger = logging.getLogger(__name__)

HEALTH_PATHS = ("/", "/health")


def make_health_handler(worker: Worker) -> type[BaseHTTPRequestHandler]:
    """Build a request handler bound to ``worker``."""

    class WorkerHealthHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path.split("?", 1)[0] not in HEALTH_PATHS:
                self.send_error(404)
                return

            if worker.stopped:
                code, body = 503, {"status": "stopping", "service": "reelestate-worker"}
            else:
                code, body = 200, {"status": "healthy", "service": "reelestate-worker"}
            payload = json.dumps(body).encode()
            self.send_response(code)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format, *args):
            logger.debug("Health check: " + format, *args)

    return WorkerHealthHandler


def create_health_server(worker: Worker, port: int, host: str = "0.0.0.0") -> HTTPServer:
    return HTTPServer((host, port), make_health_handler(worker))


def run_worker(worker: Worker) -> None:
    """Run the render worker until SIGTERM/SIGINT."""

    def _shutdown(signum, frame):
        logger.info("Received signal %d, finishing current phase", signum)
        worker.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)
    worker.run_forever()


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    init_db()
    worker = Worker(JobStore(error_max_length=settings.error_max_length), settings)

    server = create_health_server(worker, settings.health_port)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    logger.info("Health server running on port %d", settings.health_port)

    try:
        run_worker(worker)
    finally:
        server.shutdown()
        server.server_close()


if __name__ == "__main__":
    main()
