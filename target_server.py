import json
import logging
import threading

from flask import Flask, Response, jsonify

logger = logging.getLogger(__name__)


class CounterStore:
    def __init__(self):
        self.success_count = 0
        self.error_count = 0
        self._lock = threading.Lock()

    def increment_success(self):
        with self._lock:
            self.success_count += 1

    def increment_error(self):
        with self._lock:
            self.error_count += 1

    def snapshot(self):
        with self._lock:
            return self.success_count, self.error_count


def stats_document(store):
    success_count, error_count = store.snapshot()
    # compact form
    return json.dumps(
        {"http200Requestcounter": success_count, "http500Requestcounter": error_count},
        separators=(",", ":"),
    )


def create_app(store=None, legacy_stats_status=False):
    """Build the synthetic target application.

    ``legacy_stats_status`` makes ``/stats`` answer with status 500, which is
    what scrapers written against the legacy target expect.
    """
    app = Flask(__name__)
    app.config["COUNTER_STORE"] = store if store is not None else CounterStore()
    stats_status = 500 if legacy_stats_status else 200

    @app.route('/test200', methods=['GET'])
    def two_hundred():
        app.config["COUNTER_STORE"].increment_success()
        return jsonify({"message": "HTTP Endpoint OK!"}), 200

    @app.route('/test500', methods=['GET'])
    def five_hundred():
        # simulated server error
        app.config["COUNTER_STORE"].increment_error()
        return jsonify({"message": "HTTP Endpoint Internal Error"}), 500

    @app.route('/stats', methods=['GET'])
    def stats():
        logger.info("HttpServer statistics")
        return Response(stats_document(app.config["COUNTER_STORE"]), status=stats_status,
                        mimetype="application/json")

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    create_app().run(port=8080)
