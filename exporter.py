import logging

from flask import Flask, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from collector import MetricCollector
from stats_fetcher import StatsFetcher


def create_app(collector):
    app = Flask(__name__)
    registry = CollectorRegistry()
    registry.register(collector)
    app.config["METRICS_REGISTRY"] = registry

    @app.route('/metrics', methods=['GET'])
    def metrics():
        return Response(generate_latest(registry), status=200, content_type=CONTENT_TYPE_LATEST)

    return app


def build_collector(target_url, timeout=5.0, session=None):
    return MetricCollector(StatsFetcher(target_url, session=session, timeout=timeout))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    create_app(build_collector("http://localhost:8080")).run(port=9000)
