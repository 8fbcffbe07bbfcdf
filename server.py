"""Runs the synthetic target and the metrics exporter in one process.

Example:
    EXPORTER_FETCH_TIMEOUT=2 python server.py --legacy-stats-status
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

from werkzeug.serving import make_server

import exporter
import target_server
from config import Settings, configure_logging, parse_addr, positive_float

logger = logging.getLogger(__name__)


class ListenerBindError(Exception):
    pass


class InFlightTracker:
    """WSGI wrapper counting requests that are still being answered."""

    def __init__(self, app):
        self.app = app
        self._count = 0
        self._idle = threading.Condition()

    def __call__(self, environ, start_response):
        with self._idle:
            self._count += 1
        try:
            response = self.app(environ, start_response)
            try:
                return list(response)
            finally:
                close = getattr(response, "close", None)
                if close is not None:
                    close()
        finally:
            with self._idle:
                self._count -= 1
                self._idle.notify_all()

    @property
    def in_flight(self) -> int:
        with self._idle:
            return self._count

    def wait_idle(self, timeout: float | None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._count == 0, timeout)


class Listener:
    def __init__(self, name: str, addr: str, app):
        self.name = name
        self.addr = addr
        self.tracker = InFlightTracker(app)
        host, port = parse_addr(addr)
        try:
            self.server = make_server(host, port, self.tracker, threaded=True)
        except (OSError, SystemExit) as e:
            # werkzeug exits instead of raising when the port is taken
            raise ListenerBindError(f"{name} could not listen on {addr!r}: {e}") from e
        self.thread = threading.Thread(target=self.server.serve_forever, name=name, daemon=True)

    @property
    def port(self) -> int:
        return self.server.server_port

    def start(self) -> None:
        logger.info("%s listening on '%s'", self.name, self.addr)
        self.thread.start()

    def stop(self, timeout: float) -> None:
        if self.thread.is_alive():
            self.server.shutdown()
            self.thread.join(timeout)
        if not self.tracker.wait_idle(timeout):
            logger.warning("%s: %d request(s) still running after %.1fs",
                           self.name, self.tracker.in_flight, timeout)
        self.server.server_close()


class Supervisor:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.store = target_server.CounterStore()
        self.collector = exporter.build_collector(settings.target_url, timeout=settings.fetch_timeout)
        self.listeners: list[Listener] = []

    @property
    def target_listener(self) -> Listener:
        return self.listeners[0]

    @property
    def exporter_listener(self) -> Listener:
        return self.listeners[1]

    def start(self) -> None:
        apps = [
            ("HttpServer", self.settings.target_addr,
             target_server.create_app(self.store, legacy_stats_status=self.settings.legacy_stats_status)),
            ("PromHttpServer", self.settings.exporter_addr, exporter.create_app(self.collector)),
        ]
        try:
            for name, addr, app in apps:
                self.listeners.append(Listener(name, addr, app))
        except ListenerBindError:
            for listener in self.listeners:
                listener.server.server_close()
            self.listeners = []
            raise
        for listener in self.listeners:
            listener.start()

    def stop(self) -> None:
        for listener in self.listeners:
            listener.stop(self.settings.shutdown_timeout)
        self.collector.fetcher.close()


def parse_args(argv: list[str] | None, defaults: Settings | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Synthetic HTTP target with a Prometheus exporter for its /stats")
    if defaults is None:
        try:
            defaults = Settings.from_env()
        except ValueError as e:
            parser.error(f"invalid environment setting: {e}")
    parser.add_argument("--target-addr", default=defaults.target_addr, help="listen address of the synthetic target")
    parser.add_argument("--exporter-addr", default=defaults.exporter_addr, help="listen address of /metrics")
    parser.add_argument("--target-url", default=defaults.target_url, help="base URL the exporter scrapes")
    parser.add_argument("--fetch-timeout", type=positive_float, default=defaults.fetch_timeout)
    parser.add_argument("--shutdown-timeout", type=positive_float, default=defaults.shutdown_timeout)
    parser.add_argument("--legacy-stats-status", action="store_true", default=defaults.legacy_stats_status,
                        help="answer /stats with status 500 like the legacy target")
    parser.add_argument("--log-level", default=defaults.log_level)
    args = parser.parse_args(argv)

    for addr in (args.target_addr, args.exporter_addr):
        try:
            parse_addr(addr)
        except ValueError as e:
            parser.error(str(e))

    return Settings(
        target_addr=args.target_addr,
        exporter_addr=args.exporter_addr,
        target_url=args.target_url,
        fetch_timeout=args.fetch_timeout,
        shutdown_timeout=args.shutdown_timeout,
        legacy_stats_status=args.legacy_stats_status,
        log_level=args.log_level,
    )


def run(settings: Settings, stop_event: threading.Event) -> int:
    supervisor = Supervisor(settings)
    try:
        supervisor.start()
    except ListenerBindError as e:
        logger.error("%s", e)
        supervisor.collector.fetcher.close()
        return 1

    while not stop_event.wait(0.5):
        pass
    supervisor.stop()
    logger.info("Exiting")
    return 0


def main(argv: list[str] | None = None) -> int:
    settings = parse_args(argv)
    configure_logging(settings.log_level)

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("received %s", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    return run(settings, stop_event)


if __name__ == "__main__":
    sys.exit(main())
