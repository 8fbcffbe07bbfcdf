import argparse
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import requests

logger = logging.getLogger(__name__)


class TrafficDriver:
    def __init__(self, target_url, session=None, timeout=5.0):
        self.target_url = target_url.rstrip("/")
        self.session = session if session is not None else requests
        self.timeout = timeout
        self.status_counts = {}
        self._lock = threading.Lock()

    def send_request(self, path):
        response = self.session.get(self.target_url + path, timeout=self.timeout)
        with self._lock:
            self.status_counts[response.status_code] = self.status_counts.get(response.status_code, 0) + 1
        return response.status_code

    def run(self, ok_requests, error_requests, workers=4):
        paths = ["/test200"] * ok_requests + ["/test500"] * error_requests
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # list() surfaces the first request that raised
            list(pool.map(self.send_request, paths))
        logger.info("sent %d requests: %s", len(paths), self.status_counts)
        return dict(self.status_counts)

    def stats(self):
        response = self.session.get(self.target_url + "/stats", timeout=self.timeout)
        return response.json()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Send traffic to the synthetic target")
    parser.add_argument("--target-url", default="http://localhost:8080")
    parser.add_argument("--ok", type=int, default=4, help="requests to /test200")
    parser.add_argument("--errors", type=int, default=1, help="requests to /test500")
    parser.add_argument("--workers", type=int, default=4)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    driver = TrafficDriver(args.target_url)
    driver.run(args.ok, args.errors, workers=args.workers)
    print("Stats:", driver.stats())


if __name__ == "__main__":
    main()
