"""Client side of the target's ``/stats`` endpoint."""
import json
import logging
import math
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

STATS_PATH = "/stats"
SUCCESS_FIELD = "http200Requestcounter"
ERROR_FIELD = "http500Requestcounter"


class StatsError(Exception):
    """Base class for everything that can go wrong during one fetch."""


class FetchError(StatsError):
    pass


class NetworkError(FetchError):
    pass


class ReadError(FetchError):
    pass


class ParseError(StatsError):
    pass


@dataclass(frozen=True)
class StatsSnapshot:
    success_count: float
    error_count: float


def _reject_constant(name):
    raise ParseError(f"stats body contains non-JSON constant {name}")


def parse_stats(body):
    try:
        document = json.loads(body, parse_constant=_reject_constant)
    except ValueError as e:
        raise ParseError(f"stats body is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise ParseError("stats body is not a JSON object")

    values = []
    for field in (SUCCESS_FIELD, ERROR_FIELD):
        if field not in document:
            raise ParseError(f"stats body has no {field!r} field")
        value = document[field]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParseError(f"{field!r} is not a number: {value!r}")
        try:
            value = float(value)
        except OverflowError as e:
            raise ParseError(f"{field!r} is out of range") from e
        if not math.isfinite(value):
            raise ParseError(f"{field!r} is not finite")
        if value < 0:
            raise ParseError(f"{field!r} is negative: {value!r}")
        values.append(value)
    return StatsSnapshot(success_count=values[0], error_count=values[1])


class StatsFetcher:
    def __init__(self, target_url, session=None, timeout=5.0):
        if timeout <= 0:
            raise ValueError(f"fetch timeout must be positive, got {timeout!r}")
        self.target_url = target_url.rstrip("/")
        # without a session every fetch opens its own connection
        self.session = session
        self.timeout = timeout

    @property
    def stats_url(self):
        return self.target_url + STATS_PATH

    def fetch(self):
        """GET the stats document once and parse it.

        The status code is ignored on purpose: targets running in legacy mode
        answer ``/stats`` with 500 and a well-formed body. Raises
        ``NetworkError``, ``ReadError`` or ``ParseError``.
        """
        try:
            http = self.session if self.session is not None else requests
            response = http.get(self.stats_url, timeout=self.timeout, stream=True)
        except requests.exceptions.RequestException as e:
            logger.error("Could not fetch stats endpoint of target: %s", self.target_url)
            raise NetworkError(str(e)) from e

        with response:
            try:
                body = response.content
            except (requests.exceptions.ChunkedEncodingError,
                    requests.exceptions.ContentDecodingError) as e:
                logger.error("Can't read body of response")
                raise ReadError(str(e)) from e
            except requests.exceptions.RequestException as e:
                # read timeouts surface here once the headers are in
                raise NetworkError(str(e)) from e

        logger.debug("stats response %s: %r", response.status_code, body)
        try:
            return parse_stats(body)
        except ParseError:
            logger.error("Could not parse JSON response for target")
            raise

    def close(self):
        if self.session is not None:
            self.session.close()
