import json
import threading

import requests

from stats_fetcher import parse_stats
from target_server import CounterStore, create_app, stats_document


def test_counter_store_starts_at_zero():
    assert CounterStore().snapshot() == (0, 0)


def test_concurrent_increments_are_not_lost():
    store = CounterStore()
    per_thread = 500

    def hammer():
        for _ in range(per_thread):
            store.increment_success()
            store.increment_error()

    threads = [threading.Thread(target=hammer) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.snapshot() == (8 * per_thread, 8 * per_thread)


def test_concurrent_handler_calls_count_exactly(serve_app):
    store = CounterStore()
    base = serve_app(create_app(store))
    n = 40

    def call(path):
        requests.get(base + path, timeout=5)

    threads = [threading.Thread(target=call, args=("/test200",)) for _ in range(n)]
    threads += [threading.Thread(target=call, args=("/test500",)) for _ in range(n // 2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.snapshot() == (n, n // 2)


def test_success_endpoint():
    store = CounterStore()
    client = create_app(store).test_client()

    response = client.get("/test200")

    assert response.status_code == 200
    assert response.get_json() == {"message": "HTTP Endpoint OK!"}
    assert store.snapshot() == (1, 0)


def test_error_endpoint():
    store = CounterStore()
    client = create_app(store).test_client()

    response = client.get("/test500")

    assert response.status_code == 500
    assert response.get_json() == {"message": "HTTP Endpoint Internal Error"}
    assert store.snapshot() == (0, 1)


def test_stats_after_mixed_traffic():
    client = create_app().test_client()

    client.get("/test200")
    client.get("/test200")
    client.get("/test500")
    response = client.get("/stats")

    assert response.status_code == 200
    assert response.content_type == "application/json"
    assert response.get_data(as_text=True) == '{"http200Requestcounter":2,"http500Requestcounter":1}'


def test_stats_does_not_count():
    store = CounterStore()
    client = create_app(store).test_client()

    client.get("/stats")
    client.get("/stats")

    assert store.snapshot() == (0, 0)


def test_legacy_stats_status():
    client = create_app(legacy_stats_status=True).test_client()

    response = client.get("/stats")

    assert response.status_code == 500
    assert json.loads(response.get_data()) == {"http200Requestcounter": 0, "http500Requestcounter": 0}


def test_unknown_path_is_404():
    assert create_app().test_client().get("/nope").status_code == 404


def test_stats_document_parses_back_to_store_values():
    store = CounterStore()
    for _ in range(7):
        store.increment_success()
    for _ in range(3):
        store.increment_error()

    snapshot = parse_stats(stats_document(store))

    assert (snapshot.success_count, snapshot.error_count) == (7.0, 3.0)
