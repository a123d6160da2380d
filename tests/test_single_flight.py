"""Tests for per-key request coalescing."""

import threading
import time

import pytest

from quoteflow.artifacts.single_flight import SingleFlight


class TestSingleFlight:
    def test_sequential_calls_each_run(self):
        flights = SingleFlight()
        calls = []

        assert flights.do("k", lambda: calls.append(1) or "a") == ("a", False)
        assert flights.do("k", lambda: calls.append(1) or "b") == ("b", False)
        assert len(calls) == 2

    def test_concurrent_callers_share_result(self):
        flights = SingleFlight()
        started = threading.Event()
        release = threading.Event()
        runs = []

        def work():
            runs.append(1)
            started.set()
            release.wait(timeout=5)
            return "pdf"

        results = []

        def call():
            results.append(flights.do("Q-1", work))

        leader = threading.Thread(target=call)
        leader.start()
        assert started.wait(timeout=5)

        followers = [threading.Thread(target=call) for _ in range(3)]
        for t in followers:
            t.start()
        # Give followers time to join the held flight
        time.sleep(0.2)
        release.set()
        for t in [leader] + followers:
            t.join(timeout=5)

        assert len(runs) == 1
        assert sorted(results) == [("pdf", False), ("pdf", True), ("pdf", True), ("pdf", True)]
        assert not flights.in_flight("Q-1")

    def test_exception_propagates_and_clears_flight(self):
        flights = SingleFlight()

        def fail():
            raise RuntimeError("render failed")

        with pytest.raises(RuntimeError):
            flights.do("Q-1", fail)
        assert not flights.in_flight("Q-1")

    def test_keys_are_independent(self):
        flights = SingleFlight()
        inner = []

        def outer():
            inner.append(flights.do("b", lambda: "inner"))
            return "outer"

        assert flights.do("a", outer) == ("outer", False)
        assert inner == [("inner", False)]
