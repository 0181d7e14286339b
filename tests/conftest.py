"""Shared test doubles for the publisher tests."""
from collections import defaultdict

import pytest


class MockChannel:
    """Records primitive calls in order; returns queued results (default True)."""

    def __init__(self, results=None):
        self.calls = []
        self.results = list(results or [])
        self.listeners = defaultdict(list)

    def _result(self):
        return self.results.pop(0) if self.results else True

    def publish(self, exchange_name, routing_key, content, options):
        self.calls.append(("publish", exchange_name, routing_key, content, options))
        return self._result()

    def send_to_queue(self, queue, content, options):
        self.calls.append(("send_to_queue", queue, content, options))
        return self._result()

    def on(self, event, callback):
        self.listeners[event].append(callback)

    def emit(self, event):
        for callback in self.listeners[event]:
            callback()

    def calls_to(self, primitive):
        return [call for call in self.calls if call[0] == primitive]


class MockClient:
    def __init__(self):
        self.ready_listeners = []

    def add_ready_listener(self, callback):
        self.ready_listeners.append(callback)

    def trigger_ready(self, channel):
        for listener in self.ready_listeners:
            listener(channel)


class FakeScheduler:
    """Collects deferred callbacks; ``run_pending`` plays the next scheduler turn."""

    def __init__(self):
        self.pending = []

    def __call__(self, callback):
        self.pending.append(callback)

    def run_pending(self):
        pending, self.pending = self.pending, []
        for callback in pending:
            callback()


@pytest.fixture
def channel():
    return MockChannel()


@pytest.fixture
def client():
    return MockClient()


@pytest.fixture
def scheduler():
    return FakeScheduler()
