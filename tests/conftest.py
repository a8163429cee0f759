"""Shared fixtures for the node metrics tests."""

import inspect
from typing import Any, Callable, Dict, List, Optional

import pytest

from budinfra.commons.context import RequestContext
from budinfra.node_metrics.dispatcher import QueryDispatcher
from tests.fixtures.search_responses import build_test_catalog


def call_kind(call: Dict[str, Any]) -> str:
    """Classify a recorded search call as `exists`, `probe` or `metric`."""
    if "terminate_after" in call:
        return "exists"
    aggs = call.get("aggs", {})
    if "modules" in aggs:
        return "probe"
    if "timeseries" in aggs:
        return "metric"
    return "unknown"


def metric_filter(call: Dict[str, Any]) -> Dict[str, Any]:
    """The node filter of a metric query, the clause following the time range."""
    return call["query"]["bool"]["filter"][1]["match"]


class FakeSearchClient:
    """Stands in for `AsyncElasticsearch`, recording every `search` call.

    `handler` receives the keyword arguments of a call and returns the reply, an exception to raise, or an
    awaitable producing the reply.
    """

    def __init__(self, handler: Optional[Callable[[Dict[str, Any]], Any]] = None):
        self.handler = handler or (lambda call: {})
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def search(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        result = self.handler(kwargs)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True

    def calls_of(self, kind: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call_kind(call) == kind]


@pytest.fixture
def fake_client():
    return FakeSearchClient()


@pytest.fixture
def dispatcher(fake_client):
    return QueryDispatcher(fake_client)


@pytest.fixture
def context():
    return RequestContext()


@pytest.fixture
def test_catalog():
    return build_test_catalog()
