"""Unit tests for NodeMetricsService class."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from elasticsearch import ApiError
from elasticsearch import ConnectionError as ESConnectionError

from budinfra.commons.context import RequestContext
from budinfra.commons.exceptions import (
    BackendUnavailable,
    ConfigurationError,
    MalformedResult,
    ModelRequirementError,
    NodeNotFound,
    RequestCancelled,
)
from budinfra.node_metrics.services import NodeMetricsService
from tests.conftest import FakeSearchClient, call_kind, metric_filter
from tests.fixtures.search_responses import (
    build_request,
    existence_reply,
    histogram_reply,
    period_reply,
)


def metric_name(call):
    """The metric a metric query was built for, read from its aggregation names."""
    name = next(iter(call["aggs"]["timeseries"]["aggs"]))
    return name.split("__")[0]


def backend(exists=True, periods=(), buckets=None, fail=()):
    """Handler answering existence checks, interval probes and metric queries."""
    buckets = buckets or {}

    def handler(call):
        kind = call_kind(call)
        if kind == "exists":
            return existence_reply(1 if exists else 0)
        if kind == "probe":
            return period_reply(periods)
        metric = metric_name(call)
        if metric in fail:
            return ApiError("search_phase_execution_exception", meta=Mock(status=500), body={})
        return histogram_reply(buckets.get(metric, []))

    return handler


@pytest.fixture
def service(dispatcher, test_catalog):
    """Create a NodeMetricsService on the fake client and the test catalog."""
    return NodeMetricsService(dispatcher, catalog=test_catalog)


class TestNodeMetricsService:
    """Test cases for NodeMetricsService."""

    @pytest.mark.asyncio
    async def test_end_to_end(self, fake_client, service, context):
        fake_client.handler = backend(
            buckets={
                "cpu": [
                    {"key": 1000, "doc_count": 2, "cpu__avg": {"value": 0.5}},
                    {"key": 2000, "doc_count": 2, "cpu__avg": {"value": 0.6}},
                ],
                "memory": [{"key": 1000, "doc_count": 1, "memory__avg": {"value": 40}}],
            }
        )

        results = await service.get_metrics(context, build_request(["cpu", "memory"]))

        assert [result.id for result in results] == ["cpu", "memory"]
        cpu, memory = results
        assert len(cpu.series) == 1
        assert (cpu.series[0].id, cpu.series[0].label) == ("cpu", "CPU")
        assert [(point.timestamp, point.value) for point in cpu.series[0].data] == [(1000, 0.5), (2000, 0.6)]
        assert (memory.series[0].id, memory.series[0].label) == ("memory", "Memory")
        assert [(point.timestamp, point.value) for point in memory.series[0].data] == [(1000, 40)]

    @pytest.mark.asyncio
    async def test_node_not_found_stops_after_existence_check(self, fake_client, service, context):
        fake_client.handler = backend(exists=False)

        with pytest.raises(NodeNotFound) as exc_info:
            await service.get_metrics(context, build_request(["cpu", "memory"]))

        assert exc_info.value.message == "node-1 does not exist."
        assert exc_info.value.details["id_field"] == "host.name"
        assert len(fake_client.calls) == 1
        assert call_kind(fake_client.calls[0]) == "exists"

    @pytest.mark.asyncio
    async def test_existence_check_targets_metric_pattern(self, fake_client, service, context):
        fake_client.handler = backend()

        await service.get_metrics(context, build_request(["memory"]))

        exists = fake_client.calls_of("exists")[0]
        assert exists["index"] == "metrics-*,logs-*"
        assert exists["query"] == {"match": {"host.name": "node-1"}}

    @pytest.mark.asyncio
    async def test_existence_check_precedes_metric_queries(self, fake_client, service, context):
        fake_client.handler = backend()

        await service.get_metrics(context, build_request(["cpu", "memory", "load"]))

        kinds = [call_kind(call) for call in fake_client.calls]
        assert kinds[0] == "exists"
        assert kinds.count("exists") == 1
        assert kinds.count("metric") == 3

    @pytest.mark.asyncio
    async def test_unknown_metric_fails_without_io(self, fake_client, service, context):
        fake_client.handler = backend()

        with pytest.raises(ConfigurationError) as exc_info:
            await service.get_metrics(context, build_request(["cpu", "diskUsage"]))

        assert exc_info.value.metric_id == "diskUsage"
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_cloud_model_requires_cloud_id(self, fake_client, service, context):
        fake_client.handler = backend()

        with pytest.raises(ModelRequirementError) as exc_info:
            await service.get_metrics(context, build_request(["cloudCpu"]))

        assert exc_info.value.metric_id == "cloudCpu"
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_cloud_model_filters_on_cloud_id(self, fake_client, service, context):
        fake_client.handler = backend()

        await service.get_metrics(context, build_request(["cloudCpu", "memory"], cloud_id="i-0abc"))

        filters = {metric_name(call): metric_filter(call) for call in fake_client.calls_of("metric")}
        assert filters["cpu"] == {"cloud.instance.id": "i-0abc"}
        assert filters["memory"] == {"host.name": "node-1"}

    @pytest.mark.asyncio
    async def test_probed_period_raises_interval(self, fake_client, service, context):
        fake_client.handler = backend(periods=[("system.cpu", 60000)])

        await service.get_metrics(context, build_request(["cpu"], to_time=600_000, interval="10s"))

        probe = fake_client.calls_of("probe")[0]
        assert probe["index"] == "logs-*,metrics-*"
        assert probe["aggs"]["modules"]["terms"]["include"] == ["system.cpu"]
        metric = fake_client.calls_of("metric")[0]
        assert metric["aggs"]["timeseries"]["date_histogram"]["fixed_interval"] == "60s"

    @pytest.mark.asyncio
    async def test_interval_hint_kept_without_period(self, fake_client, service, context):
        fake_client.handler = backend(periods=[])

        await service.get_metrics(context, build_request(["cpu"], to_time=600_000, interval="10s"))

        metric = fake_client.calls_of("metric")[0]
        assert metric["aggs"]["timeseries"]["date_histogram"]["fixed_interval"] == "10s"

    @pytest.mark.asyncio
    async def test_metric_without_requirements_is_not_probed(self, fake_client, service, context):
        fake_client.handler = backend()

        await service.get_metrics(context, build_request(["memory"]))

        assert fake_client.calls_of("probe") == []

    @pytest.mark.asyncio
    async def test_one_failed_query_fails_request(self, fake_client, service, context):
        fake_client.handler = backend(fail={"load"})
        request = build_request(["memory", "load", "cloudCpu"], cloud_id="i-0abc")

        with pytest.raises(BackendUnavailable) as exc_info:
            await service.get_metrics(context, request)

        assert exc_info.value.status_code == 500
        assert len(fake_client.calls_of("metric")) == 3

    @pytest.mark.asyncio
    async def test_failure_cancels_sibling_queries(self, fake_client, service, context):
        sibling_cancelled = asyncio.Event()

        async def slow_reply():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                sibling_cancelled.set()
                raise
            return histogram_reply([])

        def handler(call):
            kind = call_kind(call)
            if kind == "exists":
                return existence_reply(1)
            if metric_name(call) == "memory":
                return ApiError("search_phase_execution_exception", meta=Mock(status=500), body={})
            return slow_reply()

        fake_client.handler = handler

        with pytest.raises(BackendUnavailable):
            await asyncio.wait_for(service.get_metrics(context, build_request(["memory", "load"])), timeout=5)

        assert sibling_cancelled.is_set()

    @pytest.mark.asyncio
    async def test_invalid_result_key(self, fake_client, dispatcher, test_catalog, context):
        fake_client.handler = backend()
        runner = Mock()
        runner.run = AsyncMock(return_value={"bogus": {"series": []}, "type": "timeseries"})
        service = NodeMetricsService(dispatcher, catalog=test_catalog, runner=runner)

        with pytest.raises(ConfigurationError, match="bogus is not a valid metric"):
            await service.get_metrics(context, build_request(["memory"]))

    @pytest.mark.asyncio
    async def test_results_are_flattened(self, fake_client, dispatcher, test_catalog, context):
        fake_client.handler = backend()
        replies = {
            "cpu": {"cpu": {"series": []}, "load": {"series": []}, "type": "timeseries"},
            "memory": {"memory": {"series": []}, "type": "timeseries"},
        }
        runner = Mock()
        runner.run = AsyncMock(side_effect=lambda context, model, timerange, filters: replies[model.id])
        service = NodeMetricsService(dispatcher, catalog=test_catalog, runner=runner)

        results = await service.get_metrics(context, build_request(["cpu", "memory"]))

        assert [result.id for result in results] == ["cpu", "load", "memory"]

    @pytest.mark.asyncio
    async def test_cancelled_request_makes_no_calls(self, fake_client, service):
        fake_client.handler = backend()
        context = RequestContext()
        context.cancel()

        with pytest.raises(RequestCancelled):
            await service.get_metrics(context, build_request(["cpu"]))

        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_long_probed_period(self, fake_client, service, context):
        fake_client.handler = backend(periods=[("system.cpu", 1_000_000_000)])

        results = await service.get_metrics(context, build_request(["cpu"]))

        assert [result.id for result in results] == ["cpu"]
        metric = fake_client.calls_of("metric")[0]
        assert metric["aggs"]["timeseries"]["date_histogram"]["fixed_interval"] == "1000000s"

    @pytest.mark.asyncio
    async def test_bucket_without_key(self, fake_client, service, context):
        def handler(call):
            if call_kind(call) == "exists":
                return existence_reply(1)
            return {"aggregations": {"timeseries": {"buckets": [{"doc_count": 1}]}}}

        fake_client.handler = handler

        with pytest.raises(MalformedResult) as exc_info:
            await service.get_metrics(context, build_request(["memory"]))

        assert exc_info.value.subject == "memory"

    @pytest.mark.asyncio
    async def test_existence_check_failure_stops_aggregation(self, fake_client, service, context):
        fake_client.handler = lambda call: ApiError("index_closed_exception", meta=Mock(status=400), body={})

        with pytest.raises(BackendUnavailable) as exc_info:
            await service.get_metrics(context, build_request(["cpu", "memory"]))

        assert exc_info.value.status_code == 400
        assert len(fake_client.calls) == 1
        assert call_kind(fake_client.calls[0]) == "exists"

    @pytest.mark.asyncio
    async def test_interval_probe_failure_fails_request(self, fake_client, service, context):
        def handler(call):
            kind = call_kind(call)
            if kind == "exists":
                return existence_reply(1)
            if kind == "probe":
                return ESConnectionError("connection reset")
            return histogram_reply([])

        fake_client.handler = handler

        with pytest.raises(BackendUnavailable, match="unreachable"):
            await service.get_metrics(context, build_request(["cpu"]))

        assert len(fake_client.calls_of("probe")) == 1
        assert fake_client.calls_of("metric") == []
