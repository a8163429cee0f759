"""Unit tests for normalize."""

import pytest

from budinfra.commons.exceptions import ConfigurationError, MalformedResult
from budinfra.node_metrics.normalizer import normalize


KNOWN_METRICS = frozenset({"hostCpuUsage", "hostLoad", "cpu", "memory"})


class TestNormalize:
    """Test cases for normalize."""

    def test_single_panel(self):
        raw = {
            "hostCpuUsage": {
                "id": "hostCpuUsage",
                "series": [{"id": "user", "label": "User", "data": [[1000, 0.5], [2000, None]]}],
            },
            "type": "timeseries",
        }

        results = normalize("hostCpuUsage", raw, KNOWN_METRICS)

        assert len(results) == 1
        result = results[0]
        assert result.id == "hostCpuUsage"
        assert len(result.series) == 1
        assert result.series[0].id == "user"
        assert result.series[0].label == "User"
        assert [(point.timestamp, point.value) for point in result.series[0].data] == [(1000, 0.5), (2000, None)]

    def test_reserved_keys_are_not_panels(self):
        raw = {
            "type": "timeseries",
            "uiRestrictions": {"whiteListedMetrics": []},
            "hostLoad": {"series": []},
        }

        results = normalize("hostLoad", raw, KNOWN_METRICS)

        assert [result.id for result in results] == ["hostLoad"]
        assert results[0].series == []

    def test_panels_keep_backend_order(self):
        raw = {
            "memory": {"series": [{"id": "memory", "label": "Memory", "data": [[1000, 40]]}]},
            "cpu": {"series": [{"id": "cpu", "label": "CPU", "data": [[1000, 0.5]]}]},
        }

        results = normalize("cpu", raw, KNOWN_METRICS)

        assert [result.id for result in results] == ["memory", "cpu"]
        assert results[0].series[0].data[0].value == 40

    def test_unknown_panel_key(self):
        raw = {"diskUsage": {"series": []}, "type": "timeseries"}

        with pytest.raises(ConfigurationError) as exc_info:
            normalize("hostLoad", raw, KNOWN_METRICS)

        assert exc_info.value.message == "diskUsage is not a valid metric"
        assert exc_info.value.metric_id == "diskUsage"

    def test_only_metadata_yields_nothing(self):
        assert normalize("hostLoad", {"type": "timeseries"}, KNOWN_METRICS) == []

    @pytest.mark.parametrize(
        "raw",
        [
            {"hostLoad": {"id": "hostLoad"}},
            {"hostLoad": {"series": [{"id": "load_1m", "data": []}]}},
            {"hostLoad": {"series": [{"id": "load_1m", "label": "1m", "data": [["soon", 1.0]]}]}},
            {"hostLoad": "not a panel"},
        ],
    )
    def test_malformed_reply(self, raw):
        with pytest.raises(MalformedResult) as exc_info:
            normalize("hostLoad", raw, KNOWN_METRICS)

        assert exc_info.value.subject == "hostLoad"
