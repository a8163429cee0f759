#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Single call surface for search requests, and rendering of metric models into date histogram queries."""

from typing import Any, Dict, List, Optional

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from ..commons.context import RequestContext
from ..commons.exceptions import BackendUnavailable, MalformedResult
from ..commons.logging import get_logger
from .catalog import FIELD_AGGREGATIONS, MetricAggregation, QueryModel, SeriesDefinition
from .intervals import resolve_bucket_seconds
from .schemas import TimeRange


logger = get_logger(__name__)

TIMESERIES_AGG = "timeseries"


class QueryDispatcher:
    """Issues one search per call against Elasticsearch on behalf of a request context.

    There is no retry. Transport and API failures are raised as `BackendUnavailable`; a cancelled or expired
    context fails the call with `RequestCancelled` before any I/O is started.
    """

    def __init__(self, client: AsyncElasticsearch):
        """Initialize dispatcher with an Elasticsearch client.

        Args:
            client: Async Elasticsearch client; its lifecycle is owned by the caller.
        """
        self.client = client

    async def dispatch(self, context: RequestContext, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Run a search of `body` over `index` and return the raw reply.

        Args:
            context: Request context checked before and raced against the call.
            index: Comma separated index pattern.
            body: Search request body (`query`, `size`, `aggs`, `terminate_after`, ...).

        Returns:
            The search reply as a dict.
        """
        context.raise_if_done()
        logger.debug(f"Dispatching search on {index}")

        try:
            response = await context.run(
                lambda: self.client.search(index=index, allow_no_indices=True, ignore_unavailable=True, **body)
            )
        except ApiError as e:
            logger.error(f"Search on {index} failed with status {e.status_code}: {e.message}")
            raise BackendUnavailable(
                f"Search on {index} failed: {e.message}", status_code=e.status_code, details={"index": index}
            ) from e
        except TransportError as e:
            logger.error(f"Search backend unreachable for {index}: {e}")
            raise BackendUnavailable(f"Search backend unreachable: {e}", details={"index": index}) from e

        return getattr(response, "body", response)


def _agg_name(series: SeriesDefinition, metric_id: str) -> str:
    return f"{series.id}__{metric_id}"


def _buckets_path(series: SeriesDefinition, metrics_by_id: Dict[str, MetricAggregation], metric_id: str) -> str:
    if metrics_by_id[metric_id].type == "count":
        return "_count"
    return _agg_name(series, metric_id)


def _series_aggregations(series: SeriesDefinition) -> Dict[str, Any]:
    metrics_by_id = {metric.id: metric for metric in series.metrics}
    aggs: Dict[str, Any] = {}

    for metric in series.metrics:
        name = _agg_name(series, metric.id)
        if metric.type in FIELD_AGGREGATIONS:
            aggs[name] = {metric.type: {"field": metric.field}}
        elif metric.type == "derivative":
            aggs[name] = {
                "derivative": {"buckets_path": _buckets_path(series, metrics_by_id, metric.field), "unit": metric.unit}
            }
        elif metric.type == "positive_only":
            aggs[name] = {
                "bucket_script": {
                    "buckets_path": {"value": _buckets_path(series, metrics_by_id, metric.field)},
                    "script": "params.value > 0.0 ? params.value : 0.0",
                    "gap_policy": "skip",
                }
            }
        elif metric.type == "calculation":
            aggs[name] = {
                "bucket_script": {
                    "buckets_path": {
                        variable: _buckets_path(series, metrics_by_id, ref)
                        for variable, ref in metric.variables.items()
                    },
                    "script": metric.script,
                    "gap_policy": "skip",
                }
            }
        # count reads the bucket doc_count and needs no aggregation

    return aggs


def _bucket_value(bucket: Dict[str, Any], series: SeriesDefinition) -> Optional[float]:
    metric = series.metrics[-1]
    if metric.type == "count":
        return bucket.get("doc_count")

    agg = bucket.get(_agg_name(series, metric.id))
    if not agg:
        return None
    if metric.type == "derivative" and agg.get("normalized_value") is not None:
        return agg["normalized_value"]
    return agg.get("value")


class MetricQueryRunner:
    """Runs a `QueryModel` as one date histogram search and shapes the reply into metric panels.

    The reply of `run` maps the model id to a panel and carries the model `type` as metadata:

        {"hostLoad": {"id": "hostLoad", "series": [{"id": "load_1m", "label": "1m", "data": [[ts, value], ...]}]},
         "type": "timeseries"}
    """

    def __init__(self, dispatcher: QueryDispatcher, target_buckets: int = 100, max_buckets: int = 2000):
        self.dispatcher = dispatcher
        self.target_buckets = target_buckets
        self.max_buckets = max_buckets

    def build_body(self, model: QueryModel, timerange: TimeRange, filters: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Render the search body for `model` over `timerange` restricted by `filters`."""
        bucket_seconds = resolve_bucket_seconds(model.interval, timerange, self.target_buckets, self.max_buckets)

        histogram_aggs: Dict[str, Any] = {}
        for series in model.series:
            histogram_aggs.update(_series_aggregations(series))

        return {
            "size": 0,
            "query": {
                "bool": {
                    "filter": [
                        {
                            "range": {
                                model.time_field: {
                                    "gte": timerange.from_time,
                                    "lte": timerange.to_time,
                                    "format": "epoch_millis",
                                }
                            }
                        },
                        *filters,
                    ]
                }
            },
            "aggs": {
                TIMESERIES_AGG: {
                    "date_histogram": {
                        "field": model.time_field,
                        "fixed_interval": f"{bucket_seconds}s",
                        "min_doc_count": 0,
                        "extended_bounds": {"min": timerange.from_time, "max": timerange.to_time},
                    },
                    "aggs": histogram_aggs,
                }
            },
        }

    def parse_response(self, model: QueryModel, response: Dict[str, Any]) -> Dict[str, Any]:
        """Shape a date histogram reply into `{model.id: panel, "type": model.type}`."""
        try:
            buckets = response["aggregations"][TIMESERIES_AGG]["buckets"]
        except (KeyError, TypeError):
            raise MalformedResult(model.id, "reply has no timeseries aggregation") from None

        try:
            series = [
                {
                    "id": definition.id,
                    "label": definition.display_label,
                    "data": [[bucket["key"], _bucket_value(bucket, definition)] for bucket in buckets],
                }
                for definition in model.series
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResult(model.id, f"unexpected histogram bucket: {e!r}") from e

        return {model.id: {"id": model.id, "series": series}, "type": model.type}

    async def run(
        self, context: RequestContext, model: QueryModel, timerange: TimeRange, filters: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Run `model` for the window and filters and return the raw panel map."""
        body = self.build_body(model, timerange, filters)
        response = await self.dispatcher.dispatch(context, model.index_pattern, body)
        return self.parse_response(model, response)
