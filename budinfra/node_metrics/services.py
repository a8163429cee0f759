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

"""Service layer aggregating the metrics of one node.

This module contains the NodeMetricsService class which validates the node, plans one query per requested metric,
runs the queries concurrently and normalizes the replies.
"""

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from ..commons.config import app_settings
from ..commons.context import RequestContext
from ..commons.exceptions import ModelRequirementError, NodeNotFound
from ..commons.logging import get_logger
from .catalog import MetricCatalog, QueryModel
from .dispatcher import MetricQueryRunner, QueryDispatcher
from .intervals import calculate_metric_interval
from .inventory import default_catalog, find_inventory_id_field
from .normalizer import normalize
from .schemas import MetricRequest, MetricSeriesResult, SourceConfiguration, SourceFields
from .validator import check_valid_node


logger = get_logger(__name__)


def default_source_configuration() -> SourceConfiguration:
    """Source configuration built from the service settings, used when a request names none."""
    return SourceConfiguration(
        metric_alias=app_settings.metric_alias,
        log_alias=app_settings.log_alias,
        fields=SourceFields(
            timestamp=app_settings.timestamp_field,
            host=app_settings.host_id_field,
            pod=app_settings.pod_id_field,
            container=app_settings.container_id_field,
        ),
    )


@dataclass(frozen=True)
class MetricPlan:
    """Everything needed to query one metric, resolved before any I/O."""

    metric_id: str
    model: QueryModel
    filters: List[Dict[str, Any]]


class NodeMetricsService:
    """Aggregates time series metrics for a single node.

    All requested metrics are resolved against the catalog before the backend is contacted, so unknown metrics and
    missing cloud ids are reported without any I/O. The node existence check happens before any metric query.
    Metric queries then run in a task group: the first failure is raised and the remaining queries are cancelled.
    """

    def __init__(
        self,
        dispatcher: QueryDispatcher,
        catalog: MetricCatalog = default_catalog,
        runner: Optional[MetricQueryRunner] = None,
    ):
        """Initialize service with a dispatcher and a metric catalog.

        Args:
            dispatcher: Query dispatcher for all backend calls.
            catalog: Registry of metric models.
            runner: Metric query runner; built on `dispatcher` with the configured bucket limits when omitted.
        """
        self.dispatcher = dispatcher
        self.catalog = catalog
        self.runner = runner or MetricQueryRunner(
            dispatcher, target_buckets=app_settings.target_buckets, max_buckets=app_settings.max_buckets
        )

    def plan_metric(self, metric_id: str, request: MetricRequest, node_field: str) -> MetricPlan:
        """Resolve the model and the node filter for one metric.

        Raises:
            ConfigurationError: If the metric has no model in the catalog.
            ModelRequirementError: If the model is cloud-scoped and the request has no cloud id.
        """
        source = request.source_configuration
        create_model = self.catalog.lookup(metric_id, request.node_type)
        model = create_model(source.fields.timestamp, source.metric_index_pattern, request.timerange.interval)

        node_ids = request.node_ids
        if model.is_cloud_scoped:
            if not node_ids.cloud_id:
                raise ModelRequirementError(metric_id, node_ids.node_id)
            target_id = node_ids.cloud_id
        else:
            target_id = node_ids.node_id

        filters = [{"match": {model.map_field_to or node_field: target_id}}]
        return MetricPlan(metric_id=metric_id, model=model, filters=filters)

    async def _run_plan(self, context: RequestContext, plan: MetricPlan, request: MetricRequest) -> Dict[str, Any]:
        source = request.source_configuration
        interval = await calculate_metric_interval(
            self.dispatcher,
            context,
            source.interval_index_pattern,
            source.fields.timestamp,
            request.timerange,
            plan.model.requires,
        )

        model = plan.model
        if interval:
            logger.debug(f"Interval for {plan.metric_id} raised to {interval}")
            model = replace(model, interval=interval)

        return await self.runner.run(context, model, request.timerange, plan.filters)

    async def get_metrics(self, context: RequestContext, request: MetricRequest) -> List[MetricSeriesResult]:
        """Get normalized time series for every requested metric of a node.

        Args:
            context: Request context carrying cancellation and deadline.
            request: Node, metrics, time range and source configuration.

        Returns:
            Flattened list of normalized results; one metric may contribute several entries.

        Raises:
            ConfigurationError: If a metric is unknown or a reply holds an invalid metric key.
            ModelRequirementError: If a cloud-scoped metric is requested without a cloud id.
            NodeNotFound: If the node does not exist.
            BackendUnavailable: If any backend call fails.
            MalformedResult: If a reply has an unexpected shape.
            RequestCancelled: If the context is cancelled or its deadline elapses.
        """
        start_time = time.time()
        source = request.source_configuration
        node_id = request.node_ids.node_id
        node_field = find_inventory_id_field(request.node_type, source.fields)

        plans = [self.plan_metric(metric_id, request, node_field) for metric_id in request.metrics]

        if not await check_valid_node(self.dispatcher, context, source.metric_index_pattern, node_field, node_id):
            raise NodeNotFound(node_id, details={"node_type": request.node_type.value, "id_field": node_field})

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._run_plan(context, plan, request)) for plan in plans]
        except ExceptionGroup as eg:
            error = eg.exceptions[0]
            logger.error(f"Metric aggregation failed for {node_id}: {error}")
            raise error from None

        results: List[MetricSeriesResult] = []
        for plan, task in zip(plans, tasks, strict=True):
            results.extend(normalize(plan.metric_id, task.result(), self.catalog.metric_ids))

        logger.info(
            f"Aggregated {len(results)} metric results for {request.node_type.value} {node_id} "
            f"in {time.time() - start_time:.3f}s"
        )
        return results
