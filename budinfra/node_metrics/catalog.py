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

"""Query model definitions and the sealed registry of metric model generators.

A model generator is a pure function `(time_field, index_pattern, interval) -> QueryModel`. The registry is built
once from a static mapping and checked when constructed, so an unknown or inconsistent model is reported at process
start rather than in the middle of a request.
"""

import dataclasses
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Literal, Mapping, Optional

from ..commons.constants import ModelIdType, NodeType
from ..commons.exceptions import ConfigurationError
from ..commons.logging import get_logger


logger = get_logger(__name__)

AggregationType = Literal[
    "avg", "max", "min", "sum", "cardinality", "count", "derivative", "positive_only", "calculation"
]

# Aggregations computed from document fields; the rest are pipelines over sibling aggregations
FIELD_AGGREGATIONS = frozenset({"avg", "max", "min", "sum", "cardinality"})


@dataclass(frozen=True)
class MetricAggregation:
    """One step of a series computation.

    For field aggregations `field` names a document field. For `derivative` and `positive_only` it names the id of
    an earlier aggregation in the same series. `calculation` evaluates `script` with `variables` mapping script
    parameter names to earlier aggregation ids.
    """

    id: str
    type: AggregationType
    field: Optional[str] = None
    unit: str = "1s"
    script: Optional[str] = None
    variables: Mapping[str, str] = dataclasses.field(default_factory=dict)


@dataclass(frozen=True)
class SeriesDefinition:
    """A named series; its value is the last aggregation in `metrics`."""

    id: str
    metrics: List[MetricAggregation]
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label or self.id


@dataclass(frozen=True)
class QueryModel:
    """Templated time series query for one metric id."""

    id: str
    requires: List[str]
    index_pattern: str
    interval: str
    time_field: str
    series: List[SeriesDefinition]
    type: str = "timeseries"
    id_type: ModelIdType = ModelIdType.NODE
    map_field_to: Optional[str] = None

    @property
    def is_cloud_scoped(self) -> bool:
        return self.id_type == ModelIdType.CLOUD


ModelCreator = Callable[[str, str, str], QueryModel]


def _validate_series(metric_id: str, series: SeriesDefinition) -> None:
    if not series.metrics:
        raise ConfigurationError(f"Series {series.id} of {metric_id} has no metrics", metric_id=metric_id)

    seen: set[str] = set()
    for metric in series.metrics:
        if metric.type in FIELD_AGGREGATIONS and not metric.field:
            raise ConfigurationError(
                f"Metric {metric.id} in {metric_id}/{series.id} needs a field", metric_id=metric_id
            )
        if metric.type in ("derivative", "positive_only") and metric.field not in seen:
            raise ConfigurationError(
                f"Metric {metric.id} in {metric_id}/{series.id} refers to unknown metric {metric.field}",
                metric_id=metric_id,
            )
        if metric.type == "calculation":
            missing = [ref for ref in metric.variables.values() if ref not in seen]
            if not metric.script or missing:
                raise ConfigurationError(
                    f"Calculation {metric.id} in {metric_id}/{series.id} is incomplete", metric_id=metric_id
                )
        seen.add(metric.id)


class MetricCatalog:
    """Immutable registry from metric id to model generator.

    Example:
        ```python
        catalog = MetricCatalog({"hostCpuUsage": host_cpu_usage})
        create_model = catalog.lookup("hostCpuUsage", NodeType.HOST)
        model = create_model("@timestamp", "metrics-*", "auto")
        ```
    """

    def __init__(self, models: Mapping[str, ModelCreator], node_types: Optional[Mapping[NodeType, List[str]]] = None):
        """Build and validate the registry.

        Args:
            models: Metric id to model generator.
            node_types: Optional listing of the metric ids offered for each node type.

        Raises:
            ConfigurationError: If a generator produces a model inconsistent with its registration.
        """
        self._models: Dict[str, ModelCreator] = dict(models)
        self._node_types: Dict[NodeType, tuple[str, ...]] = {
            node_type: tuple(metric_ids) for node_type, metric_ids in (node_types or {}).items()
        }

        for metric_id, create_model in self._models.items():
            self._validate(metric_id, create_model)
        for node_type, metric_ids in self._node_types.items():
            unknown = [metric_id for metric_id in metric_ids if metric_id not in self._models]
            if unknown:
                raise ConfigurationError(f"Node type {node_type.value} lists unknown metrics {unknown}")

        logger.debug(f"Metric catalog initialized with {len(self._models)} models")

    @staticmethod
    def _validate(metric_id: str, create_model: ModelCreator) -> None:
        model = create_model("@timestamp", "metrics-*", "auto")
        if model.id != metric_id:
            raise ConfigurationError(
                f"Model registered as {metric_id} generates {model.id}", metric_id=metric_id
            )
        if model.is_cloud_scoped and not model.map_field_to:
            raise ConfigurationError(
                f"Cloud-scoped model {metric_id} does not declare a field to match", metric_id=metric_id
            )
        if not model.series:
            raise ConfigurationError(f"Model {metric_id} has no series", metric_id=metric_id)
        for series in model.series:
            _validate_series(metric_id, series)

    @property
    def metric_ids(self) -> FrozenSet[str]:
        """All registered metric ids; used as the registry of valid result keys."""
        return frozenset(self._models)

    def __contains__(self, metric_id: object) -> bool:
        return metric_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def lookup(self, metric_id: str, node_type: NodeType) -> ModelCreator:
        """Return the model generator for `metric_id`.

        Raises:
            ConfigurationError: If no model is registered under `metric_id`.
        """
        try:
            return self._models[metric_id]
        except KeyError:
            raise ConfigurationError(
                f"unknown metric model for {metric_id}/{NodeType(node_type).value}",
                metric_id=metric_id,
                details={"node_type": NodeType(node_type).value},
            ) from None

    def metrics_for(self, node_type: NodeType) -> List[str]:
        """Metric ids offered for `node_type`, in registration order."""
        return list(self._node_types.get(NodeType(node_type), ()))
