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

"""Pydantic schemas for node metrics requests, backend replies and normalized results."""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..commons.constants import RESERVED_RESPONSE_KEYS, NodeType
from ..commons.schemas import ResponseBase
from .intervals import parse_interval


class NodeIdentifier(BaseModel):
    """Identifies a node; `cloud_id` is only needed by cloud-scoped metric models."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node_id: str = Field(..., alias="nodeId", min_length=1)
    cloud_id: Optional[str] = Field(None, alias="cloudId")


class SourceFields(BaseModel):
    """Field names used to find the timestamp and the node id in documents."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = "@timestamp"
    host: str = "host.name"
    pod: str = "kubernetes.pod.uid"
    container: str = "container.id"


class SourceConfiguration(BaseModel):
    """Index aliases and field names where metrics and logs for nodes live."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    metric_alias: str = Field(..., alias="metricAlias")
    log_alias: str = Field(..., alias="logAlias")
    fields: SourceFields = Field(default_factory=SourceFields)

    @property
    def metric_index_pattern(self) -> str:
        """Index pattern for metric queries; on conflicting mappings the metric alias wins."""
        return f"{self.metric_alias},{self.log_alias}"

    @property
    def interval_index_pattern(self) -> str:
        """Index pattern for interval probing; the log alias comes first."""
        return f"{self.log_alias},{self.metric_alias}"


class TimeRange(BaseModel):
    """Time window in epoch milliseconds plus an interval hint such as `auto`, `1m` or `>=30s`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_time: int = Field(..., alias="from", ge=0)
    to_time: int = Field(..., alias="to", ge=0)
    interval: str = "auto"

    @field_validator("interval")
    @classmethod
    def check_interval(cls, value: str) -> str:
        parse_interval(value)
        return value.strip()

    @model_validator(mode="after")
    def check_order(self) -> "TimeRange":
        """Reject ranges that end before they start."""
        if self.from_time > self.to_time:
            raise ValueError(f"from ({self.from_time}) must not be after to ({self.to_time})")
        return self


class MetricRequest(BaseModel):
    """The single input to `NodeMetricsService.get_metrics`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node_type: NodeType = Field(..., alias="nodeType")
    node_ids: NodeIdentifier = Field(..., alias="nodeIds")
    metrics: List[str] = Field(..., min_length=1)
    timerange: TimeRange
    source_configuration: SourceConfiguration = Field(..., alias="sourceConfiguration")


class MetricPoint(BaseModel):
    timestamp: int
    value: Optional[float] = None


class MetricSeries(BaseModel):
    id: str
    label: str
    data: List[MetricPoint] = Field(default_factory=list)


class MetricSeriesResult(BaseModel):
    """Normalized result for one metric id; a metric may expand into several series."""

    id: str
    series: List[MetricSeries] = Field(default_factory=list)


class PanelSeries(BaseModel):
    """One series as emitted by the backend, points are `[timestamp, value]` pairs."""

    id: str
    label: str
    data: List[Tuple[int, Optional[float]]] = Field(default_factory=list)


class Panel(BaseModel):
    id: Optional[str] = None
    series: List[PanelSeries]


class RawMetricResponse(BaseModel):
    """Backend reply for one metric query.

    Reserved metadata keys (`type`, `uiRestrictions`) are kept as fields; every other key is a metric panel and is
    validated into `panels`, preserving the order in which the backend emitted them.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = None
    ui_restrictions: Optional[Dict[str, Any]] = Field(None, alias="uiRestrictions")
    panels: Dict[str, Panel] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def split_panels(cls, data: Any) -> Any:
        """Separate reserved metadata keys from metric panels."""
        if not isinstance(data, Mapping):
            return data

        reserved = {key: data[key] for key in RESERVED_RESPONSE_KEYS if key in data}
        panels = {key: value for key, value in data.items() if key not in RESERVED_RESPONSE_KEYS}
        return {**reserved, "panels": panels}


class NodeDetailsRequest(BaseModel):
    """Body of the node details endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    metrics: List[str] = Field(..., min_length=1)
    node_id: str = Field(..., alias="nodeId", min_length=1)
    cloud_id: Optional[str] = Field(None, alias="cloudId")
    node_type: NodeType = Field(..., alias="nodeType")
    timerange: TimeRange
    source_configuration: Optional[SourceConfiguration] = Field(None, alias="sourceConfiguration")


class NodeDetailsResponse(ResponseBase):
    """Normalized metric series for one node."""

    object: str = "node_details"
    metrics: List[MetricSeriesResult] = Field(default_factory=list)


class MetricCatalogResponse(ResponseBase):
    """Metric ids that can be requested for a node type."""

    object: str = "metric_catalog"
    node_type: NodeType = Field(..., alias="nodeType")
    metrics: List[str] = Field(default_factory=list)
