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

"""Node metrics module for aggregating per-node time series from Elasticsearch.

This module provides a clean separation of concerns:
- routes.py: FastAPI endpoints (thin API layer)
- services.py: Aggregation of one node's metrics
- catalog.py / inventory.py: Metric model registry and the built-in models
- validator.py, intervals.py, dispatcher.py, normalizer.py: Steps of the aggregation
- schemas.py: Pydantic models for validation
"""

from .catalog import MetricCatalog, QueryModel
from .dispatcher import MetricQueryRunner, QueryDispatcher
from .inventory import default_catalog
from .routes import router
from .schemas import MetricRequest, MetricSeriesResult, NodeIdentifier, SourceConfiguration, TimeRange
from .services import NodeMetricsService


__all__ = [
    "router",
    "MetricCatalog",
    "QueryModel",
    "default_catalog",
    "MetricQueryRunner",
    "QueryDispatcher",
    "NodeMetricsService",
    "MetricRequest",
    "MetricSeriesResult",
    "NodeIdentifier",
    "SourceConfiguration",
    "TimeRange",
]
