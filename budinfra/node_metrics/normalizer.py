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

"""Projection of raw metric query replies onto the uniform series structure."""

from typing import Any, Collection, List, Mapping

from pydantic import ValidationError

from ..commons.exceptions import ConfigurationError, MalformedResult
from .schemas import MetricPoint, MetricSeries, MetricSeriesResult, RawMetricResponse


def normalize(metric_id: str, raw: Mapping[str, Any], known_metrics: Collection[str]) -> List[MetricSeriesResult]:
    """Convert the reply of one metric query into normalized results.

    Args:
        metric_id: The metric that was requested, used in error reports.
        raw: Reply mapping panel keys to panels, plus the reserved `type`/`uiRestrictions` keys.
        known_metrics: Registry of valid metric ids; every panel key must be one of them.

    Returns:
        One `MetricSeriesResult` per panel, in the order the backend emitted them. Points keep their order.

    Raises:
        MalformedResult: If `raw` does not match the reply schema.
        ConfigurationError: If a panel key is not a valid metric.
    """
    try:
        response = RawMetricResponse.model_validate(raw)
    except ValidationError as e:
        raise MalformedResult(metric_id, f"{e.error_count()} validation errors") from e

    results = []
    for key, panel in response.panels.items():
        if key not in known_metrics:
            raise ConfigurationError(f"{key} is not a valid metric", metric_id=key)

        results.append(
            MetricSeriesResult(
                id=key,
                series=[
                    MetricSeries(
                        id=series.id,
                        label=series.label,
                        data=[MetricPoint(timestamp=timestamp, value=value) for timestamp, value in series.data],
                    )
                    for series in panel.series
                ],
            )
        )

    return results
