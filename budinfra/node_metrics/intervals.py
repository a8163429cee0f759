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

"""Bucket width handling for metric date histograms.

`calculate_metric_interval` probes how often the required datasets are actually collected and turns the longest
collection period into a lower bound such as `>=10s`, so buckets are never finer than the raw samples.
`resolve_bucket_seconds` turns an interval expression into the concrete width of a date histogram.
"""

import math
import re
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from ..commons.constants import DATASET_FIELD, PERIOD_FIELD
from ..commons.context import RequestContext
from ..commons.logging import get_logger


if TYPE_CHECKING:
    from .dispatcher import QueryDispatcher
    from .schemas import TimeRange


logger = get_logger(__name__)

AUTO_INTERVAL = "auto"

_INTERVAL_RE = re.compile(r"^(?P<bound>>=)?\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h|d)$")

_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}

# Bucket widths (seconds) that auto intervals are rounded up to
NICE_INTERVALS: List[int] = [
    1, 2, 5, 10, 15, 30, 60, 120, 300, 600, 900, 1800, 3600, 7200, 10800, 21600, 43200, 86400, 604800,
]


def parse_interval(interval: str) -> Tuple[Optional[float], bool]:
    """Parse an interval expression.

    Args:
        interval: `auto`, a fixed width such as `30s` or `5m`, or a lower bound such as `>=30s`.

    Returns:
        Tuple of the width in seconds (None for `auto`) and whether it is a lower bound.

    Raises:
        ValueError: If the expression cannot be parsed.
    """
    text = interval.strip()
    if text == AUTO_INTERVAL:
        return None, False

    match = _INTERVAL_RE.match(text)
    if match is None:
        raise ValueError(f"Invalid interval: {interval}")

    seconds = float(match.group("value")) * _UNIT_SECONDS[match.group("unit")]
    if seconds <= 0:
        raise ValueError(f"Invalid interval: {interval}")
    return seconds, match.group("bound") is not None


def format_lower_bound(seconds: float) -> str:
    """Render a lower bound in plain decimal seconds, at millisecond precision, so `parse_interval` accepts it."""
    value = f"{max(seconds, 0.001):.3f}".rstrip("0").rstrip(".")
    return f">={value}s"


def _auto_bucket_seconds(range_seconds: float, target_buckets: int) -> int:
    raw = range_seconds / target_buckets
    for nice in NICE_INTERVALS:
        if nice >= raw:
            return nice
    return math.ceil(raw / 86400) * 86400


def resolve_bucket_seconds(interval: str, timerange: "TimeRange", target_buckets: int, max_buckets: int) -> int:
    """Width in whole seconds of the date histogram buckets for `interval` over `timerange`.

    `auto` aims at `target_buckets` buckets, a `>=` bound never goes below the bound, and a fixed width is kept
    unless it would produce more than `max_buckets` buckets.
    """
    range_seconds = (timerange.to_time - timerange.from_time) / 1000
    seconds, lower_bound = parse_interval(interval)

    auto = _auto_bucket_seconds(range_seconds, target_buckets)
    if seconds is None:
        bucket = auto
    elif lower_bound:
        bucket = max(seconds, auto)
    else:
        bucket = seconds

    bucket = max(bucket, range_seconds / max_buckets)
    return max(1, math.ceil(bucket))


async def calculate_metric_interval(
    dispatcher: "QueryDispatcher",
    context: RequestContext,
    index_pattern: str,
    timestamp_field: str,
    timerange: "TimeRange",
    requires: Sequence[str],
) -> Optional[str]:
    """Lower bound for the bucket width derived from the collection period of the required datasets.

    Args:
        dispatcher: Query dispatcher used for the probe.
        context: Request context.
        index_pattern: Indices to probe.
        timestamp_field: Time field of the documents.
        timerange: Window to probe.
        requires: Dataset names whose periods matter; nothing is probed when empty.

    Returns:
        An interval such as `>=10s`, or None when nothing is required or no period could be found.

    Raises:
        BackendUnavailable: If the probe fails.
    """
    if not requires:
        return None

    body = {
        "size": 0,
        "query": {
            "bool": {
                "filter": [
                    {
                        "range": {
                            timestamp_field: {
                                "gte": timerange.from_time,
                                "lte": timerange.to_time,
                                "format": "epoch_millis",
                            }
                        }
                    }
                ]
            }
        },
        "aggs": {
            "modules": {
                "terms": {"field": DATASET_FIELD, "include": list(requires), "size": len(requires)},
                "aggs": {"period": {"max": {"field": PERIOD_FIELD}}},
            }
        },
    }
    response = await dispatcher.dispatch(context, index_pattern, body)

    aggregations = response.get("aggregations")
    if not aggregations:
        logger.warning(f"No aggregations returned while probing {index_pattern} for {list(requires)}")
        return None

    periods = [
        bucket["period"]["value"]
        for bucket in aggregations.get("modules", {}).get("buckets", [])
        if bucket.get("period", {}).get("value")
    ]
    if not periods:
        logger.debug(f"No collection period found for {list(requires)}, keeping the interval hint")
        return None

    return format_lower_bound(max(periods) / 1000)
