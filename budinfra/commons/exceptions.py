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

"""Defines the errors raised while aggregating node metrics.

All errors derive from `NodeMetricsException`, which carries a human readable message and a `details` mapping naming
the offending node and/or metric.
"""

from typing import Any, Optional


class NodeMetricsException(Exception):
    """Base exception for all node metrics errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NodeNotFound(NodeMetricsException):
    """The node id is absent from the backend for the given index and id field."""

    def __init__(self, node_id: str, **kwargs: Any) -> None:
        super().__init__(f"{node_id} does not exist.", **kwargs)
        self.node_id = node_id
        self.details["node_id"] = node_id


class ConfigurationError(NodeMetricsException):
    """Unknown metric model, invalid catalog, or a result key missing from the metric registry."""

    def __init__(self, message: str, metric_id: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.metric_id = metric_id
        if metric_id:
            self.details["metric_id"] = metric_id


class ModelRequirementError(NodeMetricsException):
    """A metric model needs a cloud id that the request does not supply."""

    def __init__(self, metric_id: str, node_id: str) -> None:
        super().__init__(
            f"Model for {metric_id} requires a cloudId, but none was given for {node_id}.",
            details={"metric_id": metric_id, "node_id": node_id},
        )
        self.metric_id = metric_id
        self.node_id = node_id


class BackendUnavailable(NodeMetricsException):
    """Transport or backend level failure while talking to the search backend."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.details["status_code"] = status_code


class MalformedResult(NodeMetricsException):
    """The backend reply does not have the shape expected for normalization."""

    def __init__(self, subject: str, reason: str, **kwargs: Any) -> None:
        super().__init__(f"Malformed result for {subject}: {reason}", **kwargs)
        self.subject = subject
        self.details["subject"] = subject


class RequestCancelled(NodeMetricsException):
    """The request context was cancelled or its deadline elapsed."""

    pass
