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

"""Routes for node metrics queries.

Routes are kept thin, delegating to the service layer for the aggregation itself.
"""

from typing import AsyncGenerator, Dict, Type

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
    HTTP_504_GATEWAY_TIMEOUT,
)

from ..commons.config import app_settings
from ..commons.constants import NodeType
from ..commons.context import RequestContext
from ..commons.exceptions import (
    BackendUnavailable,
    ConfigurationError,
    MalformedResult,
    ModelRequirementError,
    NodeMetricsException,
    NodeNotFound,
    RequestCancelled,
)
from ..commons.logging import get_logger
from ..commons.schemas import ErrorResponse
from ..shared.elasticsearch_service import create_elasticsearch_client
from .catalog import MetricCatalog
from .dispatcher import QueryDispatcher
from .inventory import default_catalog
from .schemas import MetricCatalogResponse, MetricRequest, NodeDetailsRequest, NodeDetailsResponse, NodeIdentifier
from .services import NodeMetricsService, default_source_configuration


logger = get_logger(__name__)
router = APIRouter(prefix="/node-metrics", tags=["Node Metrics"])

ERROR_STATUS_CODES: Dict[Type[NodeMetricsException], int] = {
    NodeNotFound: HTTP_404_NOT_FOUND,
    ConfigurationError: HTTP_400_BAD_REQUEST,
    ModelRequirementError: HTTP_400_BAD_REQUEST,
    BackendUnavailable: HTTP_503_SERVICE_UNAVAILABLE,
    MalformedResult: HTTP_502_BAD_GATEWAY,
    RequestCancelled: HTTP_504_GATEWAY_TIMEOUT,
}


def get_metric_catalog() -> MetricCatalog:
    """Dependency returning the metric catalog."""
    return default_catalog


async def get_node_metrics_service(
    catalog: MetricCatalog = Depends(get_metric_catalog),
) -> AsyncGenerator[NodeMetricsService, None]:
    """Dependency injection for the node metrics service.

    Creates the Elasticsearch client for the request and closes it once the response is sent.

    Yields:
        NodeMetricsService: Initialized service instance
    """
    client = create_elasticsearch_client()
    service = NodeMetricsService(QueryDispatcher(client), catalog=catalog)
    try:
        yield service
    finally:
        await client.close()


@router.post(
    "/details",
    response_model=NodeDetailsResponse,
    responses={
        HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Unknown metric or missing cloud id"},
        HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Node does not exist"},
        HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse, "description": "Search backend unavailable"},
    },
)
async def get_node_details(
    request: NodeDetailsRequest,
    service: NodeMetricsService = Depends(get_node_metrics_service),
) -> JSONResponse:
    """Get time series for the requested metrics of one node.

    Args:
        request: Node, metrics and time range to query
        service: Injected node metrics service

    Returns:
        NodeDetailsResponse with one entry per metric panel, or an ErrorResponse
    """
    metric_request = MetricRequest(
        node_type=request.node_type,
        node_ids=NodeIdentifier(node_id=request.node_id, cloud_id=request.cloud_id),
        metrics=request.metrics,
        timerange=request.timerange,
        source_configuration=request.source_configuration or default_source_configuration(),
    )
    context = RequestContext.with_timeout(app_settings.request_timeout)

    try:
        metrics = await service.get_metrics(context, metric_request)
    except NodeMetricsException as e:
        status_code = ERROR_STATUS_CODES.get(type(e), HTTP_500_INTERNAL_SERVER_ERROR)
        logger.warning(f"Node details request for {request.node_id} failed: {e}")
        return ErrorResponse(
            code=status_code, type=type(e).__name__, message=e.message, details=e.details
        ).to_http_response()

    return NodeDetailsResponse(message=f"Found {len(metrics)} metric results", metrics=metrics).to_http_response()


@router.get("/catalog/{node_type}", response_model=MetricCatalogResponse)
async def get_catalog(node_type: NodeType, catalog: MetricCatalog = Depends(get_metric_catalog)) -> JSONResponse:
    """List the metric ids that can be requested for a node type."""
    return MetricCatalogResponse(node_type=node_type, metrics=catalog.metrics_for(node_type)).to_http_response()
