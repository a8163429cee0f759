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

"""The main entry point for the application, initializing the FastAPI app and its lifespan management."""

from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI
from starlette_compress import CompressMiddleware

from .commons.config import app_settings
from .commons.logging import configure_logging, get_logger
from .commons.schemas import SuccessResponse
from .node_metrics.routes import router as node_metrics_router


configure_logging(app_settings.log_level, debug=bool(app_settings.debug))
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events."""
    logger.info(f"Starting {app_settings.name} {app_settings.version} in {app_settings.env.value}")
    yield
    logger.info(f"Stopping {app_settings.name}")


app = FastAPI(
    title=app_settings.name,
    description=app_settings.description,
    version=app_settings.version,
    root_path=app_settings.api_root,
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)
# Only compress responses larger than 1KB
app.add_middleware(CompressMiddleware, minimum_size=1000, zstd_level=4, brotli_quality=4, gzip_level=4)

app.include_router(node_metrics_router)


@app.get("/health")
async def health():
    """Liveness probe."""
    return SuccessResponse(message="ok").to_http_response()
