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

"""Elasticsearch client construction from the service settings."""

from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch

from ..commons.config import app_settings, secrets_settings
from ..commons.logging import get_logger


logger = get_logger(__name__)


def create_elasticsearch_client(
    hosts: Optional[List[str]] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    api_key: Optional[str] = None,
) -> AsyncElasticsearch:
    """Create an async Elasticsearch client.

    Arguments left as None fall back to `app_settings`/`secrets_settings`. An API key takes precedence over basic
    auth. The caller owns the client and must `await client.close()` when done.
    """
    kwargs: Dict[str, Any] = {
        "hosts": hosts or app_settings.elasticsearch_hosts,
        "verify_certs": app_settings.elasticsearch_verify_certs,
        "request_timeout": app_settings.elasticsearch_request_timeout,
    }

    api_key = api_key or secrets_settings.elasticsearch_api_key
    username = username or secrets_settings.elasticsearch_username
    if api_key:
        kwargs["api_key"] = api_key
    elif username:
        kwargs["basic_auth"] = (username, password or secrets_settings.elasticsearch_password or "")

    logger.debug(f"Creating Elasticsearch client for {kwargs['hosts']}")
    return AsyncElasticsearch(**kwargs)
