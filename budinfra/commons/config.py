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

"""Manages application and secret configurations, utilizing environment variables and an optional `.env` file."""

from typing import Annotated, Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..__about__ import __version__
from .constants import Environment, LogLevel


load_dotenv()


class BaseConfig(BaseSettings):
    """Base Config to be used as a parent class for other Config classes."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)


class AppConfig(BaseConfig):
    """Manages configuration settings for the service.

    Settings are read from environment variables using the field aliases. `log_level` and `debug` default to
    the values implied by `env` when they are not set explicitly.

    Example:
        ```python
        from budinfra.commons.config import app_settings

        hosts = app_settings.elasticsearch_hosts
        ```
    """

    # App Info
    name: str = __version__.split("@")[0]
    version: str = __version__.split("@")[-1]
    description: str = "Node metrics aggregation over Elasticsearch"
    api_root: str = ""

    # Deployment configs
    env: Environment = Field(Environment.DEVELOPMENT, alias="NAMESPACE")
    debug: Optional[bool] = Field(None, alias="DEBUG")
    log_level: Optional[LogLevel] = Field(None, alias="LOG_LEVEL")

    # Elasticsearch
    elasticsearch_hosts: Annotated[List[str], NoDecode] = Field(["http://localhost:9200"], alias="ELASTICSEARCH_HOSTS")
    elasticsearch_request_timeout: float = Field(30.0, alias="ELASTICSEARCH_REQUEST_TIMEOUT", gt=0)
    elasticsearch_verify_certs: bool = Field(True, alias="ELASTICSEARCH_VERIFY_CERTS")

    # Deadline applied to a whole node details request, in seconds
    request_timeout: Optional[float] = Field(60.0, alias="NODE_METRICS_REQUEST_TIMEOUT", gt=0)

    # Default source configuration
    metric_alias: str = Field("metrics-*,metricbeat-*", alias="METRIC_ALIAS")
    log_alias: str = Field("logs-*,filebeat-*", alias="LOG_ALIAS")
    timestamp_field: str = Field("@timestamp", alias="TIMESTAMP_FIELD")
    host_id_field: str = Field("host.name", alias="HOST_ID_FIELD")
    pod_id_field: str = Field("kubernetes.pod.uid", alias="POD_ID_FIELD")
    container_id_field: str = Field("container.id", alias="CONTAINER_ID_FIELD")

    # Date histogram sizing
    target_buckets: int = Field(100, alias="TARGET_BUCKETS", gt=0)
    max_buckets: int = Field(2000, alias="MAX_BUCKETS", gt=0)

    @field_validator("elasticsearch_hosts", mode="before")
    @classmethod
    def split_hosts(cls, value: Any) -> Any:
        """Accept a comma separated list of hosts."""
        if isinstance(value, str):
            return [host.strip() for host in value.split(",") if host.strip()]
        return value

    @model_validator(mode="before")
    @classmethod
    def resolve_env(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert `env`/`NAMESPACE` string values to `Environment` instances."""
        if isinstance(data.get("env"), str):
            data["env"] = Environment.from_string(data["env"])
        elif isinstance(data.get("NAMESPACE"), str):
            data["NAMESPACE"] = Environment.from_string(data["NAMESPACE"])
        return data

    @model_validator(mode="after")
    def set_env_details(self) -> "AppConfig":
        """Fill `log_level` and `debug` from the environment when they are not set."""
        if self.log_level is None:
            self.log_level = self.env.log_level
        if self.debug is None:
            self.debug = self.env.debug

        return self


class SecretsConfig(BaseConfig):
    """Manages secret configurations for the service.

    Either basic auth credentials or an API key can be supplied for Elasticsearch; the API key wins when both are set.
    """

    name: str = __version__.split("@")[0]
    version: str = __version__.split("@")[-1]

    elasticsearch_username: Optional[str] = Field(None, alias="ELASTICSEARCH_USERNAME")
    elasticsearch_password: Optional[str] = Field(None, alias="ELASTICSEARCH_PASSWORD")
    elasticsearch_api_key: Optional[str] = Field(None, alias="ELASTICSEARCH_API_KEY")


app_settings = AppConfig()
secrets_settings = SecretsConfig()
