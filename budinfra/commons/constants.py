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

"""Defines constant values used throughout the project, including application-specific constants."""

from enum import Enum


class LogLevel(Enum):
    """Define logging levels understood by the logging setup.

    Attributes:
        DEBUG (LogLevel): Debug-level logging.
        INFO (LogLevel): Info-level logging.
        WARNING (LogLevel): Warning-level logging.
        ERROR (LogLevel): Error-level logging.
        CRITICAL (LogLevel): Critical-level logging.
        NOTSET (LogLevel): No logging level.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class Environment(str, Enum):
    """Enumerate application environments and provide utilities for environment-specific settings.

    Attributes:
        PRODUCTION (Environment): Represents the production environment.
        DEVELOPMENT (Environment): Represents the development environment.
        TESTING (Environment): Represents the testing environment.
    """

    PRODUCTION = "PRODUCTION"
    DEVELOPMENT = "DEVELOPMENT"
    TESTING = "TESTING"

    @staticmethod
    def from_string(value: str) -> "Environment":
        """Convert a string representation to an `Environment` instance.

        Args:
            value (str): The string representation of the environment, e.g. `dev`, `production`, `testing`.

        Returns:
            Environment: The corresponding `Environment` instance.

        Raises:
            ValueError: If the string does not match any valid environment.
        """
        import re

        matches = re.findall(r"(?i)\b(dev|prod|test)(elop|elopment|uction|ing|er)?\b", value)

        env = matches[0][0].lower() if len(matches) else ""
        if env == "dev":
            return Environment.DEVELOPMENT
        elif env == "prod":
            return Environment.PRODUCTION
        elif env == "test":
            return Environment.TESTING
        else:
            raise ValueError(
                f"Invalid environment: {value}. Only the following environments are allowed: "
                f"{', '.join(map(str, Environment.__members__))}"
            )

    @property
    def log_level(self) -> LogLevel:
        """Return the logging level for the current environment."""
        return {"PRODUCTION": LogLevel.INFO}.get(self.value, LogLevel.DEBUG)

    @property
    def debug(self) -> bool:
        """Return whether debugging is enabled for the current environment."""
        return {"PRODUCTION": False}.get(self.value, True)


class NodeType(str, Enum):
    """Infrastructure node types that metrics can be requested for."""

    HOST = "host"
    POD = "pod"
    CONTAINER = "container"
    AWS_EC2 = "awsEC2"


class ModelIdType(str, Enum):
    """How a metric model identifies the node it filters on.

    Attributes:
        NODE: Filter on the node's own id field.
        CLOUD: Filter on a cloud provider instance id.
    """

    NODE = "node"
    CLOUD = "cloud"


# Keys of a metric query reply that carry metadata rather than metric panels
RESERVED_RESPONSE_KEYS = ("type", "uiRestrictions")

# Field holding the dataset name and the collection period (ms) in Metricbeat documents
DATASET_FIELD = "event.dataset"
PERIOD_FIELD = "metricset.period"

CLOUD_INSTANCE_ID_FIELD = "cloud.instance.id"
