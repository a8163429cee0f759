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

"""Built-in metric models for hosts, pods, containers and AWS EC2 instances.

Field names follow the Metricbeat system, kubernetes, docker and aws modules. Each model lists in `requires` the
datasets whose collection period bounds the bucket width of its date histogram.
"""

from typing import Dict, List

from ..commons.constants import CLOUD_INSTANCE_ID_FIELD, ModelIdType, NodeType
from .catalog import MetricAggregation, MetricCatalog, ModelCreator, QueryModel, SeriesDefinition
from .schemas import SourceFields


def find_inventory_id_field(node_type: NodeType, fields: SourceFields) -> str:
    """Field holding the node id for `node_type` in the given source."""
    return {
        NodeType.HOST: fields.host,
        NodeType.POD: fields.pod,
        NodeType.CONTAINER: fields.container,
        NodeType.AWS_EC2: CLOUD_INSTANCE_ID_FIELD,
    }[NodeType(node_type)]


def _avg(series_id: str, field: str, label: str) -> SeriesDefinition:
    return SeriesDefinition(id=series_id, label=label, metrics=[MetricAggregation(id="avg", type="avg", field=field)])


def _rate(series_id: str, field: str, label: str) -> SeriesDefinition:
    """Per-second rate of a monotonically increasing counter."""
    return SeriesDefinition(
        id=series_id,
        label=label,
        metrics=[
            MetricAggregation(id="max", type="max", field=field),
            MetricAggregation(id="rate", type="derivative", field="max", unit="1s"),
            MetricAggregation(id="positive", type="positive_only", field="rate"),
        ],
    )


def _per_core(series_id: str, field: str, label: str) -> SeriesDefinition:
    """Average of a CPU percentage divided by the number of cores."""
    return SeriesDefinition(
        id=series_id,
        label=label,
        metrics=[
            MetricAggregation(id="pct", type="avg", field=field),
            MetricAggregation(id="cores", type="max", field="system.cpu.cores"),
            MetricAggregation(
                id="normalized",
                type="calculation",
                script="params.pct / params.cores",
                variables={"pct": "pct", "cores": "cores"},
            ),
        ],
    )


def host_system_overview(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="hostSystemOverview",
        requires=["system.cpu", "system.load", "system.memory", "system.network"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _per_core("cpu", "system.cpu.total.pct", "CPU Usage"),
            _avg("load", "system.load.5", "Load (5m)"),
            _avg("memory", "system.memory.actual.used.pct", "Memory Usage"),
            _rate("rx", "system.network.in.bytes", "Inbound (RX)"),
            _rate("tx", "system.network.out.bytes", "Outbound (TX)"),
        ],
    )


def host_cpu_usage(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="hostCpuUsage",
        requires=["system.cpu"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _per_core("user", "system.cpu.user.pct", "User"),
            _per_core("system", "system.cpu.system.pct", "System"),
            _per_core("steal", "system.cpu.steal.pct", "Steal"),
            _per_core("irq", "system.cpu.irq.pct", "IRQ"),
            _per_core("softirq", "system.cpu.softirq.pct", "Soft IRQ"),
            _per_core("iowait", "system.cpu.iowait.pct", "IO Wait"),
            _per_core("nice", "system.cpu.nice.pct", "Nice"),
        ],
    )


def host_load(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="hostLoad",
        requires=["system.load"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _avg("load_1m", "system.load.1", "1m"),
            _avg("load_5m", "system.load.5", "5m"),
            _avg("load_15m", "system.load.15", "15m"),
        ],
    )


def host_memory_usage(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="hostMemoryUsage",
        requires=["system.memory"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            SeriesDefinition(
                id="free",
                label="Free",
                metrics=[MetricAggregation(id="free", type="avg", field="system.memory.free")],
            ),
            _avg("used", "system.memory.actual.used.bytes", "Used"),
            SeriesDefinition(
                id="cache",
                label="Cache",
                metrics=[
                    MetricAggregation(id="used", type="avg", field="system.memory.used.bytes"),
                    MetricAggregation(id="actual", type="avg", field="system.memory.actual.used.bytes"),
                    MetricAggregation(
                        id="cache",
                        type="calculation",
                        script="params.used - params.actual",
                        variables={"used": "used", "actual": "actual"},
                    ),
                ],
            ),
        ],
    )


def host_network_traffic(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="hostNetworkTraffic",
        requires=["system.network"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _rate("tx", "system.network.out.bytes", "Outbound (TX)"),
            _rate("rx", "system.network.in.bytes", "Inbound (RX)"),
        ],
    )


def pod_overview(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="podOverview",
        requires=["kubernetes.pod"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _avg("cpu", "kubernetes.pod.cpu.usage.node.pct", "CPU Usage"),
            _avg("memory", "kubernetes.pod.memory.usage.node.pct", "Memory Usage"),
            _rate("rx", "kubernetes.pod.network.rx.bytes", "Inbound (RX)"),
            _rate("tx", "kubernetes.pod.network.tx.bytes", "Outbound (TX)"),
        ],
    )


def pod_cpu_usage(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="podCpuUsage",
        requires=["kubernetes.pod"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[_avg("cpu", "kubernetes.pod.cpu.usage.node.pct", "CPU Usage")],
    )


def pod_memory_usage(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="podMemoryUsage",
        requires=["kubernetes.pod"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[_avg("memory", "kubernetes.pod.memory.usage.node.pct", "Memory Usage")],
    )


def pod_network_traffic(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="podNetworkTraffic",
        requires=["kubernetes.pod"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _rate("tx", "kubernetes.pod.network.tx.bytes", "Outbound (TX)"),
            _rate("rx", "kubernetes.pod.network.rx.bytes", "Inbound (RX)"),
        ],
    )


def container_overview(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="containerOverview",
        requires=["docker"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _avg("cpu", "docker.cpu.total.pct", "CPU Usage"),
            _avg("memory", "docker.memory.usage.pct", "Memory Usage"),
            _rate("rx", "docker.network.in.bytes", "Inbound (RX)"),
            _rate("tx", "docker.network.out.bytes", "Outbound (TX)"),
        ],
    )


def container_cpu_usage(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="containerCpuUsage",
        requires=["docker.cpu"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _avg("kernel", "docker.cpu.kernel.pct", "Kernel"),
            _avg("user", "docker.cpu.user.pct", "User"),
        ],
    )


def container_memory(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="containerMemory",
        requires=["docker.memory"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[_avg("memory", "docker.memory.usage.pct", "Memory Usage")],
    )


def container_network_traffic(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return QueryModel(
        id="containerNetworkTraffic",
        requires=["docker.network"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=[
            _rate("tx", "docker.network.out.bytes", "Outbound (TX)"),
            _rate("rx", "docker.network.in.bytes", "Inbound (RX)"),
        ],
    )


def _aws_model(
    metric_id: str, index_pattern: str, interval: str, time_field: str, series: List[SeriesDefinition]
) -> QueryModel:
    return QueryModel(
        id=metric_id,
        requires=["aws.ec2"],
        index_pattern=index_pattern,
        interval=interval,
        time_field=time_field,
        series=series,
        id_type=ModelIdType.CLOUD,
        map_field_to=CLOUD_INSTANCE_ID_FIELD,
    )


def aws_overview(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return _aws_model(
        "awsOverview",
        index_pattern,
        interval,
        time_field,
        [
            _avg("cpu-util", "aws.ec2.cpu.total.pct", "CPU Utilization"),
            _avg("status-check-failed", "aws.ec2.status.check_failed", "Status Check Failed"),
            _avg("packets-in", "aws.ec2.network.in.packets", "Packets In"),
            _avg("packets-out", "aws.ec2.network.out.packets", "Packets Out"),
        ],
    )


def aws_cpu_utilization(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return _aws_model(
        "awsCpuUtilization",
        index_pattern,
        interval,
        time_field,
        [_avg("cpu-util", "aws.ec2.cpu.total.pct", "CPU Utilization")],
    )


def aws_network_bytes(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return _aws_model(
        "awsNetworkBytes",
        index_pattern,
        interval,
        time_field,
        [
            _avg("tx", "aws.ec2.network.out.bytes_per_sec", "Outbound (TX)"),
            _avg("rx", "aws.ec2.network.in.bytes_per_sec", "Inbound (RX)"),
        ],
    )


def aws_diskio_bytes(time_field: str, index_pattern: str, interval: str) -> QueryModel:
    return _aws_model(
        "awsDiskioBytes",
        index_pattern,
        interval,
        time_field,
        [
            _avg("writes", "aws.ec2.diskio.write.bytes_per_sec", "Writes"),
            _avg("reads", "aws.ec2.diskio.read.bytes_per_sec", "Reads"),
        ],
    )


HOST_MODELS: Dict[str, ModelCreator] = {
    "hostSystemOverview": host_system_overview,
    "hostCpuUsage": host_cpu_usage,
    "hostLoad": host_load,
    "hostMemoryUsage": host_memory_usage,
    "hostNetworkTraffic": host_network_traffic,
}

POD_MODELS: Dict[str, ModelCreator] = {
    "podOverview": pod_overview,
    "podCpuUsage": pod_cpu_usage,
    "podMemoryUsage": pod_memory_usage,
    "podNetworkTraffic": pod_network_traffic,
}

CONTAINER_MODELS: Dict[str, ModelCreator] = {
    "containerOverview": container_overview,
    "containerCpuUsage": container_cpu_usage,
    "containerMemory": container_memory,
    "containerNetworkTraffic": container_network_traffic,
}

AWS_EC2_MODELS: Dict[str, ModelCreator] = {
    "awsOverview": aws_overview,
    "awsCpuUtilization": aws_cpu_utilization,
    "awsNetworkBytes": aws_network_bytes,
    "awsDiskioBytes": aws_diskio_bytes,
}

# Hosts running on EC2 can also be charted with the cloud-scoped models
INVENTORY_MODELS: Dict[NodeType, Dict[str, ModelCreator]] = {
    NodeType.HOST: {**HOST_MODELS, **AWS_EC2_MODELS},
    NodeType.POD: POD_MODELS,
    NodeType.CONTAINER: CONTAINER_MODELS,
    NodeType.AWS_EC2: AWS_EC2_MODELS,
}


def build_default_catalog() -> MetricCatalog:
    """Build the catalog holding every built-in model."""
    models: Dict[str, ModelCreator] = {}
    for node_models in INVENTORY_MODELS.values():
        models.update(node_models)
    return MetricCatalog(
        models,
        node_types={node_type: list(node_models) for node_type, node_models in INVENTORY_MODELS.items()},
    )


default_catalog = build_default_catalog()
