"""Response types of the ECS task metadata endpoint."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any

_FRACTION = re.compile(r"(\.\d{1,6})\d*")


def _parse_time(value: Any, name: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{name} should be a timestamp string")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: m.group(1), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError as err:
        raise ValueError(f"{name}: invalid timestamp {value!r}") from err


def _str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{name} should be a string")
    return value


def _int(value: Any, name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} should be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{name} should be an integer")
        value = int(value)
    return value


def _optional_int(value: Any, name: str) -> int | None:
    return None if value is None else _int(value, name)


def _optional_float(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} should be a number")
    return float(value)


def _port(value: Any, name: str) -> int:
    port = _int(value, name)
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"{name} out of range: {port}")
    return port


def _strings(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} should be a list")
    return [_str(item, name) for item in value]


def _str_map(value: Any, name: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} should be an object")
    return {_str(k, name): _str(v, name) for k, v in value.items()}


def _object(value: Any, name: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{name} should be an object")
    return value


def _objects(value: Any, name: str, kind: type) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} should be a list")
    return [kind.from_dict(item) for item in value]


class ContainerHealthStatus(IntEnum):
    """Health check status of a container."""

    UNKNOWN = 0
    HEALTHY = 1
    UNHEALTHY = 2

    def backend_status(self) -> str:
        """The status name used by the backend."""
        if self is ContainerHealthStatus.HEALTHY:
            return "HEALTHY"
        if self is ContainerHealthStatus.UNHEALTHY:
            return "UNHEALTHY"
        return "UNKNOWN"

    def __str__(self) -> str:
        return self.backend_status()

    @classmethod
    def from_json(cls, value: str | bytes) -> "ContainerHealthStatus":
        """Decode a JSON string or null into a status."""
        text = value.decode() if isinstance(value, (bytes, bytearray)) else value
        if text.lower() == "null":
            return cls.UNKNOWN
        if len(text) < 2 or text[0] != '"' or text[-1] != '"':
            raise ValueError(
                "container health status unmarshal: status must be a string or null; Got "
                + text
            )
        statuses = {
            "UNKNOWN": cls.UNKNOWN,
            "HEALTHY": cls.HEALTHY,
            "UNHEALTHY": cls.UNHEALTHY,
        }
        try:
            return statuses[text[1:-1]]
        except KeyError:
            raise ValueError(
                "container health status unmarshal: unrecognized status: " + text
            ) from None

    def to_json(self) -> str:
        """Encode the status as a JSON string."""
        return '"' + self.backend_status() + '"'


@dataclass
class HealthStatus:
    """Result of a container health check."""

    status: ContainerHealthStatus = ContainerHealthStatus.UNKNOWN
    since: datetime | None = None
    exit_code: int = 0
    output: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "HealthStatus":
        data = _object(data, "Health")
        return cls(
            status=ContainerHealthStatus.from_json(json.dumps(data.get("status"))),
            since=_parse_time(data.get("statusSince"), "statusSince"),
            exit_code=_int(data.get("exitCode"), "exitCode"),
            output=_str(data.get("output"), "output"),
        )


@dataclass
class Network:
    """Metadata of a network interface."""

    network_mode: str = ""
    ipv4_addresses: list[str] = field(default_factory=list)
    ipv6_addresses: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Network":
        data = _object(data, "Network")
        return cls(
            network_mode=_str(data.get("NetworkMode"), "NetworkMode"),
            ipv4_addresses=_strings(data.get("IPv4Addresses"), "IPv4Addresses"),
            ipv6_addresses=_strings(data.get("IPv6Addresses"), "IPv6Addresses"),
        )


@dataclass
class VolumeResponse:
    """A volume mounted into a container."""

    docker_name: str = ""
    source: str = ""
    destination: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "VolumeResponse":
        data = _object(data, "Volume")
        return cls(
            docker_name=_str(data.get("DockerName"), "DockerName"),
            source=_str(data.get("Source"), "Source"),
            destination=_str(data.get("Destination"), "Destination"),
        )


@dataclass
class PortResponse:
    """A port mapping of a container."""

    container_port: int = 0
    protocol: str = ""
    host_port: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "PortResponse":
        data = _object(data, "Port")
        return cls(
            container_port=_port(data.get("ContainerPort"), "ContainerPort"),
            protocol=_str(data.get("Protocol"), "Protocol"),
            host_port=_port(data.get("HostPort"), "HostPort"),
        )


@dataclass
class LimitsResponse:
    """CPU and memory limits of a task or container."""

    cpu: float | None = None
    memory: int | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "LimitsResponse":
        data = _object(data, "Limits")
        return cls(
            cpu=_optional_float(data.get("CPU"), "CPU"),
            memory=_optional_int(data.get("Memory"), "Memory"),
        )


@dataclass
class ErrorResponse:
    """An error reported in a task response."""

    error_field: str = ""
    error_code: str = ""
    error_message: str = ""
    status_code: int = 0
    request_id: str = ""
    resource_arn: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "ErrorResponse":
        data = _object(data, "Error")
        return cls(
            error_field=_str(data.get("ErrorField"), "ErrorField"),
            error_code=_str(data.get("ErrorCode"), "ErrorCode"),
            error_message=_str(data.get("ErrorMessage"), "ErrorMessage"),
            status_code=_int(data.get("StatusCode"), "StatusCode"),
            request_id=_str(data.get("RequestId"), "RequestId"),
            resource_arn=_str(data.get("ResourceARN"), "ResourceARN"),
        )


@dataclass
class ContainerResponse:
    """Metadata of one container of a task."""

    id: str = ""
    name: str = ""
    docker_name: str = ""
    image: str = ""
    image_id: str = ""
    ports: list[PortResponse] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    desired_status: str = ""
    known_status: str = ""
    exit_code: int | None = None
    limits: LimitsResponse = field(default_factory=LimitsResponse)
    created_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    type: str = ""
    networks: list[Network] = field(default_factory=list)
    health: HealthStatus | None = None
    volumes: list[VolumeResponse] = field(default_factory=list)
    log_driver: str = ""
    log_options: dict[str, str] = field(default_factory=dict)
    container_arn: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "ContainerResponse":
        data = _object(data, "Container")
        limits = data.get("Limits")
        health = data.get("Health")
        return cls(
            id=_str(data.get("DockerId"), "DockerId"),
            name=_str(data.get("Name"), "Name"),
            docker_name=_str(data.get("DockerName"), "DockerName"),
            image=_str(data.get("Image"), "Image"),
            image_id=_str(data.get("ImageID"), "ImageID"),
            ports=_objects(data.get("Ports"), "Ports", PortResponse),
            labels=_str_map(data.get("Labels"), "Labels"),
            desired_status=_str(data.get("DesiredStatus"), "DesiredStatus"),
            known_status=_str(data.get("KnownStatus"), "KnownStatus"),
            exit_code=_optional_int(data.get("ExitCode"), "ExitCode"),
            limits=LimitsResponse() if limits is None else LimitsResponse.from_dict(limits),
            created_at=_parse_time(data.get("CreatedAt"), "CreatedAt"),
            started_at=_parse_time(data.get("StartedAt"), "StartedAt"),
            finished_at=_parse_time(data.get("FinishedAt"), "FinishedAt"),
            type=_str(data.get("Type"), "Type"),
            networks=_objects(data.get("Networks"), "Networks", Network),
            health=None if health is None else HealthStatus.from_dict(health),
            volumes=_objects(data.get("Volumes"), "Volumes", VolumeResponse),
            log_driver=_str(data.get("LogDriver"), "LogDriver"),
            log_options=_str_map(data.get("LogOptions"), "LogOptions"),
            container_arn=_str(data.get("ContainerARN"), "ContainerARN"),
        )


@dataclass
class TaskResponse:
    """Metadata of a task and its containers."""

    cluster: str = ""
    task_arn: str = ""
    family: str = ""
    revision: str = ""
    desired_status: str = ""
    known_status: str = ""
    containers: list[ContainerResponse] = field(default_factory=list)
    limits: LimitsResponse | None = None
    pull_started_at: datetime | None = None
    pull_stopped_at: datetime | None = None
    execution_stopped_at: datetime | None = None
    availability_zone: str = ""
    task_tags: dict[str, str] = field(default_factory=dict)
    container_instance_tags: dict[str, str] = field(default_factory=dict)
    launch_type: str = ""
    errors: list[ErrorResponse] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "TaskResponse":
        data = _object(data, "Task")
        limits = data.get("Limits")
        return cls(
            cluster=_str(data.get("Cluster"), "Cluster"),
            task_arn=_str(data.get("TaskARN"), "TaskARN"),
            family=_str(data.get("Family"), "Family"),
            revision=_str(data.get("Revision"), "Revision"),
            desired_status=_str(data.get("DesiredStatus"), "DesiredStatus"),
            known_status=_str(data.get("KnownStatus"), "KnownStatus"),
            containers=_objects(data.get("Containers"), "Containers", ContainerResponse),
            limits=None if limits is None else LimitsResponse.from_dict(limits),
            pull_started_at=_parse_time(data.get("PullStartedAt"), "PullStartedAt"),
            pull_stopped_at=_parse_time(data.get("PullStoppedAt"), "PullStoppedAt"),
            execution_stopped_at=_parse_time(
                data.get("ExecutionStoppedAt"), "ExecutionStoppedAt"
            ),
            availability_zone=_str(data.get("AvailabilityZone"), "AvailabilityZone"),
            task_tags=_str_map(data.get("TaskTags"), "TaskTags"),
            container_instance_tags=_str_map(
                data.get("ContainerInstanceTags"), "ContainerInstanceTags"
            ),
            launch_type=_str(data.get("LaunchType"), "LaunchType"),
            errors=_objects(data.get("Errors"), "Errors", ErrorResponse),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> "TaskResponse":
        """Decode a task metadata JSON document."""
        return cls.from_dict(json.loads(text))