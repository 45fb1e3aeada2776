"""Data types and the client interface for the monitoring service API."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence


class HostStatus(str, Enum):
    """Status a host can be put into."""

    WORKING = "working"
    STANDBY = "standby"
    MAINTENANCE = "maintenance"
    POWEROFF = "poweroff"


class CheckStatus(str, Enum):
    """Result status of a check monitoring report."""

    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class Host:
    """A host registered with the service."""

    id: str
    name: str = ""
    status: str = ""
    custom_identifier: str = ""
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckConfig:
    """Configuration of a check monitor attached to a host."""

    name: str
    memo: str = ""


@dataclass
class CreateHostParam:
    """Parameters for creating or updating a host."""

    name: str = ""
    display_name: str = ""
    custom_identifier: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    interfaces: list[dict[str, Any]] = field(default_factory=list)
    role_fullnames: list[str] = field(default_factory=list)
    checks: list[CheckConfig] = field(default_factory=list)


@dataclass
class FindHostsParam:
    """Query parameters for searching hosts."""

    custom_identifier: str = ""
    statuses: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CheckSource:
    """Where a check report comes from."""

    type: str
    host_id: str

    @classmethod
    def host(cls, host_id: str) -> "CheckSource":
        """Return a source pointing at the given host."""
        return cls(type="host", host_id=host_id)


@dataclass
class CheckReport:
    """A single check monitoring report."""

    name: str
    status: CheckStatus
    message: str
    occurred_at: int
    source: CheckSource | None = None


class APIError(Exception):
    """An error response returned by the API."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"API request failed: {message}")
        self.status_code = status_code
        self.message = message


class Client(ABC):
    """The operations the agent needs from the API."""

    @abstractmethod
    def find_host(self, host_id: str) -> Host:
        """Return the host with the given id."""

    @abstractmethod
    def find_hosts(self, param: FindHostsParam) -> list[Host]:
        """Return the hosts matching the query."""

    @abstractmethod
    def create_host(self, param: CreateHostParam) -> str:
        """Create a host and return its id."""

    @abstractmethod
    def update_host(self, host_id: str, param: CreateHostParam) -> str:
        """Update a host and return its id."""

    @abstractmethod
    def update_host_status(self, host_id: str, status: str) -> None:
        """Change the status of a host."""

    @abstractmethod
    def retire_host(self, host_id: str) -> None:
        """Retire a host."""

    @abstractmethod
    def post_host_metric_values_by_host_id(
        self, host_id: str, metric_values: Sequence[Any]
    ) -> None:
        """Post metric values of a host."""

    @abstractmethod
    def create_graph_defs(self, params: Sequence[Any]) -> None:
        """Register graph definitions."""

    @abstractmethod
    def post_check_reports(self, reports: Sequence[CheckReport]) -> None:
        """Post check monitoring reports."""