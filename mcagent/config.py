"""Agent configuration: data types, parsing and loading from file, HTTP or S3."""

from __future__ import annotations

import os
import re
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable

import yaml

from .api import HostStatus
from .command import Command

DEFAULT_ROOT = "/var/tmp/mackerel-container-agent"
FETCH_TIMEOUT = 3.0

_CONFIG_FIELD_API = "apikey"
_ENV_API = "MACKEREL_APIKEY"

Downloader = Callable[[urllib.parse.SplitResult], bytes]


class ConfigError(ValueError):
    """The configuration is invalid or cannot be read."""


@dataclass
class Header:
    """A request header of an HTTP probe."""

    name: str = ""
    value: str = ""


@dataclass
class ProbeExec:
    """A probe that runs a command."""

    command: Command = field(default_factory=Command)
    user: str = ""
    env: list[str] = field(default_factory=list)


@dataclass
class ProbeHTTP:
    """A probe that sends an HTTP request."""

    scheme: str = ""
    method: str = ""
    host: str = ""
    port: str = ""
    path: str = ""
    headers: list[Header] = field(default_factory=list)
    user_agent: str = ""
    proxy: str | None = None


@dataclass
class ProbeTCP:
    """A probe that opens a TCP connection."""

    host: str = ""
    port: str = ""


@dataclass
class Probe:
    """Readiness probe configuration; exactly one kind of probe is set."""

    exec_probe: ProbeExec | None = None
    http_probe: ProbeHTTP | None = None
    tcp_probe: ProbeTCP | None = None
    initial_delay_seconds: int = 0
    period_seconds: int = 0
    timeout_seconds: int = 0

    def validate(self) -> None:
        """Raise ConfigError unless the probe is usable."""
        configured = [p for p in (self.exec_probe, self.http_probe, self.tcp_probe) if p is not None]
        if len(configured) > 1:
            raise ConfigError("either one of exec, http or tcp can be configured for probe")
        if not configured:
            raise ConfigError("configure exec, http or tcp for probe")
        if self.exec_probe is not None and self.exec_probe.command.is_empty():
            raise ConfigError("specify command of exec probe")
        if self.http_probe is not None and not self.http_probe.path:
            raise ConfigError("specify path of http probe")
        if self.tcp_probe is not None and not self.tcp_probe.port:
            raise ConfigError("specify port of tcp probe")
        if self.initial_delay_seconds < 0:
            raise ConfigError("initialDelaySeconds should be positive")
        if self.period_seconds < 0:
            raise ConfigError("periodSeconds should be positive")
        if self.timeout_seconds < 0:
            raise ConfigError("timeoutSeconds should be positive")


@dataclass
class MetricPlugin:
    """A metric plugin command."""

    name: str
    command: Command
    user: str = ""
    env: list[str] = field(default_factory=list)
    timeout: float = 0.0


@dataclass
class CheckPlugin:
    """A check plugin command."""

    name: str
    command: Command
    user: str = ""
    env: list[str] = field(default_factory=list)
    timeout: float = 0.0
    memo: str = ""


@dataclass
class Config:
    """Agent configuration."""

    apibase: str = ""
    apikey: str = field(default_factory=str)
    root: str = ""
    roles: list[str] = field(default_factory=list)
    ignore_container: re.Pattern | None = None
    readiness_probe: Probe | None = None
    host_status_on_start: HostStatus | None = None
    metric_plugins: list[MetricPlugin] = field(default_factory=list)
    check_plugins: list[CheckPlugin] = field(default_factory=list)


def _string(value: Any, name: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(f"{name} should be a string")


def _integer(value: Any, name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ConfigError(f"{name} should be an integer")


def _mapping(value: Any, name: str) -> dict:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    raise ConfigError(f"{name} should be a mapping")


def _sequence(value: Any, name: str) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    raise ConfigError(f"{name} should be a list")


def _command(value: Any) -> Command:
    try:
        return Command.from_yaml(value)
    except ValueError as err:
        raise ConfigError(str(err)) from err


def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as err:
        raise ConfigError(f"invalid regular expression {pattern!r}: {err}") from err


def parse_host_status(value: str) -> HostStatus:
    """Return the host status named by value."""
    try:
        return HostStatus(value)
    except ValueError:
        raise ConfigError(f'invalid host status: "{value}"') from None


def build_env(env_map: dict | None) -> list[str]:
    """Turn a mapping into sorted KEY=VALUE entries, skipping blank keys."""
    entries = []
    for key, value in (env_map or {}).items():
        key = _string(key, "env key")
        if "=" in key:
            raise ConfigError(f'key of env should not contain "=", but got "{key}"')
        key = key.strip(" ")
        if not key:
            continue
        entries.append(f"{key}={_string(value, 'env value')}")
    return sorted(entries)


def parse_roles(value: str) -> list[str]:
    """Split a comma separated list of roles."""
    return [role.strip(" ") for role in value.split(",")]


def default_config() -> Config:
    """The configuration used when no location is given."""
    return Config(root=DEFAULT_ROOT)


def _parse_probe(raw: Any) -> Probe:
    data = _mapping(raw, "readinessProbe")
    probe = Probe(
        initial_delay_seconds=_integer(data.get("initialDelaySeconds"), "initialDelaySeconds"),
        period_seconds=_integer(data.get("periodSeconds"), "periodSeconds"),
        timeout_seconds=_integer(data.get("timeoutSeconds"), "timeoutSeconds"),
    )
    if (value := data.get("exec")) is not None:
        spec = _mapping(value, "exec")
        probe.exec_probe = ProbeExec(
            command=_command(spec.get("command")),
            user=_string(spec.get("user"), "user"),
            env=build_env(_mapping(spec.get("env"), "env")),
        )
    if (value := data.get("http")) is not None:
        spec = _mapping(value, "http")
        proxy = spec.get("proxy")
        if proxy is not None:
            proxy = _string(proxy, "proxy")
            try:
                urllib.parse.urlsplit(proxy)
            except ValueError as err:
                raise ConfigError(f"invalid proxy: {err}") from err
        probe.http_probe = ProbeHTTP(
            scheme=_string(spec.get("scheme"), "scheme"),
            method=_string(spec.get("method"), "method"),
            host=_string(spec.get("host"), "host"),
            port=_string(spec.get("port"), "port"),
            path=_string(spec.get("path"), "path"),
            headers=[
                Header(
                    name=_string(_mapping(h, "header").get("name"), "name"),
                    value=_string(_mapping(h, "header").get("value"), "value"),
                )
                for h in _sequence(spec.get("headers"), "headers")
            ],
            proxy=proxy,
        )
    if (value := data.get("tcp")) is not None:
        spec = _mapping(value, "tcp")
        probe.tcp_probe = ProbeTCP(
            host=_string(spec.get("host"), "host"),
            port=_string(spec.get("port"), "port"),
        )
    return probe


def _plugin_specs(section: dict, kind: str):
    for name, spec in _mapping(section.get(kind), kind).items():
        spec = _mapping(spec, "plugin")
        yield _string(name, "plugin name"), spec


def parse_config(data: bytes | str) -> Config:
    """Parse a YAML configuration document."""
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as err:
        raise ConfigError(f"failed to parse config: {err}") from err
    raw = _mapping(raw, "config")

    conf = Config(
        apibase=_string(raw.get("apibase"), "apibase"),
        root=_string(raw.get("root"), "root"),
        roles=[_string(role, "role") for role in _sequence(raw.get("roles"), "roles")],
    )
    conf.apikey = _string(raw.get(_CONFIG_FIELD_API), _CONFIG_FIELD_API)
    if (value := raw.get("ignoreContainer")) is not None:
        conf.ignore_container = _compile(_string(value, "ignoreContainer"))
    if (value := raw.get("readinessProbe")) is not None:
        conf.readiness_probe = _parse_probe(value)
    if (value := raw.get("hostStatusOnStart")) is not None:
        conf.host_status_on_start = parse_host_status(_string(value, "hostStatusOnStart"))

    plugins = _mapping(raw.get("plugin"), "plugin")
    for name, spec in _plugin_specs(plugins, "metrics"):
        command = _command(spec.get("command"))
        if command.is_empty():
            raise ConfigError("specify command of metric plugin")
        conf.metric_plugins.append(
            MetricPlugin(
                name=name,
                command=command,
                user=_string(spec.get("user"), "user"),
                env=build_env(_mapping(spec.get("env"), "env")),
                timeout=float(_integer(spec.get("timeoutSeconds"), "timeoutSeconds")),
            )
        )
    for name, spec in _plugin_specs(plugins, "checks"):
        command = _command(spec.get("command"))
        if command.is_empty():
            raise ConfigError("specify command of check plugin")
        conf.check_plugins.append(
            CheckPlugin(
                name=name,
                command=command,
                user=_string(spec.get("user"), "user"),
                env=build_env(_mapping(spec.get("env"), "env")),
                timeout=float(_integer(spec.get("timeoutSeconds"), "timeoutSeconds")),
                memo=_string(spec.get("memo"), "memo"),
            )
        )
    conf.metric_plugins.sort(key=lambda p: p.name)
    conf.check_plugins.sort(key=lambda p: p.name)

    if conf.readiness_probe is not None:
        conf.readiness_probe.validate()
    return conf


def _read_file(path: str) -> bytes:
    with open(path, "rb") as fp:
        return fp.read()


def _fetch_http(url: str) -> bytes:
    request = urllib.request.Request(url, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=FETCH_TIMEOUT) as response:
            return response.read()
    except urllib.error.HTTPError as err:
        try:
            return err.read()
        finally:
            err.close()


def _download_s3_public(parts: urllib.parse.SplitResult) -> bytes:
    """Download a publicly readable S3 object over HTTPS."""
    url = f"https://{parts.netloc}.s3.amazonaws.com{urllib.parse.quote(parts.path)}"
    try:
        with urllib.request.urlopen(url, timeout=FETCH_TIMEOUT) as response:
            return response.read()
    except OSError as err:
        raise ConfigError(f"failed to download config from {parts.geturl()}: {err}") from err


def fetch(location: str, downloader: Downloader | None = None) -> bytes:
    """Read raw configuration from a path, an http(s) URL or an s3 URL."""
    try:
        parts = urllib.parse.urlsplit(location)
    except ValueError:
        return _read_file(location)
    if parts.scheme in ("http", "https"):
        return _fetch_http(location)
    if parts.scheme == "s3":
        return (downloader or _download_s3_public)(parts)
    return _read_file(parts.path)


def load(location: str, downloader: Downloader | None = None) -> Config:
    """Load the configuration and fill unset values from the environment."""
    if not location:
        conf = default_config()
    else:
        conf = parse_config(fetch(location, downloader))

    env = os.environ
    if not conf.apibase:
        conf.apibase = env.get("MACKEREL_APIBASE", "")
    if not conf.apikey:
        conf.apikey = env.get(_ENV_API, conf.apikey)
    if not conf.root:
        conf.root = DEFAULT_ROOT
    if not conf.roles and "MACKEREL_ROLES" in env:
        conf.roles = parse_roles(env["MACKEREL_ROLES"])
    if conf.ignore_container is None and (pattern := env.get("MACKEREL_IGNORE_CONTAINER")):
        conf.ignore_container = _compile(pattern)
    if conf.host_status_on_start is None and (status := env.get("MACKEREL_HOST_STATUS_ON_START")):
        conf.host_status_on_start = parse_host_status(status)
    return conf