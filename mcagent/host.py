"""Resolving the host this agent reports for, and retiring it."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from .api import APIError, Client, CreateHostParam, FindHostsParam, Host, HostStatus

logger = logging.getLogger(__name__)

_SEARCH_STATUSES = [
    HostStatus.WORKING.value,
    HostStatus.STANDBY.value,
    HostStatus.MAINTENANCE.value,
    HostStatus.POWEROFF.value,
]


class HostResolveError(Exception):
    """The host could not be resolved; ``retry`` tells whether trying again may help."""

    def __init__(self, message: str, retry: bool = False) -> None:
        super().__init__(message)
        self.retry = retry


def retry_from_error(err: BaseException | None) -> bool:
    """Whether a failed API call is worth retrying."""
    if err is None:
        return False
    if isinstance(err, APIError):
        return err.status_code >= 500
    return True


def _failure(message: str, err: Exception) -> HostResolveError:
    return HostResolveError(f"{message}: {err}", retry_from_error(err))


class HostResolver:
    """Finds, creates or updates the host and keeps its id in a file under root."""

    def __init__(self, client: Client, root: str | os.PathLike) -> None:
        self.client = client
        self.path = Path(root) / "id"

    def get_host(self, host_param: CreateHostParam) -> Host:
        """Return the host, creating it when there is no saved id.

        Raises HostResolveError for API failures and an empty id file,
        and OSError when the id file cannot be read or written.
        """
        try:
            content = self.path.read_text()
        except FileNotFoundError:
            return self._resolve_without_id(host_param)
        host_id = content.rstrip("\r\n")
        if not host_id:
            raise HostResolveError(f"host id file {self.path} found but the content is empty")
        try:
            host = self.client.find_host(host_id)
        except Exception as err:
            raise _failure(f"failed to find host for id = {host_id}", err) from err
        try:
            self.client.update_host(host.id, host_param)
        except Exception as err:
            raise _failure(f"failed to update host for id = {host_id}", err) from err
        return host

    def _resolve_without_id(self, host_param: CreateHostParam) -> Host:
        identifier = host_param.custom_identifier
        if identifier:
            try:
                hosts = self.client.find_hosts(
                    FindHostsParam(custom_identifier=identifier, statuses=list(_SEARCH_STATUSES))
                )
            except Exception as err:
                raise _failure(
                    f"failed to find host for custom identifier = {identifier}", err
                ) from err
            if hosts:
                host = hosts[0]
                try:
                    self.client.update_host(host.id, host_param)
                except Exception as err:
                    raise _failure(f"failed to update host for id = {host.id}", err) from err
                self.save_host_id(host.id)
                return host
        try:
            host_id = self.client.create_host(host_param)
        except Exception as err:
            raise _failure("failed to create a new host", err) from err
        self.save_host_id(host_id)
        try:
            return self.client.find_host(host_id)
        except Exception as err:
            raise _failure(f"failed to find host for id = {host_id}", err) from err

    def get_local_host_id(self) -> str:
        """Return the saved host id; FileNotFoundError when none is saved."""
        host_id = self.path.read_text().rstrip("\r\n")
        if not host_id:
            raise HostResolveError("host id file found but the content is empty")
        return host_id

    def save_host_id(self, host_id: str) -> None:
        os.makedirs(self.path.parent, mode=0o755, exist_ok=True)
        self.path.write_text(host_id)

    def remove_host_id(self) -> None:
        os.remove(self.path)


def retire(
    client: Client,
    host_resolver: HostResolver,
    attempts: int = 3,
    interval: float = 3.0,
) -> None:
    """Retire the saved host, retrying the API call, then forget its id.

    Does nothing when no host has been created yet.
    """
    try:
        host_id = host_resolver.get_local_host_id()
    except FileNotFoundError:
        return
    logger.info("retire: host id = %s", host_id)
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            client.retire_host(host_id)
            break
        except Exception:
            if attempt == attempts:
                raise
            time.sleep(interval)
    host_resolver.remove_host_id()